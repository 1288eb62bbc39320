"""Shared model base and coercion helpers for stored documents.

Stored documents use camelCase keys (the layout the web client reads), so
every model serialises through ``to_doc()`` with aliases. The ``as_*``
helpers read loosely-typed legacy documents without raising.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_doc(self, **kwargs: Any) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", **kwargs)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    return utcnow().isoformat()


def as_string(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def as_number_or_null(value: Any) -> float | int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    return None


def as_non_negative(value: Any) -> float | int:
    num = as_number_or_null(value)
    if num is None or num < 0:
        return 0
    return num


def as_non_negative_int(value: Any) -> int:
    num = as_number_or_null(value)
    if num is None:
        return 0
    return max(0, math.floor(num))


def parse_iso(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = as_string(value)
        if raw is None:
            return None
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def as_iso_or_null(value: Any) -> str | None:
    """Return the trimmed string if it parses as a timestamp, else None."""
    if isinstance(value, datetime):
        return parse_iso(value).isoformat()  # type: ignore[union-attr]
    raw = as_string(value)
    if raw is None or parse_iso(raw) is None:
        return None
    return raw
