"""Transfer window configuration (``settings/transferWindow``)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from squadpool import db
from squadpool.auth import Caller, require_admin
from squadpool.errors import InvalidArgument
from squadpool.models import layout
from squadpool.models.common import as_iso_or_null, as_string, parse_iso, utcnow, utcnow_iso
from squadpool.models.liveops import TRANSFER_WINDOW_DOC_ID, TransferWindow
from squadpool.store.base import DocumentStore, Write

logger = logging.getLogger(__name__)


def is_transfer_window_open(window: dict[str, Any] | None, now: datetime | None = None) -> bool:
    """Open when enabled and ``now`` lies within the optional bounds (inclusive)."""
    if not window or window.get("enabled") is not True:
        return False
    now = now or utcnow()
    starts_at = parse_iso(window.get("startsAt"))
    ends_at = parse_iso(window.get("endsAt"))
    if starts_at is not None and now < starts_at:
        return False
    if ends_at is not None and now > ends_at:
        return False
    return True


def get_transfer_window(*, store: DocumentStore | None = None) -> TransferWindow:
    store = store or db.get_store()
    raw = store.get(layout.SETTINGS, TRANSFER_WINDOW_DOC_ID) or {}
    return TransferWindow(
        enabled=raw.get("enabled") is True,
        starts_at=as_iso_or_null(raw.get("startsAt")),
        ends_at=as_iso_or_null(raw.get("endsAt")),
        updated_by=as_string(raw.get("updatedBy")),
        updated_at=as_iso_or_null(raw.get("updatedAt")),
    )


def _bound(value: Any, name: str) -> str | None:
    raw = as_string(value)
    if raw is None:
        return None
    iso = as_iso_or_null(raw)
    if iso is None:
        raise InvalidArgument(f"{name} must be a valid ISO timestamp.")
    return iso


def set_transfer_window(
    caller: Caller | None,
    enabled: bool,
    starts_at: Any = None,
    ends_at: Any = None,
    *,
    store: DocumentStore | None = None,
) -> TransferWindow:
    caller = require_admin(caller)
    store = store or db.get_store()

    start = _bound(starts_at, "startsAt")
    end = _bound(ends_at, "endsAt")
    if start and end and parse_iso(start) > parse_iso(end):  # type: ignore[operator]
        raise InvalidArgument("startsAt must not be after endsAt.")

    window = TransferWindow(
        enabled=enabled is True,
        starts_at=start,
        ends_at=end,
        updated_by=caller.uid,
        updated_at=utcnow_iso(),
    )
    store.commit([Write.set(layout.SETTINGS, TRANSFER_WINDOW_DOC_ID, window.to_doc())])
    logger.info("Transfer window set by %s: enabled=%s %s -> %s", caller.uid, window.enabled, start, end)
    return window
