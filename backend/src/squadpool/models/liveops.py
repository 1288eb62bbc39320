"""Models for live-ops automation settings, health and the transfer window."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator

from squadpool.models.common import Document, as_iso_or_null, as_non_negative_int

LiveScoresProvider = Literal["stub", "fixture", "provider"]
RunStatus = Literal["success", "error"]

PROVIDERS: tuple[str, ...] = ("stub", "fixture", "provider")

LIVE_OPS_DOC_ID = "liveOps"
LIVE_OPS_HEALTH_DOC_ID = "liveOpsHealth"
TRANSFER_WINDOW_DOC_ID = "transferWindow"


class LiveOpsConfig(Document):
    enabled: bool = False
    provider: LiveScoresProvider = "fixture"
    fixture_max_matches: int = 0
    fixture_cutoff_iso: str | None = None
    updated_by: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_doc(cls, raw: dict[str, Any] | None) -> "LiveOpsConfig":
        """Normalize a stored document, falling back to defaults per field."""
        raw = raw or {}
        provider = raw.get("provider")
        return cls(
            enabled=raw.get("enabled") is True,
            provider=provider if provider in PROVIDERS else "fixture",
            fixture_max_matches=as_non_negative_int(raw.get("fixtureMaxMatches")),
            fixture_cutoff_iso=as_iso_or_null(raw.get("fixtureCutoffIso")),
            updated_by=raw.get("updatedBy") if isinstance(raw.get("updatedBy"), str) else None,
            updated_at=as_iso_or_null(raw.get("updatedAt")),
        )


class RunRecord(Document):
    at: str
    status: RunStatus
    provider: LiveScoresProvider
    matches: int = 0
    updated: int = 0
    error_message: str | None = None

    @field_validator("at", mode="before")
    @classmethod
    def _at(cls, v: Any) -> str:
        iso = as_iso_or_null(v)
        if iso is None:
            raise ValueError("at must be an ISO timestamp")
        return iso

    @field_validator("matches", "updated", mode="before")
    @classmethod
    def _counts(cls, v: Any) -> int:
        return as_non_negative_int(v)

    @field_validator("error_message", mode="before")
    @classmethod
    def _message(cls, v: Any) -> str | None:
        return v[:1000] if isinstance(v, str) else None


class LiveOpsHealth(Document):
    last_run_at: str | None = None
    last_run_provider: LiveScoresProvider | None = None
    last_run_status: RunStatus | None = None
    last_run_matches: int = 0
    last_run_updated: int = 0
    consecutive_failures: int = 0
    recent_runs: list[RunRecord] = Field(default_factory=list)
    last_success_at: str | None = None
    last_error_at: str | None = None
    last_error_message: str | None = None


class TransferWindow(Document):
    enabled: bool = False
    starts_at: str | None = None
    ends_at: str | None = None
    updated_by: str | None = None
    updated_at: str | None = None
