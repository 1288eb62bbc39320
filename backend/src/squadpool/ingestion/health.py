"""Automation health: run history for scheduled ingestion and alert levels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal

from pydantic import ValidationError

from squadpool import db
from squadpool.config import get_settings
from squadpool.models import layout
from squadpool.models.common import Document, as_iso_or_null, as_non_negative_int, parse_iso, utcnow
from squadpool.models.liveops import (
    LIVE_OPS_HEALTH_DOC_ID,
    LiveOpsConfig,
    LiveOpsHealth,
    RunRecord,
)
from squadpool.store.base import DocumentStore, Transaction

logger = logging.getLogger(__name__)

AlertLevel = Literal["healthy", "warning", "critical"]


def _message(value: Any) -> str | None:
    return value[:1000] if isinstance(value, str) else None


def _valid_runs(raw: Any) -> list[RunRecord]:
    runs: list[RunRecord] = []
    for item in raw if isinstance(raw, list) else []:
        try:
            runs.append(RunRecord.model_validate(item))
        except ValidationError:
            continue
    return runs


def next_health(
    current: dict[str, Any] | None,
    run: RunRecord,
    history_limit: int,
) -> LiveOpsHealth:
    """Fold one run into the stored health document."""
    current = current or {}
    failed = run.status == "error"
    failures = as_non_negative_int(current.get("consecutiveFailures"))

    health = LiveOpsHealth(
        last_run_at=run.at,
        last_run_provider=run.provider,
        last_run_status=run.status,
        last_run_matches=run.matches,
        last_run_updated=run.updated,
        consecutive_failures=failures + 1 if failed else 0,
        recent_runs=[run, *_valid_runs(current.get("recentRuns"))][:history_limit],
        last_success_at=as_iso_or_null(current.get("lastSuccessAt")),
        last_error_at=as_iso_or_null(current.get("lastErrorAt")),
        last_error_message=_message(current.get("lastErrorMessage")),
    )
    if failed:
        health.last_error_at = run.at
        health.last_error_message = run.error_message
    else:
        health.last_success_at = run.at
        health.last_error_message = None
    return health


def record_run(
    provider: str,
    matches: int = 0,
    updated: int = 0,
    error_message: str | None = None,
    *,
    store: DocumentStore | None = None,
) -> LiveOpsHealth | None:
    """Record one ingestion outcome. Health write failures are logged only."""
    store = store or db.get_store()
    settings = get_settings()
    run = RunRecord(
        at=utcnow().isoformat(),
        status="error" if error_message else "success",
        provider=provider,
        matches=matches,
        updated=updated,
        error_message=error_message,
    )

    def txn(tx: Transaction) -> LiveOpsHealth:
        current = tx.get(layout.SETTINGS, LIVE_OPS_HEALTH_DOC_ID)
        health = next_health(current, run, settings.live_ops_history_limit)
        tx.merge(layout.SETTINGS, LIVE_OPS_HEALTH_DOC_ID, health.to_doc())
        return health

    try:
        return store.run_transaction(txn, settings.transaction_max_attempts)
    except Exception:
        logger.exception("Failed to write live-ops health")
        return None


def get_health(*, store: DocumentStore | None = None) -> LiveOpsHealth:
    store = store or db.get_store()
    raw = store.get(layout.SETTINGS, LIVE_OPS_HEALTH_DOC_ID) or {}
    return load_health(raw)


def load_health(raw: dict[str, Any]) -> LiveOpsHealth:
    """Lenient read of a stored health document."""
    data = {k: v for k, v in raw.items() if k != "recentRuns"}
    try:
        health = LiveOpsHealth.model_validate(data)
    except ValidationError:
        health = LiveOpsHealth()
    health.recent_runs = _valid_runs(raw.get("recentRuns"))
    return health


# ── Alerts ────────────────────────────────────────────────


@dataclass(frozen=True)
class AlertThresholds:
    interval_minutes: int = 10
    stale_multiplier: int = 3
    critical_failures: int = 3

    @classmethod
    def from_settings(cls) -> "AlertThresholds":
        s = get_settings()
        return cls(
            interval_minutes=s.scheduler_interval_minutes,
            stale_multiplier=s.stale_after_intervals,
            critical_failures=s.critical_failure_count,
        )

    @property
    def stale_after(self) -> timedelta:
        return timedelta(minutes=self.interval_minutes * self.stale_multiplier)


class IngestAlert(Document):
    level: AlertLevel
    message: str
    stale: bool = False


def build_ingest_alert(
    config: LiveOpsConfig,
    health: LiveOpsHealth,
    now: datetime | None = None,
    thresholds: AlertThresholds | None = None,
) -> IngestAlert:
    """Derive healthy/warning/critical from failure streak and staleness."""
    if not config.enabled:
        return IngestAlert(level="healthy", message="Automation is disabled.")

    now = now or utcnow()
    thresholds = thresholds or AlertThresholds.from_settings()
    failures = health.consecutive_failures
    last_run = parse_iso(health.last_run_at)
    stale = last_run is None or now - last_run > thresholds.stale_after

    if failures >= thresholds.critical_failures or (stale and failures >= 1):
        return IngestAlert(
            level="critical",
            message=f"Ingestion failing: {failures} consecutive failure(s)"
            + (", no recent run." if stale else "."),
            stale=stale,
        )
    if health.last_run_status == "error" or failures >= 1:
        return IngestAlert(level="warning", message="Last ingestion run failed.", stale=stale)
    if stale:
        if last_run is None:
            return IngestAlert(level="warning", message="No ingestion run recorded yet.", stale=True)
        return IngestAlert(
            level="warning",
            message=f"No ingestion run in the last {int(thresholds.stale_after.total_seconds() // 60)} minutes.",
            stale=True,
        )
    return IngestAlert(level="healthy", message="Ingestion running normally.")
