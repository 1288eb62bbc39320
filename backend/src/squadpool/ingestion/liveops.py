"""Live-ops orchestration: scheduled ingest, admin fixture flows and settings.

Scheduled flow:
  1. Read ``settings/liveOps``; do nothing while automation is disabled
  2. Fetch facts from the configured provider
  3. Reconcile them (recomputing scores when anything changed)
  4. Record the run outcome in ``settings/liveOpsHealth``
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

from squadpool import db
from squadpool.auth import SCHEDULER, Caller, require_admin
from squadpool.config import get_settings
from squadpool.errors import FailedPrecondition, InvalidArgument
from squadpool.ingestion.health import record_run
from squadpool.ingestion.identity import TeamIdentityResolver
from squadpool.ingestion.providers import FixtureProvider, ProviderRequest, fetch_provider_matches
from squadpool.ingestion.reconcile import (
    ReconcileResult,
    count_matches_by_source,
    delete_matches_by_source,
    reconcile_matches,
)
from squadpool.models import layout
from squadpool.models.common import as_iso_or_null, as_number_or_null, as_string, utcnow_iso
from squadpool.models.liveops import LIVE_OPS_DOC_ID, PROVIDERS, LiveOpsConfig
from squadpool.scoring.engine import RecomputeResult, recompute
from squadpool.store.base import DocumentStore, Write

logger = logging.getLogger(__name__)


def get_live_ops_config(*, store: DocumentStore | None = None) -> LiveOpsConfig:
    store = store or db.get_store()
    return LiveOpsConfig.from_doc(store.get(layout.SETTINGS, LIVE_OPS_DOC_ID))


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__ or "Unknown ingest error."


def run_scheduled_ingest(
    store: DocumentStore | None = None,
    resolver: TeamIdentityResolver | None = None,
    fixture_path: Path | None = None,
) -> ReconcileResult | None:
    """One scheduler tick. Failures are recorded in health, never raised."""
    store = store or db.get_store()
    config = get_live_ops_config(store=store)
    if not config.enabled:
        logger.info("Live ops disabled. Skipping scheduled ingest.")
        return None

    resolver = resolver or TeamIdentityResolver(store)
    try:
        request = ProviderRequest.build(config.provider, config.fixture_max_matches, config.fixture_cutoff_iso)
        facts = fetch_provider_matches(request, resolver, fixture_path)
        source = "fixture" if config.provider == "fixture" else "provider"
        result = (
            reconcile_matches(facts, source, SCHEDULER.uid, store=store)
            if facts else ReconcileResult()
        )
    except Exception as e:
        logger.error("Scheduled ingest failed: %s", e, exc_info=True)
        record_run(config.provider, error_message=_error_message(e), store=store)
        return None

    record_run(config.provider, result.matches_seen, result.matches_updated, store=store)
    return result


class ScheduledIngest:
    """Scheduler loop owner. Holds one resolver so the team lookup cache
    survives between ticks."""

    def __init__(self, store: DocumentStore | None = None, fixture_path: Path | None = None) -> None:
        self.store = store or db.get_store()
        self.resolver = TeamIdentityResolver(self.store)
        self.fixture_path = fixture_path

    def tick(self) -> ReconcileResult | None:
        return run_scheduled_ingest(self.store, self.resolver, self.fixture_path)

    def run(self, interval_s: float, max_ticks: int = 0, sleep=time.sleep) -> int:
        """Tick every ``interval_s`` seconds; ``max_ticks=0`` runs until interrupted."""
        ticks = 0
        while True:
            self.tick()
            ticks += 1
            if max_ticks and ticks >= max_ticks:
                return ticks
            sleep(interval_s)


def _fixture_request(max_matches: Any, cutoff_iso: Any) -> ProviderRequest:
    return ProviderRequest.build("fixture", max_matches, cutoff_iso)


def admin_ingest_fixture(
    caller: Caller | None,
    max_matches: Any = 0,
    cutoff_iso: Any = None,
    dry_run: bool = False,
    *,
    store: DocumentStore | None = None,
    fixture_path: Path | None = None,
) -> dict[str, Any]:
    """Replay the bundled fixture dataset into the match catalog."""
    caller = require_admin(caller)
    request = _fixture_request(max_matches, cutoff_iso)
    facts = FixtureProvider(fixture_path).fetch(request)

    if dry_run:
        return {"ok": True, "dry_run": True, "matches_selected": len(facts)}

    result = reconcile_matches(facts, "fixture", caller.uid or "admin", store=store)
    return {
        "ok": True,
        "matches_seen": result.matches_seen,
        "matches_updated": result.matches_updated,
        "leaderboard_recomputed": result.leaderboard_recomputed,
    }


def admin_reset_fixture_ingest(
    caller: Caller | None,
    max_matches: Any = 0,
    cutoff_iso: Any = None,
    dry_run: bool = False,
    *,
    store: DocumentStore | None = None,
    fixture_path: Path | None = None,
) -> dict[str, Any]:
    """Delete every fixture-sourced match, then ingest the fixture again."""
    caller = require_admin(caller)
    store = store or db.get_store()
    request = _fixture_request(max_matches, cutoff_iso)
    facts = FixtureProvider(fixture_path).fetch(request)

    if dry_run:
        existing = count_matches_by_source("fixture", store=store)
        return {
            "ok": True,
            "dry_run": True,
            "existing_fixture_matches": existing,
            "will_delete": existing,
            "will_ingest": len(facts),
        }

    deleted = delete_matches_by_source("fixture", store=store)
    # Deletions alone change scores, so recompute even when nothing was written
    result = reconcile_matches(facts, "fixture", caller.uid or "admin", store=store, force_recompute=True)
    return {
        "ok": True,
        "deleted_count": deleted,
        "matches_seen": result.matches_seen,
        "matches_updated": result.matches_updated,
        "leaderboard_recomputed": result.leaderboard_recomputed,
    }


def set_live_ops_settings(
    caller: Caller | None,
    enabled: bool = False,
    provider: Any = "fixture",
    fixture_max_matches: Any = 0,
    fixture_cutoff_iso: Any = None,
    *,
    store: DocumentStore | None = None,
) -> LiveOpsConfig:
    caller = require_admin(caller)
    store = store or db.get_store()

    if provider not in PROVIDERS:
        raise InvalidArgument(f"provider must be one of: {', '.join(PROVIDERS)}.")
    cutoff_raw = as_string(fixture_cutoff_iso)
    cutoff = as_iso_or_null(cutoff_raw) if cutoff_raw else None
    if cutoff_raw and cutoff is None:
        raise InvalidArgument("fixtureCutoffIso must be a valid ISO timestamp.")
    max_matches = as_number_or_null(fixture_max_matches) if fixture_max_matches is not None else 0
    if max_matches is None or max_matches < 0:
        raise InvalidArgument("fixtureMaxMatches must be a non-negative integer.")

    enabled = enabled is True
    if enabled and provider == "provider" and not get_settings().has_provider_token:
        raise FailedPrecondition("FOOTBALL_DATA_TOKEN is required before enabling provider automation.")

    config = LiveOpsConfig(
        enabled=enabled,
        provider=provider,
        fixture_max_matches=int(max_matches),
        fixture_cutoff_iso=cutoff,
        updated_by=caller.uid,
        updated_at=utcnow_iso(),
    )
    store.commit([Write.merge_into(layout.SETTINGS, LIVE_OPS_DOC_ID, config.to_doc())])
    logger.info("Live ops updated by %s: enabled=%s provider=%s", caller.uid, enabled, provider)
    return config


def admin_recompute(
    caller: Caller | None,
    include_live: bool = True,
    scoring_version: str | None = None,
    *,
    store: DocumentStore | None = None,
) -> RecomputeResult:
    caller = require_admin(caller)
    return recompute(include_live, scoring_version, caller.uid or "admin", store=store)
