"""Match reconciliation: diff incoming facts against stored matches.

Flow:
  1. Batch-read the stored documents for every incoming match key
  2. Diff the fact fields; unchanged matches produce no write
  3. Merge-write changed matches tagged with source + lastUpdated, in batches
  4. Recompute scores if anything changed (or when forced)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from squadpool import db
from squadpool.config import get_settings
from squadpool.models import layout
from squadpool.models.common import Document, utcnow_iso
from squadpool.models.matches import FACT_FIELDS, MatchFact
from squadpool.scoring.engine import recompute
from squadpool.store.base import DocumentStore, Write

logger = logging.getLogger(__name__)

DELETE_PAGE_SIZE = 400


class ReconcileResult(Document):
    matches_seen: int = 0
    matches_updated: int = 0
    reverts_skipped: int = 0
    leaderboard_recomputed: bool = False


def has_changes(existing: dict[str, Any] | None, incoming: dict[str, Any]) -> bool:
    if existing is None:
        return True
    return any(existing.get(k) != incoming.get(k) for k in FACT_FIELDS)


def is_revert(existing: dict[str, Any] | None, incoming: dict[str, Any]) -> bool:
    """True when a stored FINISHED match would go back to SCHEDULED/LIVE."""
    return (
        existing is not None
        and existing.get("status") == "FINISHED"
        and incoming.get("status") != "FINISHED"
    )


def _dedupe(facts: Iterable[MatchFact]) -> dict[str, MatchFact]:
    # Last fact per key wins within one batch
    by_id: dict[str, MatchFact] = {}
    for fact in facts:
        by_id[fact.match_id] = fact
    return by_id


def reconcile_matches(
    facts: list[MatchFact],
    source: str,
    initiated_by: str = "system",
    *,
    store: DocumentStore | None = None,
    force_recompute: bool = False,
) -> ReconcileResult:
    """Write only the matches that changed, then recompute if needed."""
    store = store or db.get_store()
    settings = get_settings()
    result = ReconcileResult(matches_seen=len(facts))

    by_id = _dedupe(facts)
    existing = store.get_all(layout.MATCHES, list(by_id)) if by_id else {}
    now = utcnow_iso()

    writes: list[Write] = []
    for match_id, fact in by_id.items():
        incoming = fact.fact_fields()
        current = existing.get(match_id)
        if not has_changes(current, incoming):
            continue
        if is_revert(current, incoming):
            logger.warning(
                "Skipping %s: stored match is FINISHED, incoming status is %s",
                match_id, incoming["status"],
            )
            result.reverts_skipped += 1
            continue
        writes.append(Write.merge_into(layout.MATCHES, match_id, {
            "matchId": match_id,
            **incoming,
            "source": source,
            "lastUpdated": now,
        }))

    if writes:
        batches = store.commit_batched(writes, settings.write_batch_size)
        logger.info("Reconciled %d/%d matches from %s in %d batch(es)", len(writes), len(facts), source, batches)
    result.matches_updated = len(writes)

    if writes or force_recompute:
        result.leaderboard_recomputed = _safe_recompute(store, initiated_by)
    return result


def _safe_recompute(store: DocumentStore, initiated_by: str) -> bool:
    try:
        recompute(include_live=True, scoring_version=get_settings().scoring_version,
                  initiated_by=initiated_by, store=store)
    except Exception:
        logger.exception("Leaderboard recompute failed after reconciliation")
        return False
    return True


def count_matches_by_source(source: str, *, store: DocumentStore | None = None) -> int:
    store = store or db.get_store()
    return len(store.list(layout.MATCHES, where={"source": source}))


def delete_matches_by_source(source: str, *, store: DocumentStore | None = None) -> int:
    """Delete every match tagged with ``source``, one page at a time."""
    store = store or db.get_store()
    deleted = 0
    while True:
        page = store.list(layout.MATCHES, where={"source": source}, limit=DELETE_PAGE_SIZE)
        if not page:
            break
        store.commit([Write.delete(layout.MATCHES, snap.id) for snap in page])
        deleted += len(page)
    if deleted:
        logger.info("Deleted %d %s matches", deleted, source)
    return deleted
