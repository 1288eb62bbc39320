"""Manual match corrections made by an admin."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from squadpool import db
from squadpool.auth import Caller, require_admin
from squadpool.errors import InvalidArgument
from squadpool.models import layout
from squadpool.models.common import as_number_or_null, as_string, utcnow_iso
from squadpool.models.matches import FACT_FIELDS, MATCH_STAGES, MATCH_STATUSES, Match
from squadpool.store.base import DocumentStore, Write

logger = logging.getLogger(__name__)


def _pick(fields: dict[str, Any], existing: dict[str, Any], key: str, default: Any = None) -> Any:
    value = fields.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        value = existing.get(key)
    return default if value is None else value


def _enum(value: Any, allowed: tuple[str, ...]) -> str | None:
    raw = as_string(value)
    return raw.upper() if raw and raw.upper() in allowed else None


def admin_upsert_match(
    caller: Caller | None,
    fields: dict[str, Any],
    *,
    store: DocumentStore | None = None,
) -> Match:
    """Create or patch one match, tagged ``source=manual``.

    Unspecified fields keep their stored values. Unlike provider ingest this
    may move a FINISHED match back to SCHEDULED or LIVE.
    """
    caller = require_admin(caller)
    store = store or db.get_store()
    fields = fields or {}

    match_id = as_string(fields.get("matchId"))
    if match_id is None:
        raise InvalidArgument("matchId is required.")

    existing = store.get(layout.MATCHES, match_id) or {}
    home = as_string(fields.get("homeTeamId")) or as_string(existing.get("homeTeamId"))
    away = as_string(fields.get("awayTeamId")) or as_string(existing.get("awayTeamId"))
    if not home or not away:
        raise InvalidArgument("homeTeamId and awayTeamId are required.")

    status = _enum(fields.get("status"), MATCH_STATUSES) or _enum(existing.get("status"), MATCH_STATUSES) or "SCHEDULED"
    stage = _enum(fields.get("stage"), MATCH_STAGES) or _enum(existing.get("stage"), MATCH_STAGES) or "GROUP"

    def score(key: str) -> Any:
        value = as_number_or_null(fields.get(key))
        return value if value is not None else as_number_or_null(existing.get(key))

    try:
        match = Match(
            match_id=match_id,
            home_team_id=home,
            away_team_id=away,
            home_score=score("homeScore"),
            away_score=score("awayScore"),
            status=status,
            stage=stage,
            kickoff_time=_pick(fields, existing, "kickoffTime"),
            home_red_cards=_pick(fields, existing, "homeRedCards", 0),
            home_yellow_cards=_pick(fields, existing, "homeYellowCards", 0),
            away_red_cards=_pick(fields, existing, "awayRedCards", 0),
            away_yellow_cards=_pick(fields, existing, "awayYellowCards", 0),
            source="manual",
            last_updated=utcnow_iso(),
        )
    except ValidationError as e:
        raise InvalidArgument(f"Invalid match: {e.errors()[0]['msg']}") from e

    doc = match.to_doc()
    payload = {"matchId": match_id, **{k: doc[k] for k in FACT_FIELDS}, "source": "manual", "lastUpdated": doc["lastUpdated"]}
    store.commit([Write.merge_into(layout.MATCHES, match_id, payload)])
    logger.info("Match %s upserted by %s (%s %s)", match_id, caller.uid, status, stage)
    return match
