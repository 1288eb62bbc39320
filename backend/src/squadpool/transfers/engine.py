"""Transfers: swap one drawn team for another inside a store transaction.

Flow:
  1. Validate inputs (both keys present, drop != pickup)
  2. In one transaction, read participant + pickup team + transfer window,
     check every precondition, then write the new squad and one ledger event
  3. After commit, recompute scores; a failure there is reported, not raised
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from squadpool import db
from squadpool.auth import Caller, require_auth
from squadpool.config import get_settings
from squadpool.errors import FailedPrecondition, InvalidArgument, NotFound, PermissionDenied
from squadpool.models import layout
from squadpool.models.common import Document, as_non_negative_int, as_string, utcnow, utcnow_iso
from squadpool.models.liveops import TRANSFER_WINDOW_DOC_ID
from squadpool.models.participants import Squad, TransferEvent
from squadpool.scoring.engine import ParticipantScore, recompute, score_participant
from squadpool.scoring.squads import display_name, resolve_squad, squad_fields
from squadpool.store.base import DocumentStore, Transaction
from squadpool.transfers.window import is_transfer_window_open

logger = logging.getLogger(__name__)


class TransferResult(Document):
    ok: bool = True
    remaining_transfers: int
    featured_team_key: str
    drawn_team_keys: list[str]
    transfer_event_id: str
    leaderboard_recomputed: bool = False
    transfer_penalty_points: float
    scoring_penalty_version: str


def apply_transfer(squad: Squad, drop: str, pickup: str) -> Squad:
    """Return the squad with ``drop`` replaced by ``pickup`` in place.

    Raises ``FailedPrecondition`` for any rule the swap would break.
    """
    if not squad.is_complete:
        raise FailedPrecondition("You must complete team selection before transferring.")
    if drop == squad.featured_team_id:
        raise FailedPrecondition("Featured team cannot be transferred.")
    if drop not in squad.drawn_team_ids:
        raise FailedPrecondition("You can only drop one of your drawn teams.")
    if pickup in squad.team_ids:
        raise FailedPrecondition("Pickup team is already in your squad.")

    drawn = list(squad.drawn_team_ids)
    drawn[drawn.index(drop)] = pickup
    return Squad(featured_team_id=squad.featured_team_id, drawn_team_ids=drawn)


def execute_transfer(
    caller: Caller | None,
    drop_team_key: Any,
    pickup_team_key: Any,
    *,
    store: DocumentStore | None = None,
    now: datetime | None = None,
) -> TransferResult:
    caller = require_auth(caller)
    store = store or db.get_store()
    settings = get_settings()

    uid = caller.uid
    drop = as_string(drop_team_key)
    pickup = as_string(pickup_team_key)
    if not drop or not pickup:
        raise InvalidArgument("dropTeamId and pickupTeamId are required.")
    if drop == pickup:
        raise InvalidArgument("dropTeamId and pickupTeamId must be different.")

    now = now or utcnow()
    event_id = store.new_id()
    penalty = settings.transfer_penalty_points
    version = settings.transfer_scoring_version

    def txn(tx: Transaction) -> TransferResult:
        participant = tx.get(layout.PARTICIPANTS, uid)
        pickup_team = tx.get(layout.TEAMS, pickup)
        window = tx.get(layout.SETTINGS, TRANSFER_WINDOW_DOC_ID)

        if participant is None:
            raise NotFound("Participant profile is missing. Sign out and sign in again.")
        if pickup_team is None:
            raise NotFound("Pickup team does not exist.")
        if not is_transfer_window_open(window, now):
            raise FailedPrecondition("Transfer window is closed.")

        remaining_before = as_non_negative_int(participant.get("remainingTransfers"))

        # Squad rules are checked before the transfer budget
        next_squad = apply_transfer(resolve_squad(participant), drop, pickup)
        if remaining_before <= 0:
            raise FailedPrecondition("No transfers remaining.")
        if len(set(next_squad.drawn_team_ids)) != len(next_squad.drawn_team_ids):
            raise FailedPrecondition("Invalid transfer: duplicate team in drawn squad.")

        remaining_after = remaining_before - 1
        tx.merge(layout.PARTICIPANTS, uid, {
            **squad_fields(next_squad, participant.get("entry")),
            "remainingTransfers": remaining_after,
            "updatedAt": utcnow_iso(),
        })
        event = TransferEvent(
            uid=uid,
            drop_team_id=drop,
            pickup_team_id=pickup,
            remaining_transfers_before=remaining_before,
            remaining_transfers_after=remaining_after,
            scoring_penalty_points=penalty,
            scoring_penalty_version=version,
            created_at=utcnow_iso(),
        )
        tx.set(layout.TRANSFER_EVENTS, event_id, event.to_doc())
        return TransferResult(
            remaining_transfers=remaining_after,
            featured_team_key=next_squad.featured_team_id,
            drawn_team_keys=next_squad.drawn_team_ids,
            transfer_event_id=event_id,
            transfer_penalty_points=penalty,
            scoring_penalty_version=version,
        )

    result = store.run_transaction(txn, settings.transaction_max_attempts)
    logger.info("Transfer %s: %s dropped %s for %s (%d left)", event_id, uid, drop, pickup, result.remaining_transfers)

    try:
        recompute(include_live=True, scoring_version=settings.scoring_version, initiated_by=uid, store=store)
        result.leaderboard_recomputed = True
    except Exception:
        logger.exception("Recompute after transfer %s failed", event_id)
    return result


# ── Squad details ─────────────────────────────────────────


def _team_out(team_id: str, data: dict[str, Any] | None) -> dict[str, Any]:
    if data is None:
        return {"id": team_id}
    tier = data.get("tier")
    return {
        "id": team_id,
        "name": data.get("name"),
        "group": data.get("group"),
        "tier": tier if isinstance(tier, int) and not isinstance(tier, bool) else None,
        "flagUrl": data.get("flagUrl"),
    }


def get_squad_details(
    caller: Caller | None,
    participant_id: str | None = None,
    *,
    store: DocumentStore | None = None,
) -> dict[str, Any]:
    """A participant's squad with team details and score breakdown.

    Participants may read only their own squad; admins may read any.
    """
    caller = require_auth(caller)
    store = store or db.get_store()
    uid = as_string(participant_id) or caller.uid
    if uid != caller.uid and not caller.is_admin:
        raise PermissionDenied("You can only access your own squad details.")

    participant = store.get(layout.PARTICIPANTS, uid)
    if participant is None:
        return {"ok": True, "user_id": uid, "display_name": "Anonymous", "featured": None, "drawn": [], "score": None}

    squad = resolve_squad(participant)
    teams = store.get_all(layout.TEAMS, squad.team_ids)
    unresolved = [t for t in squad.team_ids if teams.get(t) is None]
    if unresolved:
        # Teams keyed by a different doc id but carrying an ``id`` field
        for snap in store.list(layout.TEAMS):
            internal = as_string(snap.data.get("id"))
            if internal in unresolved:
                teams[internal] = snap.data

    score: ParticipantScore = score_participant(uid, store=store)
    return {
        "ok": True,
        "user_id": uid,
        "display_name": display_name(participant),
        "featured": _team_out(squad.featured_team_id, teams.get(squad.featured_team_id)) if squad.featured_team_id else None,
        "drawn": [_team_out(t, teams.get(t)) for t in squad.drawn_team_ids],
        "remaining_transfers": as_non_negative_int(participant.get("remainingTransfers")),
        "score": score.to_doc(),
    }
