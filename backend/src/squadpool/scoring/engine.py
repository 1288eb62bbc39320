"""Scoring recomputation: matches -> team stats -> participant totals -> leaderboard.

Flow:
  1. Scan all matches and rebuild per-team stats from the eligible ones
  2. Derive team points and persist stats/points for every catalog team
  3. Sum each participant's lifetime transfer penalty from the full ledger
  4. Total = 2 x featured + sum(drawn) - penalty; persist per participant
  5. Rank and replace the ``leaderboard/current`` snapshot in one write

Everything is recomputed from scratch on every run. A store failure at any
step raises before the snapshot is replaced.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from squadpool import db
from squadpool.config import get_settings
from squadpool.errors import NotFound
from squadpool.models import layout
from squadpool.models.common import Document, as_number_or_null, as_string, utcnow_iso
from squadpool.models.leaderboard import LEADERBOARD_DOC_ID, LeaderboardRow, LeaderboardSnapshot
from squadpool.models.participants import Squad
from squadpool.models.teams import TeamStats
from squadpool.scoring.squads import department, display_name, resolve_squad
from squadpool.scoring.stats import aggregate_team_stats, as_score, calc_team_points
from squadpool.store.base import DocumentSnapshot, DocumentStore, Write

logger = logging.getLogger(__name__)


class RecomputeResult(Document):
    ok: bool = True
    participants_processed: int
    matches_scanned: int
    transfer_events_scanned: int
    include_live: bool


class ParticipantScore(Document):
    user_id: str
    featured_points: float
    drawn_points: float
    transfer_penalty_points: float
    total_score: float


def event_penalty(data: dict[str, Any], default: float | None = None) -> float:
    """Penalty recorded on a ledger event, or the default when missing."""
    if default is None:
        default = get_settings().transfer_penalty_points
    value = as_number_or_null(data.get("scoringPenaltyPoints"))
    return default if value is None else value


def sum_penalties(events: Iterable[DocumentSnapshot], default: float | None = None) -> dict[str, float]:
    totals: dict[str, float] = {}
    for event in events:
        uid = as_string(event.data.get("uid"))
        if uid is None:
            continue
        totals[uid] = totals.get(uid, 0) + event_penalty(event.data, default)
    return totals


def squad_total(squad: Squad, team_points: dict[str, float], penalty: float) -> tuple[float, float, float]:
    """Return ``(featured_points, drawn_points, total)`` for a squad."""
    featured = team_points.get(squad.featured_team_id, 0) if squad.featured_team_id else 0
    drawn = sum(team_points.get(t, 0) for t in squad.drawn_team_ids)
    return featured, drawn, featured * 2 + drawn - penalty


def rank_rows(rows: list[LeaderboardRow]) -> list[LeaderboardRow]:
    """Sort by score desc, display name asc, and assign 1-based ranks."""
    ordered = sorted(rows, key=lambda r: (-r.total_score, r.display_name.casefold(), r.user_id))
    for idx, row in enumerate(ordered, start=1):
        row.rank = idx
    return ordered


def team_points_from_matches(
    teams: list[DocumentSnapshot],
    matches: Iterable[dict[str, Any]],
    include_live: bool,
) -> tuple[dict[str, TeamStats], dict[str, float]]:
    stats_by_team = aggregate_team_stats(matches, include_live)
    stats: dict[str, TeamStats] = {}
    points: dict[str, float] = {}
    for team in teams:
        stats[team.id] = stats_by_team.get(team.id, TeamStats())
        points[team.id] = calc_team_points(stats[team.id])
    return stats, points


def recompute(
    include_live: bool = True,
    scoring_version: str | None = None,
    initiated_by: str = "system",
    *,
    store: DocumentStore | None = None,
) -> RecomputeResult:
    """Rebuild all team stats, participant totals and the leaderboard snapshot."""
    store = store or db.get_store()
    settings = get_settings()
    scoring_version = scoring_version or settings.scoring_version
    batch_size = settings.write_batch_size
    now = utcnow_iso()

    matches = store.list(layout.MATCHES)
    teams = store.list(layout.TEAMS)
    stats, team_points = team_points_from_matches(teams, (m.data for m in matches), include_live)

    team_writes = [
        Write.merge_into(layout.TEAMS, team_id, {
            **stats[team_id].to_doc(),
            "points": as_score(team_points[team_id]),
            "lastUpdated": now,
        })
        for team_id in stats
    ]
    store.commit_batched(team_writes, batch_size)

    participants = store.list(layout.PARTICIPANTS)
    events = store.list(layout.TRANSFER_EVENTS)
    penalties = sum_penalties(events, settings.transfer_penalty_points)

    rows: list[LeaderboardRow] = []
    participant_writes: list[Write] = []
    for participant in participants:
        squad = resolve_squad(participant.data)
        penalty = penalties.get(participant.id, 0)
        _, _, total = squad_total(squad, team_points, penalty)

        rows.append(LeaderboardRow(
            user_id=participant.id,
            display_name=display_name(participant.data),
            total_score=as_score(total),
            rank=0,
            department=department(participant.data),
        ))
        participant_writes.append(Write.merge_into(layout.PARTICIPANTS, participant.id, {
            "totalScore": as_score(total),
            "transferPenaltyPoints": as_score(penalty),
            "scoreUpdatedAt": now,
        }))
    store.commit_batched(participant_writes, batch_size)

    snapshot = LeaderboardSnapshot(
        rows=rank_rows(rows),
        last_updated=now,
        scoring_version=scoring_version,
        include_live=include_live,
        updated_by=initiated_by,
    )
    store.commit([Write.set(layout.LEADERBOARD, LEADERBOARD_DOC_ID, snapshot.to_doc())])

    logger.info(
        "Recomputed scores: %d participants, %d matches, %d transfer events (includeLive=%s, by %s)",
        len(rows), len(matches), len(events), include_live, initiated_by,
    )
    return RecomputeResult(
        participants_processed=len(rows),
        matches_scanned=len(matches),
        transfer_events_scanned=len(events),
        include_live=include_live,
    )


def score_participant(
    uid: str,
    include_live: bool = True,
    *,
    store: DocumentStore | None = None,
) -> ParticipantScore:
    """Compute one participant's current breakdown without writing anything."""
    store = store or db.get_store()
    data = store.get(layout.PARTICIPANTS, uid)
    if data is None:
        raise NotFound(f"Participant {uid} not found.")

    _, team_points = team_points_from_matches(
        store.list(layout.TEAMS),
        (m.data for m in store.list(layout.MATCHES)),
        include_live,
    )
    penalty = sum(event_penalty(e.data) for e in store.list(layout.TRANSFER_EVENTS, where={"uid": uid}))
    featured, drawn, total = squad_total(resolve_squad(data), team_points, penalty)
    return ParticipantScore(
        user_id=uid,
        featured_points=featured,
        drawn_points=drawn,
        transfer_penalty_points=penalty,
        total_score=total,
    )
