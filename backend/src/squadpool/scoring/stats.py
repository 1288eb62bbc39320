"""Per-team tournament stats and the team points formula."""

from __future__ import annotations

from typing import Any, Iterable

from squadpool.models.common import as_non_negative, as_number_or_null, as_string
from squadpool.models.teams import TeamStats

WIN_POINTS = 3
DRAW_POINTS = 1
GOAL_POINTS = 1
CLEAN_SHEET_POINTS = 1
RED_CARD_POINTS = -1
YELLOW_CARD_POINTS = -0.5


def eligible_statuses(include_live: bool) -> tuple[str, ...]:
    return ("LIVE", "FINISHED") if include_live else ("FINISHED",)


def calc_team_points(stats: TeamStats) -> float:
    return (
        stats.wins * WIN_POINTS
        + stats.draws * DRAW_POINTS
        + stats.goals_scored * GOAL_POINTS
        + stats.clean_sheets * CLEAN_SHEET_POINTS
        + stats.red_cards * RED_CARD_POINTS
        + stats.yellow_cards * YELLOW_CARD_POINTS
    )


def accumulate_match(stats_by_team: dict[str, TeamStats], data: dict[str, Any], include_live: bool) -> bool:
    """Fold one stored match into the running stats. Returns False if skipped."""
    if data.get("status") not in eligible_statuses(include_live):
        return False

    home_id = as_string(data.get("homeTeamId"))
    away_id = as_string(data.get("awayTeamId"))
    home_score = as_number_or_null(data.get("homeScore"))
    away_score = as_number_or_null(data.get("awayScore"))
    if not home_id or not away_id or home_score is None or away_score is None:
        return False
    home_score, away_score = int(home_score), int(away_score)

    home = stats_by_team.setdefault(home_id, TeamStats())
    away = stats_by_team.setdefault(away_id, TeamStats())

    home.goals_scored += home_score
    home.goals_conceded += away_score
    away.goals_scored += away_score
    away.goals_conceded += home_score

    if home_score > away_score:
        home.wins += 1
        away.losses += 1
    elif home_score < away_score:
        away.wins += 1
        home.losses += 1
    else:
        home.draws += 1
        away.draws += 1

    if away_score == 0:
        home.clean_sheets += 1
    if home_score == 0:
        away.clean_sheets += 1

    home.red_cards += int(as_non_negative(data.get("homeRedCards")))
    home.yellow_cards += int(as_non_negative(data.get("homeYellowCards")))
    away.red_cards += int(as_non_negative(data.get("awayRedCards")))
    away.yellow_cards += int(as_non_negative(data.get("awayYellowCards")))
    return True


def aggregate_team_stats(matches: Iterable[dict[str, Any]], include_live: bool) -> dict[str, TeamStats]:
    """Rebuild every team's stats from scratch over the eligible matches."""
    stats_by_team: dict[str, TeamStats] = {}
    for data in matches:
        accumulate_match(stats_by_team, data, include_live)
    return stats_by_team


def as_score(value: float) -> float | int:
    """Store integral scores as ints so documents read naturally."""
    return int(value) if float(value).is_integer() else value
