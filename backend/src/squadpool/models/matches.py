"""Models for matches and normalized provider match facts."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import field_validator

from squadpool.models.common import (
    Document,
    as_iso_or_null,
    as_non_negative,
    as_number_or_null,
)

MatchStatus = Literal["SCHEDULED", "LIVE", "FINISHED"]
MatchStage = Literal["GROUP", "R32", "R16", "QF", "SF", "FINAL"]
MatchSource = Literal["manual", "fixture", "provider"]

MATCH_STATUSES: tuple[str, ...] = ("SCHEDULED", "LIVE", "FINISHED")
MATCH_STAGES: tuple[str, ...] = ("GROUP", "R32", "R16", "QF", "SF", "FINAL")

# Fields compared by the reconciler; source/lastUpdated are bookkeeping.
FACT_FIELDS: tuple[str, ...] = (
    "homeTeamId",
    "awayTeamId",
    "homeScore",
    "awayScore",
    "status",
    "stage",
    "kickoffTime",
    "homeRedCards",
    "homeYellowCards",
    "awayRedCards",
    "awayYellowCards",
)


class MatchFact(Document):
    match_id: str
    home_team_id: str
    away_team_id: str
    home_score: int | None = None
    away_score: int | None = None
    status: MatchStatus
    stage: MatchStage
    kickoff_time: str | None = None
    home_red_cards: int = 0
    home_yellow_cards: int = 0
    away_red_cards: int = 0
    away_yellow_cards: int = 0

    @field_validator("match_id", "home_team_id", "away_team_id", mode="before")
    @classmethod
    def _strip_keys(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("must not be empty")
        return v

    @field_validator("home_score", "away_score", mode="before")
    @classmethod
    def _score(cls, v: Any) -> Any:
        num = as_number_or_null(v)
        return int(num) if num is not None else None

    @field_validator("kickoff_time", mode="before")
    @classmethod
    def _kickoff(cls, v: Any) -> str | None:
        return as_iso_or_null(v)

    @field_validator(
        "home_red_cards", "home_yellow_cards", "away_red_cards", "away_yellow_cards",
        mode="before",
    )
    @classmethod
    def _cards(cls, v: Any) -> int:
        return int(as_non_negative(v))

    def fact_fields(self) -> dict[str, Any]:
        doc = self.to_doc()
        return {k: doc[k] for k in FACT_FIELDS}


class Match(MatchFact):
    source: MatchSource = "manual"
    last_updated: str | None = None
