"""Models for the leaderboard snapshot."""

from __future__ import annotations

from pydantic import Field

from squadpool.models.common import Document
from squadpool.models.participants import Department

LEADERBOARD_DOC_ID = "current"


class LeaderboardRow(Document):
    user_id: str
    display_name: str
    total_score: float
    rank: int
    department: Department | None = None


class LeaderboardSnapshot(Document):
    rows: list[LeaderboardRow] = Field(default_factory=list)
    last_updated: str
    scoring_version: str
    include_live: bool
    updated_by: str
