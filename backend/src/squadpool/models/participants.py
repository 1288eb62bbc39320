"""Models for participant squads and the transfer ledger."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from squadpool.models.common import Document

SQUAD_DRAWN_SIZE = 5

PortfolioRole = Literal["featured", "drawn"]
Department = Literal["Primary", "Secondary", "Admin"]


class PortfolioItem(Document):
    team_id: str
    role: PortfolioRole


class Squad(Document):
    """Canonical squad resolved from whichever stored shape a participant has."""

    featured_team_id: str | None = None
    drawn_team_ids: list[str] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.featured_team_id is not None and len(self.drawn_team_ids) > 0

    @property
    def team_ids(self) -> list[str]:
        head = [self.featured_team_id] if self.featured_team_id else []
        return head + list(self.drawn_team_ids)

    def to_portfolio(self) -> list[dict]:
        items: list[PortfolioItem] = []
        if self.featured_team_id:
            items.append(PortfolioItem(team_id=self.featured_team_id, role="featured"))
        items.extend(PortfolioItem(team_id=t, role="drawn") for t in self.drawn_team_ids)
        return [i.to_doc() for i in items]


class TransferEvent(Document):
    uid: str
    drop_team_id: str
    pickup_team_id: str
    remaining_transfers_before: int
    remaining_transfers_after: int
    scoring_penalty_applied: bool = True
    scoring_penalty_points: float
    scoring_penalty_version: str
    created_at: str
    source: str = "executeTransfer"
