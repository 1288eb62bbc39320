"""Per-team tournament stats as stored on team documents."""

from __future__ import annotations

from typing import Any

from pydantic.alias_generators import to_camel

from squadpool.models.common import Document, as_non_negative


class TeamStats(Document):
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_scored: int = 0
    goals_conceded: int = 0
    clean_sheets: int = 0
    red_cards: int = 0
    yellow_cards: int = 0

    @classmethod
    def from_doc(cls, data: dict[str, Any]) -> "TeamStats":
        return cls(**{
            name: int(as_non_negative(data.get(to_camel(name))))
            for name in cls.model_fields
        })

