"""Resolve a participant document into one canonical squad.

Participants may carry either or both stored shapes:

  A) ``entry``: ``{featuredTeamId, drawnTeamIds}``
  B) ``portfolio``: ``[{teamId, role: "featured" | "drawn"}]``

The explicit entry wins; the portfolio fills whatever the entry lacks.
Nothing outside this module branches on the shape.
"""

from __future__ import annotations

from typing import Any

from squadpool.models.common import as_string
from squadpool.models.participants import SQUAD_DRAWN_SIZE, Squad

DEPARTMENTS = ("Primary", "Secondary", "Admin")


def _uniq(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def resolve_squad(data: dict[str, Any] | None) -> Squad:
    data = data or {}

    entry = data.get("entry") if isinstance(data.get("entry"), dict) else {}
    entry_featured = as_string(entry.get("featuredTeamId"))
    raw_drawn = entry.get("drawnTeamIds")
    entry_drawn = [t for t in map(as_string, raw_drawn if isinstance(raw_drawn, list) else []) if t]

    portfolio = data.get("portfolio") if isinstance(data.get("portfolio"), list) else []
    portfolio_featured: str | None = None
    portfolio_drawn: list[str] = []
    for item in portfolio:
        if not isinstance(item, dict):
            continue
        team_id = as_string(item.get("teamId"))
        if not team_id:
            continue
        if item.get("role") == "featured" and portfolio_featured is None:
            portfolio_featured = team_id
        elif item.get("role") == "drawn":
            portfolio_drawn.append(team_id)

    featured = entry_featured or portfolio_featured
    drawn = entry_drawn or portfolio_drawn
    drawn = [t for t in _uniq(drawn) if t != featured][:SQUAD_DRAWN_SIZE]
    return Squad(featured_team_id=featured, drawn_team_ids=drawn)


def display_name(data: dict[str, Any] | None) -> str:
    data = data or {}
    return (
        as_string(data.get("displayName"))
        or as_string(data.get("name"))
        or as_string(data.get("email"))
        or "Anonymous"
    )


def department(data: dict[str, Any] | None) -> str | None:
    value = (data or {}).get("department")
    return value if value in DEPARTMENTS else None


def squad_fields(squad: Squad, existing_entry: Any = None) -> dict[str, Any]:
    """Both stored shapes for a squad, preserving any extra entry keys."""
    entry = dict(existing_entry) if isinstance(existing_entry, dict) else {}
    entry["featuredTeamId"] = squad.featured_team_id
    entry["drawnTeamIds"] = list(squad.drawn_team_ids)
    return {"portfolio": squad.to_portfolio(), "entry": entry}
