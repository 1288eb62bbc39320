"""Map upstream team identifiers and names onto canonical team keys.

The lookup is built from the team catalog (each team's key and display
name) plus a small alias table for spellings that differ between providers.
It is cached for a fixed TTL; callers accept staleness up to that window and
never invalidate it explicitly.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from squadpool.config import get_settings
from squadpool.models import layout
from squadpool.models.common import as_string
from squadpool.store.base import DocumentSnapshot, DocumentStore

logger = logging.getLogger(__name__)


# Normalized provider name -> canonical team key
TEAM_NAME_ALIASES: dict[str, str] = {
    "CROATIA": "HRV",
    "UNITEDSTATES": "USA",
    "USA": "USA",
    "KOREAREPUBLIC": "KOR",
    "REPUBLICOFKOREA": "KOR",
    "COTEDIVOIRE": "CIV",
    "IVORYCOAST": "CIV",
}

_CODE_STRIP = re.compile(r"[^A-Z0-9_]")
_NAME_STRIP = re.compile(r"[^A-Z0-9]")


def to_code_token(value: Any) -> str | None:
    raw = as_string(value)
    if raw is None:
        return None
    token = _CODE_STRIP.sub("", raw.upper())
    return token or None


def to_name_token(value: Any) -> str | None:
    raw = as_string(value)
    if raw is None:
        return None
    token = _NAME_STRIP.sub("", raw.upper())
    return token or None


def build_team_lookup(teams: Iterable[DocumentSnapshot]) -> dict[str, str]:
    """Build token -> team key from a catalog snapshot. First writer wins."""
    lookup: dict[str, str] = {}

    def add(token: str | None, team_key: str) -> None:
        if token and token not in lookup:
            lookup[token] = team_key

    for snap in teams:
        team_key = to_code_token(snap.data.get("id")) or to_code_token(snap.id)
        if team_key is None:
            continue
        add(team_key, team_key)
        add(to_name_token(snap.data.get("name")), team_key)

    for alias, team_key in TEAM_NAME_ALIASES.items():
        add(alias, team_key)

    return lookup


@dataclass
class TeamLookupCache:
    """A single cached lookup with a timestamped expiry."""

    ttl_s: float
    clock: Callable[[], float] = time.monotonic
    _lookup: dict[str, str] | None = field(default=None, init=False)
    _expires_at: float = field(default=0.0, init=False)

    def get(self, build: Callable[[], dict[str, str]]) -> dict[str, str]:
        now = self.clock()
        if self._lookup is not None and self._expires_at > now:
            return self._lookup
        lookup = build()
        self._lookup = lookup
        self._expires_at = now + self.ttl_s
        logger.debug("Rebuilt team lookup with %d tokens", len(lookup))
        return lookup


class TeamIdentityResolver:

    def __init__(self, store: DocumentStore, cache: TeamLookupCache | None = None) -> None:
        self.store = store
        self.cache = cache or TeamLookupCache(ttl_s=get_settings().team_lookup_ttl_s)

    def lookup(self) -> dict[str, str]:
        return self.cache.get(lambda: build_team_lookup(self.store.list(layout.TEAMS)))

    def resolve(self, raw_team: dict[str, Any] | None, lookup: dict[str, str] | None = None) -> str | None:
        """Resolve a provider team object ({tla, shortName, name}) to a team key.

        Code-like candidates are tried before normalized names. Returns
        ``None`` when nothing matches.
        """
        if not isinstance(raw_team, dict):
            return None
        lookup = lookup if lookup is not None else self.lookup()

        code_candidates = [
            to_code_token(raw_team.get("tla")),
            to_code_token(raw_team.get("shortName")),
            to_code_token(raw_team.get("name")),
        ]
        name_candidates = [
            to_name_token(raw_team.get("name")),
            to_name_token(raw_team.get("shortName")),
        ]
        for candidate in code_candidates + name_candidates:
            if candidate and candidate in lookup:
                return lookup[candidate]
        return None
