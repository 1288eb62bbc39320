"""Provider adapters: interchangeable sources of normalized match facts.

Flow for every adapter:
  1. Produce raw match records (nothing, bundled fixture data, or live API)
  2. Normalize into ``MatchFact`` (dropping records that cannot be mapped)
  3. Apply the shared cutoff / max-matches truncation policy
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from squadpool.config import get_settings
from squadpool.errors import InvalidArgument
from squadpool.ingestion import football_data_client
from squadpool.ingestion.identity import TeamIdentityResolver
from squadpool.models.common import as_iso_or_null, as_number_or_null, as_string, parse_iso
from squadpool.models.liveops import PROVIDERS
from squadpool.models.matches import MatchFact

logger = logging.getLogger(__name__)

FIXTURE_PATH = Path(__file__).parent / "data" / "worldcup2022.json"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

# football-data status -> our status; anything unlisted drops the match
_STATUS_MAP: dict[str, str] = {
    "IN_PLAY": "LIVE",
    "PAUSED": "LIVE",
    "LIVE": "LIVE",
    "FINISHED": "FINISHED",
    "AWARDED": "FINISHED",
    "AFTER_EXTRA_TIME": "FINISHED",
    "PENALTY_SHOOTOUT": "FINISHED",
    "SCHEDULED": "SCHEDULED",
    "TIMED": "SCHEDULED",
    "POSTPONED": "SCHEDULED",
    "SUSPENDED": "SCHEDULED",
}

# football-data stage -> our stage; anything unlisted is GROUP
_STAGE_MAP: dict[str, str] = {
    "LAST_32": "R32",
    "ROUND_OF_32": "R32",
    "LAST_16": "R16",
    "ROUND_OF_16": "R16",
    "QUARTER_FINALS": "QF",
    "SEMI_FINALS": "SF",
    "FINAL": "FINAL",
    "THIRD_PLACE": "FINAL",
    "GROUP_STAGE": "GROUP",
}


@dataclass(frozen=True)
class ProviderRequest:
    provider: str = "stub"
    max_matches: int = 0
    cutoff_iso: str | None = None

    @classmethod
    def build(cls, provider: str, max_matches: Any = 0, cutoff_iso: Any = None) -> "ProviderRequest":
        """Validate raw inputs. Raises ``InvalidArgument`` on bad values."""
        if provider not in PROVIDERS:
            raise InvalidArgument(f"provider must be one of: {', '.join(PROVIDERS)}.")
        num = as_number_or_null(max_matches) if max_matches is not None else 0
        if num is None or num < 0:
            raise InvalidArgument("maxMatches must be a non-negative integer.")
        cutoff = as_string(cutoff_iso)
        if cutoff is not None and as_iso_or_null(cutoff) is None:
            raise InvalidArgument("cutoffIso must be a valid ISO timestamp.")
        return cls(provider=provider, max_matches=int(num), cutoff_iso=cutoff)


class MatchProvider(Protocol):
    name: str

    def fetch(self, request: ProviderRequest) -> list[MatchFact]: ...


def _kickoff_key(fact: MatchFact) -> datetime:
    return parse_iso(fact.kickoff_time) or _EPOCH


def filter_and_limit(
    facts: list[MatchFact],
    max_matches: int = 0,
    cutoff_iso: str | None = None,
) -> list[MatchFact]:
    """Keep facts at or before the cutoff, earliest kickoff first, capped."""
    cutoff = parse_iso(cutoff_iso) if cutoff_iso else None
    if cutoff is not None:
        facts = [
            f for f in facts
            if (ko := parse_iso(f.kickoff_time)) is not None and ko <= cutoff
        ]
    ordered = sorted(facts, key=_kickoff_key)
    return ordered[:max_matches] if max_matches > 0 else ordered


def _describe(request: ProviderRequest) -> str:
    parts = []
    if request.cutoff_iso:
        parts.append(f" (cutoff {request.cutoff_iso})")
    if request.max_matches > 0:
        parts.append(f" (max {request.max_matches})")
    return "".join(parts)


class StubProvider:
    """Safe default: yields nothing, so a run performs no writes."""

    name = "stub"

    def fetch(self, request: ProviderRequest) -> list[MatchFact]:
        logger.info("Stub provider selected. Skipping ingestion.")
        return []


class FixtureProvider:
    """Deterministic replay of a bundled match dataset."""

    name = "fixture"

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or FIXTURE_PATH

    def load(self) -> list[MatchFact]:
        with self.path.open(encoding="utf-8") as fh:
            raw = json.load(fh)
        facts: list[MatchFact] = []
        for item in raw if isinstance(raw, list) else []:
            try:
                facts.append(MatchFact.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping invalid fixture entry %r: %s", item.get("matchId") if isinstance(item, dict) else item, e.errors()[0]["msg"])
        return facts

    def fetch(self, request: ProviderRequest) -> list[MatchFact]:
        limited = filter_and_limit(self.load(), request.max_matches, request.cutoff_iso)
        logger.info("Fixture provider loaded %d matches%s", len(limited), _describe(request))
        return limited


def to_status(value: Any) -> str | None:
    raw = as_string(value)
    return _STATUS_MAP.get(raw.upper()) if raw else None


def to_stage(value: Any) -> str:
    raw = as_string(value)
    return _STAGE_MAP.get(raw.upper(), "GROUP") if raw else "GROUP"


def extract_score(score: dict[str, Any] | None, side: str) -> int | None:
    """First non-null of fullTime, regularTime, extraTime, halfTime."""
    if not isinstance(score, dict):
        return None
    for period in ("fullTime", "regularTime", "extraTime", "halfTime"):
        values = score.get(period)
        if not isinstance(values, dict):
            continue
        value = as_number_or_null(values.get(side))
        if value is not None:
            return int(value)
    return None


class LiveProvider:
    """football-data.org adapter with timeout, bounded retry and team mapping."""

    name = "provider"

    def __init__(self, resolver: TeamIdentityResolver, token: str | None = None) -> None:
        self.resolver = resolver
        self.token = token

    def _token(self) -> str | None:
        return as_string(self.token) or as_string(get_settings().football_data_token)

    def map_matches(self, raw_matches: list[dict[str, Any]]) -> list[MatchFact]:
        lookup = self.resolver.lookup()
        mapped: list[MatchFact] = []
        for raw in raw_matches:
            if not isinstance(raw, dict):
                logger.debug("Dropping non-object provider match %r", raw)
                continue
            raw_id = raw.get("id")
            match_id = f"fd-{raw_id}" if isinstance(raw_id, (int, str)) and str(raw_id) else None
            home = self.resolver.resolve(raw.get("homeTeam"), lookup)
            away = self.resolver.resolve(raw.get("awayTeam"), lookup)
            status = to_status(raw.get("status"))
            if not match_id or not home or not away or not status:
                logger.debug("Dropping unmappable provider match %r", raw_id)
                continue
            try:
                fact = MatchFact(
                    match_id=match_id,
                    home_team_id=home,
                    away_team_id=away,
                    home_score=extract_score(raw.get("score"), "home"),
                    away_score=extract_score(raw.get("score"), "away"),
                    status=status,
                    stage=to_stage(raw.get("stage")),
                    kickoff_time=raw.get("utcDate"),
                )
            except ValidationError as e:
                logger.debug("Dropping invalid provider match %r: %s", raw_id, e.errors()[0]["msg"])
                continue
            mapped.append(fact)
        return mapped

    def fetch(self, request: ProviderRequest) -> list[MatchFact]:
        token = self._token()
        if token is None:
            logger.warning("FOOTBALL_DATA_TOKEN missing. Skipping provider ingest.")
            return []

        payload = football_data_client.fetch_competition_matches(token)
        raw_matches = payload.get("matches")
        if not isinstance(raw_matches, list) or not raw_matches:
            return []

        limited = filter_and_limit(self.map_matches(raw_matches), request.max_matches, request.cutoff_iso)
        logger.info(
            "Provider loaded %d mapped matches (competition %s)%s",
            len(limited), get_settings().football_data_competition, _describe(request),
        )
        return limited


def get_provider(name: str, resolver: TeamIdentityResolver, fixture_path: Path | None = None) -> MatchProvider:
    if name == "stub":
        return StubProvider()
    if name == "fixture":
        return FixtureProvider(fixture_path)
    if name == "provider":
        return LiveProvider(resolver)
    raise InvalidArgument(f"Unsupported provider: {name!r}")


def fetch_provider_matches(
    request: ProviderRequest,
    resolver: TeamIdentityResolver,
    fixture_path: Path | None = None,
) -> list[MatchFact]:
    """Dispatch a provider request. Provider failures propagate to the caller."""
    return get_provider(request.provider, resolver, fixture_path).fetch(request)
