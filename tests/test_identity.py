"""Tests for team identity tokens, lookup building and the TTL cache."""

from conftest import seed_teams

from squadpool.ingestion.identity import (
    TeamIdentityResolver,
    TeamLookupCache,
    build_team_lookup,
    to_code_token,
    to_name_token,
)
from squadpool.store.base import DocumentSnapshot


class TestTokens:

    def test_code_token_keeps_underscore(self):
        assert to_code_token(" ko_r ") == "KO_R"

    def test_name_token_strips_everything_else(self):
        assert to_name_token("Côte d'Ivoire") == "CTEDIVOIRE"
        assert to_name_token("Korea Republic") == "KOREAREPUBLIC"

    def test_empty_and_non_strings(self):
        assert to_code_token("") is None
        assert to_code_token("  ") is None
        assert to_code_token(42) is None
        assert to_name_token("!!!") is None


class TestBuildTeamLookup:

    def test_keys_names_and_aliases(self):
        lookup = build_team_lookup([
            DocumentSnapshot("HRV", {"id": "HRV", "name": "Croatia"}),
            DocumentSnapshot("USA", {"id": "USA", "name": "USA"}),
        ])
        assert lookup["HRV"] == "HRV"
        assert lookup["CROATIA"] == "HRV"
        assert lookup["UNITEDSTATES"] == "USA"
        assert lookup["IVORYCOAST"] == "CIV"

    def test_first_writer_wins(self):
        lookup = build_team_lookup([
            DocumentSnapshot("AAA", {"id": "AAA", "name": "Shared"}),
            DocumentSnapshot("BBB", {"id": "BBB", "name": "Shared"}),
        ])
        assert lookup["SHARED"] == "AAA"

    def test_falls_back_to_document_id(self):
        lookup = build_team_lookup([DocumentSnapshot("arg", {"name": "Argentina"})])
        assert lookup["ARGENTINA"] == "ARG"


class TestTeamLookupCache:

    def test_rebuilds_only_after_ttl(self):
        now = [100.0]
        calls = []

        def build():
            calls.append(now[0])
            return {"X": "X"}

        cache = TeamLookupCache(ttl_s=300, clock=lambda: now[0])
        cache.get(build)
        now[0] = 399.0
        cache.get(build)
        assert len(calls) == 1

        now[0] = 400.0
        cache.get(build)
        assert len(calls) == 2


class TestTeamIdentityResolver:

    def test_resolves_code_then_name(self, store):
        seed_teams(store, "ENG", "KOR", "USA", ENG="England", KOR="Korea Republic", USA="USA")
        resolver = TeamIdentityResolver(store)

        assert resolver.resolve({"tla": "ENG", "name": "England"}) == "ENG"
        assert resolver.resolve({"name": "United States"}) == "USA"
        assert resolver.resolve({"shortName": "Korea Republic"}) == "KOR"

    def test_unknown_team(self, store):
        seed_teams(store, "ENG")
        resolver = TeamIdentityResolver(store)
        assert resolver.resolve({"tla": "XYZ", "name": "Atlantis"}) is None
        assert resolver.resolve(None) is None
        assert resolver.resolve("ENG") is None
        assert resolver.resolve(["ENG"]) is None

    def test_stale_lookup_within_ttl(self, store):
        seed_teams(store, "ENG")
        resolver = TeamIdentityResolver(store, TeamLookupCache(ttl_s=300, clock=lambda: 0.0))
        assert resolver.resolve({"tla": "FRA"}) is None

        seed_teams(store, "FRA")
        assert resolver.resolve({"tla": "FRA"}) is None
