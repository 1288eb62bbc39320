"""Tests for scheduled ingest, admin fixture flows, settings and manual edits."""

import pytest

from conftest import seed_match, seed_participant, seed_teams

from squadpool.auth import SCHEDULER, Caller
from squadpool.config import reset_settings
from squadpool.errors import FailedPrecondition, InvalidArgument, PermissionDenied, ProviderError
from squadpool.ingestion import liveops
from squadpool.ingestion.liveops import (
    ScheduledIngest,
    admin_ingest_fixture,
    admin_recompute,
    admin_reset_fixture_ingest,
    get_live_ops_config,
    run_scheduled_ingest,
    set_live_ops_settings,
)
from squadpool.ingestion.manual import admin_upsert_match
from squadpool.models import layout
from squadpool.store.base import Write

ADMIN = Caller(uid="admin-1", is_admin=True)
PLAYER = Caller(uid="p1")
CUTOFF = "2022-11-22T00:00:00Z"


def _live_ops(store, **fields):
    store.commit([Write.set(layout.SETTINGS, "liveOps", fields)])


def _health(store):
    return store.get(layout.SETTINGS, "liveOpsHealth")


@pytest.fixture
def pool(store):
    seed_teams(store, "QAT", "ECU", "ENG", "IRN", "NED", "SEN", "USA", "WAL")
    seed_participant(store, "p1", "ENG", ["ECU", "USA"])
    return store


class TestScheduledIngest:

    def test_disabled_does_nothing(self, pool):
        _live_ops(pool, enabled=False, provider="fixture")
        assert run_scheduled_ingest(pool) is None
        assert _health(pool) is None
        assert pool.count(layout.MATCHES) == 0

    def test_missing_config_is_disabled(self, pool):
        assert run_scheduled_ingest(pool) is None

    def test_fixture_run(self, pool):
        _live_ops(pool, enabled=True, provider="fixture", fixtureMaxMatches=4, fixtureCutoffIso=CUTOFF)
        result = run_scheduled_ingest(pool)

        assert result.matches_seen == 4
        assert result.matches_updated == 4
        assert result.leaderboard_recomputed
        assert {s.data["source"] for s in pool.list(layout.MATCHES)} == {"fixture"}
        # ENG 6-2: 3 + 6 = 9, doubled; ECU 2-0: 3 + 2 + 1 = 6; USA 1-1: 1 + 1 = 2
        assert pool.get(layout.PARTICIPANTS, "p1")["totalScore"] == 26

        health = _health(pool)
        assert health["lastRunStatus"] == "success"
        assert health["lastRunMatches"] == 4
        assert health["lastRunUpdated"] == 4

        again = run_scheduled_ingest(pool)
        assert again.matches_updated == 0
        assert _health(pool)["lastRunUpdated"] == 0

    def test_stub_run_records_success(self, pool):
        _live_ops(pool, enabled=True, provider="stub")
        result = run_scheduled_ingest(pool)
        assert result.matches_seen == 0
        assert _health(pool)["lastRunStatus"] == "success"

    def test_provider_failure_recorded_not_raised(self, pool, monkeypatch):
        seed_match(pool, "fd-1", "ENG", "IRN", 1, 0)
        _live_ops(pool, enabled=True, provider="provider")

        def failing_fetch(request, resolver, fixture_path=None):
            raise ProviderError("provider request failed (503): busy", status_code=503)

        monkeypatch.setattr(liveops, "fetch_provider_matches", failing_fetch)
        assert run_scheduled_ingest(pool) is None
        assert run_scheduled_ingest(pool) is None

        health = _health(pool)
        assert health["lastRunStatus"] == "error"
        assert health["consecutiveFailures"] == 2
        assert health["lastRunMatches"] == 0
        assert "503" in health["lastErrorMessage"]
        assert pool.get(layout.MATCHES, "fd-1")["homeScore"] == 1

    def test_scheduler_reuses_team_lookup(self, pool, monkeypatch):
        _live_ops(pool, enabled=True, provider="provider")
        catalog_reads = []
        list_docs = pool.list

        def counting_list(collection, *args, **kwargs):
            if collection == layout.TEAMS:
                catalog_reads.append(collection)
            return list_docs(collection, *args, **kwargs)

        def fetch(request, resolver, fixture_path=None):
            resolver.lookup()
            return []

        monkeypatch.setattr(pool, "list", counting_list)
        monkeypatch.setattr(liveops, "fetch_provider_matches", fetch)

        scheduler = ScheduledIngest(pool)
        assert scheduler.run(0, max_ticks=3, sleep=lambda s: None) == 3
        assert len(catalog_reads) == 1

    def test_scheduler_initiator_recorded(self, pool):
        _live_ops(pool, enabled=True, provider="fixture", fixtureMaxMatches=1)
        ScheduledIngest(pool).tick()
        assert pool.get(layout.LEADERBOARD, "current")["updatedBy"] == SCHEDULER.uid

    def test_provider_without_token_is_empty_success(self, pool):
        _live_ops(pool, enabled=True, provider="provider")
        result = run_scheduled_ingest(pool)
        assert result.matches_seen == 0
        assert _health(pool)["lastRunStatus"] == "success"


class TestAdminFixture:

    def test_dry_run(self, pool):
        stats = admin_ingest_fixture(ADMIN, 4, CUTOFF, dry_run=True, store=pool)
        assert stats["matches_selected"] == 4
        assert pool.count(layout.MATCHES) == 0

    def test_ingest(self, pool):
        stats = admin_ingest_fixture(ADMIN, 0, CUTOFF, store=pool)
        assert (stats["matches_seen"], stats["matches_updated"]) == (4, 4)
        assert pool.get(layout.LEADERBOARD, "current")["updatedBy"] == "admin-1"

    def test_requires_admin(self, pool):
        with pytest.raises(PermissionDenied):
            admin_ingest_fixture(PLAYER, store=pool)

    def test_bad_cutoff(self, pool):
        with pytest.raises(InvalidArgument):
            admin_ingest_fixture(ADMIN, 0, "yesterday", store=pool)

    def test_reset_replaces_fixture_matches(self, pool):
        admin_ingest_fixture(ADMIN, 4, CUTOFF, store=pool)
        seed_match(pool, "manual-1", "QAT", "IRN", 3, 0)

        preview = admin_reset_fixture_ingest(ADMIN, 2, CUTOFF, dry_run=True, store=pool)
        assert preview["existing_fixture_matches"] == 4
        assert preview["will_ingest"] == 2

        stats = admin_reset_fixture_ingest(ADMIN, 2, CUTOFF, store=pool)
        assert stats["deleted_count"] == 4
        assert (stats["matches_seen"], stats["matches_updated"]) == (2, 2)
        assert sorted(s.id for s in pool.list(layout.MATCHES)) == ["manual-1", "wc22-01", "wc22-02"]

    def test_reset_to_nothing_still_recomputes(self, pool):
        admin_ingest_fixture(ADMIN, 4, CUTOFF, store=pool)
        assert pool.get(layout.PARTICIPANTS, "p1")["totalScore"] == 26

        stats = admin_reset_fixture_ingest(ADMIN, 0, "2000-01-01T00:00:00Z", store=pool)
        assert stats["deleted_count"] == 4
        assert stats["matches_updated"] == 0
        assert stats["leaderboard_recomputed"]
        assert pool.get(layout.PARTICIPANTS, "p1")["totalScore"] == 0


class TestLiveOpsSettings:

    def test_persisted(self, store):
        config = set_live_ops_settings(ADMIN, True, "fixture", 10, CUTOFF, store=store)
        assert config.updated_by == "admin-1"

        stored = get_live_ops_config(store=store)
        assert stored.enabled
        assert stored.fixture_max_matches == 10
        assert stored.fixture_cutoff_iso == CUTOFF

    @pytest.mark.parametrize("provider, cutoff", [("espn", None), ("fixture", "not-a-date")])
    def test_invalid(self, store, provider, cutoff):
        with pytest.raises(InvalidArgument):
            set_live_ops_settings(ADMIN, True, provider, 0, cutoff, store=store)

    @pytest.mark.parametrize("max_matches", [-1, "lots"])
    def test_invalid_max_matches(self, store, max_matches):
        with pytest.raises(InvalidArgument):
            set_live_ops_settings(ADMIN, True, "fixture", max_matches, store=store)
        assert store.get(layout.SETTINGS, "liveOps") is None

    def test_provider_needs_token(self, store, monkeypatch):
        with pytest.raises(FailedPrecondition):
            set_live_ops_settings(ADMIN, True, "provider", store=store)
        assert store.get(layout.SETTINGS, "liveOps") is None

        set_live_ops_settings(ADMIN, False, "provider", store=store)

        monkeypatch.setenv("FOOTBALL_DATA_TOKEN", "secret")
        reset_settings()
        assert set_live_ops_settings(ADMIN, True, "provider", store=store).enabled

    def test_requires_admin(self, store):
        with pytest.raises(PermissionDenied):
            set_live_ops_settings(PLAYER, False, "stub", store=store)

    def test_admin_recompute(self, pool):
        result = admin_recompute(ADMIN, include_live=False, store=pool)
        assert result.participants_processed == 1
        assert not result.include_live
        with pytest.raises(PermissionDenied):
            admin_recompute(PLAYER, store=pool)


class TestAdminUpsertMatch:

    def test_create_with_defaults(self, store):
        match = admin_upsert_match(ADMIN, {"matchId": "x1", "homeTeamId": "ENG", "awayTeamId": "IRN"}, store=store)
        assert match.status == "SCHEDULED"
        assert match.stage == "GROUP"

        doc = store.get(layout.MATCHES, "x1")
        assert doc["source"] == "manual"
        assert doc["homeScore"] is None
        assert doc["homeRedCards"] == 0

    def test_patch_keeps_existing_fields(self, store):
        seed_match(store, "x1", "ENG", "IRN", 6, 2, kickoffTime="2022-11-21T13:00:00Z", homeYellowCards=2)
        admin_upsert_match(ADMIN, {"matchId": "x1", "awayScore": 3, "awayRedCards": -4}, store=store)

        doc = store.get(layout.MATCHES, "x1")
        assert (doc["homeScore"], doc["awayScore"]) == (6, 3)
        assert doc["kickoffTime"] == "2022-11-21T13:00:00Z"
        assert doc["homeYellowCards"] == 2
        assert doc["awayRedCards"] == 0
        assert doc["status"] == "FINISHED"

    def test_can_revert_finished(self, store):
        seed_match(store, "x1", "ENG", "IRN", 6, 2)
        admin_upsert_match(ADMIN, {"matchId": "x1", "status": "live"}, store=store)
        assert store.get(layout.MATCHES, "x1")["status"] == "LIVE"

    @pytest.mark.parametrize("fields", [
        {"homeTeamId": "ENG", "awayTeamId": "IRN"},
        {"matchId": "x9", "homeTeamId": "ENG"},
    ])
    def test_missing_keys(self, store, fields):
        with pytest.raises(InvalidArgument):
            admin_upsert_match(ADMIN, fields, store=store)

    def test_requires_admin(self, store):
        with pytest.raises(PermissionDenied):
            admin_upsert_match(PLAYER, {"matchId": "x1"}, store=store)
