"""Tests for match reconciliation and source-scoped deletion."""

import pytest

from conftest import seed_match, seed_participant, seed_teams

from squadpool.errors import StoreError
from squadpool.ingestion import reconcile
from squadpool.ingestion.reconcile import (
    count_matches_by_source,
    delete_matches_by_source,
    reconcile_matches,
)
from squadpool.models import layout
from squadpool.models.matches import MatchFact
from squadpool.store.base import Write


def _fact(match_id, home="A", away="B", hs=1, as_=0, status="FINISHED", **extra):
    return MatchFact(
        match_id=match_id, home_team_id=home, away_team_id=away,
        home_score=hs, away_score=as_, status=status, stage="GROUP",
        kickoff_time="2022-11-20T16:00:00Z", **extra,
    )


@pytest.fixture
def seeded(store):
    seed_teams(store, "A", "B", "C", "D")
    seed_participant(store, "p1", "A", ["B", "C"])
    return store


class TestReconcileMatches:

    def test_new_matches_written_and_scored(self, seeded):
        result = reconcile_matches([_fact("m1"), _fact("m2", "C", "D", 0, 0)], "fixture", "tester", store=seeded)

        assert result.matches_seen == 2
        assert result.matches_updated == 2
        assert result.leaderboard_recomputed

        doc = seeded.get(layout.MATCHES, "m1")
        assert doc["source"] == "fixture"
        assert doc["lastUpdated"]
        assert doc["homeScore"] == 1 and doc["status"] == "FINISHED"
        assert seeded.get(layout.LEADERBOARD, "current")["updatedBy"] == "tester"
        # A: win + goal + clean sheet = 5, doubled; B: 0; C: draw + clean sheet = 2
        assert seeded.get(layout.PARTICIPANTS, "p1")["totalScore"] == 12

    def test_unchanged_run_writes_nothing(self, seeded):
        facts = [_fact("m1"), _fact("m2")]
        reconcile_matches(facts, "fixture", store=seeded)
        before = seeded.read_versioned(layout.MATCHES, "m1")
        snapshot = seeded.get(layout.LEADERBOARD, "current")

        result = reconcile_matches(facts, "fixture", store=seeded)

        assert result.matches_updated == 0
        assert not result.leaderboard_recomputed
        assert seeded.read_versioned(layout.MATCHES, "m1") == before
        assert seeded.get(layout.LEADERBOARD, "current") == snapshot

    def test_only_changed_match_written(self, seeded):
        reconcile_matches([_fact("m1"), _fact("m2")], "provider", store=seeded)
        v2 = seeded.read_versioned(layout.MATCHES, "m2")[0]

        result = reconcile_matches([_fact("m1", hs=2), _fact("m2")], "provider", store=seeded)

        assert result.matches_updated == 1
        assert seeded.get(layout.MATCHES, "m1")["homeScore"] == 2
        assert seeded.read_versioned(layout.MATCHES, "m2")[0] == v2

    def test_card_change_counts(self, seeded):
        reconcile_matches([_fact("m1")], "provider", store=seeded)
        result = reconcile_matches([_fact("m1", home_red_cards=1)], "provider", store=seeded)
        assert result.matches_updated == 1

    def test_finished_not_reverted(self, seeded):
        reconcile_matches([_fact("m1")], "provider", store=seeded)
        result = reconcile_matches([_fact("m1", hs=None, as_=None, status="SCHEDULED")], "provider", store=seeded)

        assert result.matches_updated == 0
        assert result.reverts_skipped == 1
        assert seeded.get(layout.MATCHES, "m1")["status"] == "FINISHED"

    def test_live_to_finished_allowed(self, seeded):
        reconcile_matches([_fact("m1", status="LIVE")], "provider", store=seeded)
        result = reconcile_matches([_fact("m1", hs=3)], "provider", store=seeded)
        assert result.matches_updated == 1
        assert seeded.get(layout.MATCHES, "m1")["status"] == "FINISHED"

    def test_merge_keeps_unrelated_fields(self, seeded):
        seed_match(seeded, "m1", "A", "B", 0, 0, status="LIVE", venue="Lusail")
        reconcile_matches([_fact("m1")], "provider", store=seeded)
        assert seeded.get(layout.MATCHES, "m1")["venue"] == "Lusail"

    def test_empty_batch(self, seeded):
        result = reconcile_matches([], "provider", store=seeded)
        assert result.matches_seen == 0
        assert not result.leaderboard_recomputed

    def test_force_recompute_without_changes(self, seeded):
        result = reconcile_matches([], "fixture", store=seeded, force_recompute=True)
        assert result.leaderboard_recomputed
        assert seeded.get(layout.LEADERBOARD, "current") is not None

    def test_writes_are_batched(self, seeded, monkeypatch):
        monkeypatch.setenv("WRITE_BATCH_SIZE", "2")
        from squadpool.config import reset_settings

        reset_settings()
        batches = []
        original = seeded.commit_batched

        def spy(writes, batch_size):
            batches.append((writes[0].collection, len(writes), batch_size))
            return original(writes, batch_size)

        monkeypatch.setattr(seeded, "commit_batched", spy)
        reconcile_matches([_fact(f"m{i}") for i in range(5)], "fixture", store=seeded)

        assert batches[0] == (layout.MATCHES, 5, 2)

    def test_recompute_failure_is_reported(self, seeded, monkeypatch):
        def boom(**kwargs):
            raise StoreError("leaderboard write failed")

        monkeypatch.setattr(reconcile, "recompute", boom)
        result = reconcile_matches([_fact("m1")], "fixture", store=seeded)

        assert result.matches_updated == 1
        assert not result.leaderboard_recomputed
        assert seeded.get(layout.MATCHES, "m1") is not None


class TestSourceDeletion:

    def test_count_and_delete_across_pages(self, store):
        store.commit_batched(
            [Write.set(layout.MATCHES, f"f{i:03d}", {"source": "fixture"}) for i in range(450)],
            450,
        )
        seed_match(store, "manual-1", "A", "B", 1, 0)

        assert count_matches_by_source("fixture", store=store) == 450
        assert delete_matches_by_source("fixture", store=store) == 450
        assert count_matches_by_source("fixture", store=store) == 0
        assert store.get(layout.MATCHES, "manual-1") is not None

    def test_delete_nothing(self, store):
        assert delete_matches_by_source("fixture", store=store) == 0
