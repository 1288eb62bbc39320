"""Shared fixtures: an in-memory store and a clean settings cache per test."""

import pytest

from squadpool import db
from squadpool.config import reset_settings
from squadpool.models import layout
from squadpool.store.base import Write
from squadpool.store.memory import MemoryStore


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("FOOTBALL_DATA_TOKEN", "")
    monkeypatch.setenv("PROVIDER_BACKOFF_S", "0")
    reset_settings()
    yield
    reset_settings()
    db.set_store(None)


@pytest.fixture
def store():
    s = MemoryStore()
    db.set_store(s)
    return s


def seed_teams(store, *team_ids, **names):
    store.commit([
        Write.set(layout.TEAMS, t, {"id": t, "name": names.get(t, t), "tier": 1})
        for t in team_ids
    ])


def seed_participant(store, uid, featured, drawn, remaining=1, **extra):
    store.commit([Write.set(layout.PARTICIPANTS, uid, {
        "displayName": extra.pop("display_name", uid),
        "entry": {"featuredTeamId": featured, "drawnTeamIds": list(drawn)},
        "remainingTransfers": remaining,
        **extra,
    })])


def seed_match(store, match_id, home, away, home_score, away_score, status="FINISHED", **extra):
    store.commit([Write.set(layout.MATCHES, match_id, {
        "matchId": match_id,
        "homeTeamId": home,
        "awayTeamId": away,
        "homeScore": home_score,
        "awayScore": away_score,
        "status": status,
        "stage": "GROUP",
        "kickoffTime": None,
        "homeRedCards": 0,
        "homeYellowCards": 0,
        "awayRedCards": 0,
        "awayYellowCards": 0,
        "source": "manual",
        **extra,
    })])


def open_window(store, **extra):
    store.commit([Write.set(layout.SETTINGS, "transferWindow", {"enabled": True, **extra})])
