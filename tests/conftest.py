"""Shared fixtures: one file-backed SQLite database per test."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

import models  # noqa: F401
from core import record_store
from core.room_manager import RoomManager
from core.round_manager import RoundManager
from database import Base, create_db_engine, create_session_factory, get_db
from models import Player, Room, RoomState


@pytest.fixture
def engine(tmp_path: Path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'investment_game.sqlite3'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    """TestClient bound to the per-test database (lifespan is not run)."""
    from main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_room(db) -> Callable[..., tuple[Room, list[Player]]]:
    """Create a room whose first name is the host; join order is pinned one second apart."""

    def _make_room(*names: str) -> tuple[Room, list[Player]]:
        room, host = RoomManager.create_room(db, names[0])
        for name in names[1:]:
            RoomManager.join_room(db, room.id, name)

        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        players = RoomManager.get_players(db, room.id)
        for offset, player in enumerate(players):
            record_store.update(db, Player, player.id, {"created_at": base + timedelta(seconds=offset)})
        return room, RoomManager.get_players(db, room.id)

    return _make_room


@pytest.fixture
def collecting_room(db, make_room) -> Callable[..., tuple[Room, list[Player]]]:
    """Room already moved to COLLECTING_INVESTMENTS by its host."""

    def _collecting_room(*names: str) -> tuple[Room, list[Player]]:
        room, players = make_room(*names)
        assert RoomManager.start_game(db, room.id, players[0].id) is True
        return room, players

    return _collecting_room


@pytest.fixture
def results_room(db, collecting_room) -> Callable[..., tuple[Room, list[Player]]]:
    """Room where every player has submitted (60, 40)."""

    def _results_room(*names: str) -> tuple[Room, list[Player]]:
        room, players = collecting_room(*names)
        for player in players:
            RoundManager.submit_investment(db, room.id, player.id, 60, 40)
        assert RoomManager.get_room_by_id(db, room.id).state == RoomState.RESULTS_READY
        return room, players

    return _results_room
