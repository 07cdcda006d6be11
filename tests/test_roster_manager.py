"""LeaveOrKick, host succession and room closing."""

from __future__ import annotations

import pytest

from core import record_store
from core.exceptions import NotRoomHost, RoomNotFound, StorageError
from core.room_manager import RoomManager
from core.roster_manager import RosterManager
from core.round_manager import RoundManager
from models import Player, Room, RoomState


def _hosts(db, room_id: str) -> list[str]:
    return [p.name for p in RoomManager.get_players(db, room_id) if p.is_host]


def test_host_leaving_mid_round_hands_over_to_earliest_joiner(db, collecting_room) -> None:
    room, players = collecting_room("Host", "Bea", "Cid", "Dan")
    RoundManager.submit_investment(db, room.id, players[1].id, 60, 40)
    RoundManager.submit_investment(db, room.id, players[2].id, 20, 80)

    result = RosterManager.leave_or_kick(db, room.id, players[0].id)

    assert result.new_host_id == players[1].id
    assert result.results_ready is False
    assert _hosts(db, room.id) == ["Bea"]
    # Dan is still pending, so there is no quorum yet.
    assert RoomManager.get_room_by_id(db, room.id).state == RoomState.COLLECTING_INVESTMENTS


def test_last_pending_player_leaving_completes_the_round(db, collecting_room) -> None:
    room, players = collecting_room("Host", "Bea", "Cid", "Dan")
    for player in players[:3]:
        RoundManager.submit_investment(db, room.id, player.id, 50, 50)

    result = RosterManager.leave_or_kick(db, room.id, players[3].id)

    assert result.results_ready is True
    assert RoomManager.get_room_by_id(db, room.id).state == RoomState.RESULTS_READY
    results = RoundManager.get_results(db, room.id)
    assert len(results.players) == 3


def test_room_deleted_when_last_player_leaves(db, make_room) -> None:
    room, players = make_room("Host", "Guest")

    first = RosterManager.leave_or_kick(db, room.id, players[0].id)
    assert first.closed is False
    assert first.new_host_id == players[1].id
    assert _hosts(db, room.id) == ["Guest"]

    second = RosterManager.leave_or_kick(db, room.id, players[1].id)
    assert second.closed is True
    assert record_store.get(db, Room, room.id) is None
    assert record_store.list_rows(db, Player, room_id=room.id) == []


def test_any_departure_during_results_closes_the_room(db, results_room) -> None:
    room, players = results_room("Host", "Bea", "Cid")

    result = RosterManager.leave_or_kick(db, room.id, players[2].id)

    assert result.closed is True
    assert record_store.get(db, Room, room.id) is None
    assert record_store.list_rows(db, Player, room_id=room.id) == []


def test_duplicate_leave_reports_already_removed(db, make_room) -> None:
    room, players = make_room("Host", "Bea", "Cid")
    RosterManager.leave_or_kick(db, room.id, players[2].id)

    result = RosterManager.leave_or_kick(db, room.id, players[2].id)

    assert result.already_removed is True
    assert [p.name for p in RoomManager.get_players(db, room.id)] == ["Host", "Bea"]


def test_leave_from_missing_room(db) -> None:
    with pytest.raises(RoomNotFound):
        RosterManager.leave_or_kick(db, "NOPE22", "nobody")


def test_host_can_kick(db, make_room) -> None:
    room, players = make_room("Host", "Bea", "Cid")

    result = RosterManager.leave_or_kick(db, room.id, players[1].id, actor_id=players[0].id)

    assert result.already_removed is False
    assert result.new_host_id is None
    assert [p.name for p in RoomManager.get_players(db, room.id)] == ["Host", "Cid"]


@pytest.mark.parametrize("actor", ["guest", "outsider"])
def test_only_the_host_can_kick(db, make_room, actor) -> None:
    room, players = make_room("Host", "Bea", "Cid")
    _, others = make_room("Other")
    actor_id = players[1].id if actor == "guest" else others[0].id

    with pytest.raises(NotRoomHost):
        RosterManager.leave_or_kick(db, room.id, players[2].id, actor_id=actor_id)

    assert len(RoomManager.get_players(db, room.id)) == 3


def test_round_terminated_when_only_one_player_remains(db, collecting_room) -> None:
    room, players = collecting_room("Host", "Guest")
    RoundManager.submit_investment(db, room.id, players[0].id, 70, 30)

    result = RosterManager.leave_or_kick(db, room.id, players[1].id)

    assert result.terminated is True
    assert RoomManager.get_room_by_id(db, room.id).state == RoomState.WAITING_FOR_PLAYERS
    (host,) = RoomManager.get_players(db, room.id)
    assert host.is_host is True
    assert host.has_submitted is False
    assert host.asset_a is None and host.asset_b is None


def test_guest_left_alone_mid_round_becomes_host(db, collecting_room) -> None:
    room, players = collecting_room("Host", "Guest")

    result = RosterManager.leave_or_kick(db, room.id, players[0].id)

    assert result.terminated is True
    assert result.new_host_id == players[1].id
    assert _hosts(db, room.id) == ["Guest"]
    assert RoomManager.get_room_by_id(db, room.id).state == RoomState.WAITING_FOR_PLAYERS


def test_successor_vanishing_triggers_re_election(db, make_room, monkeypatch: pytest.MonkeyPatch) -> None:
    room, players = make_room("Host", "Bea", "Cid")
    original_update = record_store.update
    vanished = []

    def _successor_leaves_first(session, model, key, fields, guard=None):
        if fields == {"is_host": True} and key == players[1].id and not vanished:
            vanished.append(key)
            record_store.delete(session, Player, key)
        return original_update(session, model, key, fields, guard)

    monkeypatch.setattr(record_store, "update", _successor_leaves_first)

    result = RosterManager.leave_or_kick(db, room.id, players[0].id)

    assert vanished == [players[1].id]
    assert result.new_host_id == players[2].id
    assert _hosts(db, room.id) == ["Cid"]


def test_restore_single_host_demotes_extra_hosts(db, make_room) -> None:
    room, players = make_room("Host", "Bea", "Cid")
    record_store.update(db, Player, players[2].id, {"is_host": True})

    roster = RosterManager.restore_single_host(db, room.id)

    assert [p.name for p in roster if p.is_host] == ["Host"]
    assert _hosts(db, room.id) == ["Host"]


def test_restore_single_host_gives_up_after_bounded_attempts(db, make_room, monkeypatch: pytest.MonkeyPatch) -> None:
    room, players = make_room("Host", "Bea")
    record_store.update(db, Player, players[0].id, {"is_host": False})
    original_update = record_store.update

    def _promotion_never_lands(session, model, key, fields, guard=None):
        if fields == {"is_host": True}:
            return False
        return original_update(session, model, key, fields, guard)

    monkeypatch.setattr(record_store, "update", _promotion_never_lands)

    with pytest.raises(StorageError):
        RosterManager.restore_single_host(db, room.id, attempts=3)
