"""Room transition table and guarded transitions."""

from __future__ import annotations

import pytest

from core.exceptions import InvalidStateTransition
from core.room_manager import RoomManager
from core.state_machine import RoomStateMachine
from models import RoomState


@pytest.mark.parametrize(
    "from_state, to_state, allowed",
    [
        (RoomState.WAITING_FOR_PLAYERS, RoomState.COLLECTING_INVESTMENTS, True),
        (RoomState.COLLECTING_INVESTMENTS, RoomState.RESULTS_READY, True),
        (RoomState.COLLECTING_INVESTMENTS, RoomState.WAITING_FOR_PLAYERS, True),
        (RoomState.RESULTS_READY, RoomState.WAITING_FOR_PLAYERS, True),
        (RoomState.WAITING_FOR_PLAYERS, RoomState.RESULTS_READY, False),
        (RoomState.RESULTS_READY, RoomState.COLLECTING_INVESTMENTS, False),
        (RoomState.WAITING_FOR_PLAYERS, RoomState.WAITING_FOR_PLAYERS, False),
    ],
)
def test_transition_table(from_state, to_state, allowed) -> None:
    assert RoomStateMachine.can_transition(from_state, to_state) is allowed


def test_transition_applies_when_state_matches(db, make_room) -> None:
    room, _ = make_room("Host", "Guest")

    applied = RoomStateMachine.transition(
        db, room.id, RoomState.WAITING_FOR_PLAYERS, RoomState.COLLECTING_INVESTMENTS
    )

    assert applied is True
    assert RoomManager.get_room_by_id(db, room.id).state == RoomState.COLLECTING_INVESTMENTS


def test_transition_with_stale_state_is_a_no_op(db, make_room) -> None:
    room, _ = make_room("Host", "Guest")
    RoomStateMachine.transition(
        db, room.id, RoomState.WAITING_FOR_PLAYERS, RoomState.COLLECTING_INVESTMENTS
    )

    # Second caller still believes the room is waiting.
    applied = RoomStateMachine.transition(
        db, room.id, RoomState.WAITING_FOR_PLAYERS, RoomState.COLLECTING_INVESTMENTS
    )

    assert applied is False
    assert RoomManager.get_room_by_id(db, room.id).state == RoomState.COLLECTING_INVESTMENTS


def test_transition_outside_table_raises_without_writing(db, make_room) -> None:
    room, _ = make_room("Host", "Guest")

    with pytest.raises(InvalidStateTransition):
        RoomStateMachine.transition(
            db, room.id, RoomState.WAITING_FOR_PLAYERS, RoomState.RESULTS_READY
        )

    assert RoomManager.get_room_by_id(db, room.id).state == RoomState.WAITING_FOR_PLAYERS


def test_transition_on_missing_room_reports_not_applied(db) -> None:
    applied = RoomStateMachine.transition(
        db, "ZZZZZZ", RoomState.WAITING_FOR_PLAYERS, RoomState.COLLECTING_INVESTMENTS
    )

    assert applied is False
