"""
Room 狀態機：集中管理所有 Room 階段轉換

轉換表：
    WAITING_FOR_PLAYERS     -> COLLECTING_INVESTMENTS  (Host 開始遊戲)
    COLLECTING_INVESTMENTS  -> RESULTS_READY           (所有人都提交了)
    COLLECTING_INVESTMENTS  -> WAITING_FOR_PLAYERS     (只剩 Host 一人 / 開始後人數不足)
    RESULTS_READY           -> WAITING_FOR_PLAYERS     (所有人都投票再玩一次)

刪除房間是唯一的終止狀態，不在轉換表內（由 RosterManager 處理）
"""
from sqlalchemy.orm import Session
import logging

from models import Room, RoomState
from core import record_store
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    RoomState.WAITING_FOR_PLAYERS: frozenset({RoomState.COLLECTING_INVESTMENTS}),
    RoomState.COLLECTING_INVESTMENTS: frozenset({
        RoomState.RESULTS_READY,
        RoomState.WAITING_FOR_PLAYERS,
    }),
    RoomState.RESULTS_READY: frozenset({RoomState.WAITING_FOR_PLAYERS}),
}


class RoomStateMachine:
    """Room 狀態轉換（Guarded，不上鎖）"""

    @staticmethod
    def can_transition(from_state: RoomState, to_state: RoomState) -> bool:
        return to_state in ALLOWED_TRANSITIONS.get(from_state, frozenset())

    @staticmethod
    def transition(db: Session, room_id: str, from_state: RoomState, to_state: RoomState) -> bool:
        """
        以 compare-and-swap 轉換 Room 狀態

        參數：
            db: SQLAlchemy Session
            room_id: 房間代碼
            from_state: 呼叫端讀到的狀態（作為 guard）
            to_state: 目標狀態

        返回：
            True 如果這次呼叫完成了轉換
            False 如果 Room 已不在 from_state（別人先轉了，或房間已刪除）

        異常：
            InvalidStateTransition: 轉換表不允許 from_state -> to_state

        注意：
            回傳 False 不是錯誤，呼叫端應該視為「已經有人做過這個轉換」
        """
        if not RoomStateMachine.can_transition(from_state, to_state):
            raise InvalidStateTransition(
                f"Cannot transition room {room_id} from {from_state.value} to {to_state.value}"
            )

        applied = record_store.update(
            db, Room, room_id,
            {"state": to_state},
            guard={"state": from_state}
        )

        if applied:
            logger.info(f"Room {room_id}: {from_state.value} -> {to_state.value}")
        else:
            logger.warning(
                f"Room {room_id}: transition {from_state.value} -> {to_state.value} "
                f"lost the race (state no longer {from_state.value})"
            )
        return applied
