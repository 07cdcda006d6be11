"""
Roster Manager：玩家離開 / 被踢之後的名單維護

職責：
1. 離開與踢人（同一個操作，actor 不同）
2. Host 交接：名單非空時恰好一位 Host
3. 重新計算 quorum：離開的人可能讓剩下的人「全部提交」
4. 收掉房間：名單清空、或結果階段有人離開

每個步驟都以「刪除之後重新讀取」的資料為準，不沿用刪除前的快照
"""
from dataclasses import dataclass
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from models import Player, Room, RoomState
from core import record_store
from core.room_manager import RoomManager
from core.round_manager import RoundManager
from core.state_machine import RoomStateMachine
from core.exceptions import NotRoomHost, StorageError
from services.naming_service import normalize_room_code
from database import settings

logger = logging.getLogger(__name__)


@dataclass
class DepartureResult:
    already_removed: bool = False
    closed: bool = False
    terminated: bool = False
    results_ready: bool = False
    new_host_id: Optional[str] = None


class RosterManager:
    """房內名單的維護"""

    @staticmethod
    def leave_or_kick(
        db: Session,
        room_id: str,
        player_id: str,
        actor_id: Optional[str] = None
    ) -> DepartureResult:
        """
        玩家離開（actor == player）或 Host 踢人（actor != player）

        流程：
        1. 授權：踢人時 actor 必須是房內的 Host
        2. 找目標：已經不在了就當作成功（重複的離開請求）
        3. 刪除玩家
        4. 重新讀取名單
        5. 名單清空 -> 刪除房間
        6. 結果階段 -> 刪除房間與所有玩家
        7. 恢復「恰好一位 Host」
        8. 收集階段只剩一人 -> 回到 WAITING_FOR_PLAYERS 並重置
        9. 收集階段剩下的人都已提交 -> 結算

        參數：
            db: SQLAlchemy Session
            room_id: 房間代碼
            player_id: 要離開的玩家
            actor_id: 發出請求的玩家，None 代表自己離開

        返回：
            DepartureResult

        異常：
            RoomNotFound: 房間不存在
            NotRoomHost: 非 Host 嘗試踢人
        """
        room_id = normalize_room_code(room_id)
        actor_id = actor_id or player_id
        room = RoomManager.get_room_by_id(db, room_id)

        # 1. 授權
        if actor_id != player_id:
            actor = RoomManager.get_player_in_room(db, room_id, actor_id)
            if actor is None or not actor.is_host:
                raise NotRoomHost("Only the host can kick players")

        # 2. 找目標
        target = RoomManager.get_player_in_room(db, room_id, player_id)
        if target is None:
            logger.info(f"Player {player_id} already removed from room {room_id}")
            return DepartureResult(already_removed=True)

        # 3. 刪除（第二個並發的刪除會得到 0）
        if record_store.delete(db, Player, player_id) == 0:
            logger.info(f"Player {player_id} already removed from room {room_id}")
            return DepartureResult(already_removed=True)

        if actor_id == player_id:
            logger.info(f"Player {player_id} left room {room_id}")
        else:
            logger.info(f"Player {player_id} kicked from room {room_id} by {actor_id}")

        # 4. 重新讀取
        remaining = RoomManager.get_players(db, room_id)
        room = record_store.get(db, Room, room_id)

        # 5. 名單清空，或房間已被並發的請求收掉
        if not remaining or room is None:
            RosterManager.close_room(db, room_id)
            return DepartureResult(closed=True)

        # 6. 結果階段不接受任何離開
        if room.state == RoomState.RESULTS_READY:
            RosterManager.close_room(db, room_id)
            return DepartureResult(closed=True)

        # 7. Host 交接
        remaining = RosterManager.restore_single_host(db, room_id)
        if not remaining:
            RosterManager.close_room(db, room_id)
            return DepartureResult(closed=True)

        result = DepartureResult()
        if target.is_host:
            result.new_host_id = next(p.id for p in remaining if p.is_host)

        if room.state != RoomState.COLLECTING_INVESTMENTS:
            return result

        # 8. 只剩一人，這一輪無法繼續
        if len(remaining) == 1:
            applied = RoomStateMachine.transition(
                db, room_id,
                RoomState.COLLECTING_INVESTMENTS,
                RoomState.WAITING_FOR_PLAYERS
            )
            if applied:
                RoomManager.reset_players(db, room_id)
                logger.info(f"Round in room {room_id} terminated: only the host remains")
            result.terminated = applied
            return result

        # 9. 離開的人可能是唯一還沒提交的人
        result.results_ready = RoundManager.try_finalize_round(db, room_id)
        return result

    @staticmethod
    def restore_single_host(db: Session, room_id: str, attempts: Optional[int] = None) -> List[Player]:
        """
        確保非空名單恰好有一位 Host

        邏輯：
        - 已經恰好一位 Host：不動
        - 沒有或多於一位：其他 Host 降級，最早加入的玩家升為 Host
        - 每次寫入後回到開頭重新讀取驗證；被選中的人剛好也離開了就重選

        返回：
            驗證過的最新名單（依加入順序）

        異常：
            StorageError: 重試次數用完仍無法確認
        """
        attempts = attempts or settings.host_election_attempts

        for _ in range(attempts):
            roster = RoomManager.get_players(db, room_id)
            if not roster:
                return roster

            hosts = [p for p in roster if p.is_host]
            if len(hosts) == 1:
                return roster

            successor = roster[0]
            for player in hosts:
                if player.id != successor.id:
                    record_store.update(
                        db, Player, player.id,
                        {"is_host": False},
                        guard={"is_host": True}
                    )

            promoted = record_store.update(
                db, Player, successor.id,
                {"is_host": True},
                guard={"room_id": room_id}
            )
            if promoted:
                logger.info(f"Player {successor.id} is now host of room {room_id}")
            else:
                logger.warning(f"Host successor {successor.id} left room {room_id}, re-electing")

        raise StorageError(f"Could not settle a single host for room {room_id} after {attempts} attempts")

    @staticmethod
    def close_room(db: Session, room_id: str) -> None:
        """刪除房間與所有玩家（兩個刪除都是冪等的）"""
        removed = record_store.delete_where(db, Player, room_id=room_id)
        record_store.delete(db, Room, room_id)
        logger.info(f"Room {room_id} closed ({removed} players removed)")
