"""
Round Manager：管理一輪投資的提交、結算與「再玩一次」

核心設計：
1. submit_investment 以 has_submitted = False 為 guard，重複提交不可能寫入兩次
2. 「最後一人觸發結算」沒有特殊情況：任何人提交後都呼叫 try_finalize_round
3. try_finalize_round 一律在寫入「之後」重新讀取整個名單才判斷 quorum
4. 結算的狀態轉換帶 guard，兩個人同時觸發時只有一個會成功，另一個是 no-op

再玩一次的投票使用 wants_restart，不和 has_submitted 共用同一個欄位
"""
from sqlalchemy.orm import Session
import logging

from models import Player, Room, RoomState
from core import record_store
from core.room_manager import RoomManager
from core.state_machine import RoomStateMachine
from core.exceptions import (
    ActionAlreadySubmitted,
    InvalidStateTransition,
    PlayerNotFound,
    RoomNotFound
)
from services.payoff_service import GameResults, calculate_payouts, validate_allocation
from services.naming_service import normalize_room_code

logger = logging.getLogger(__name__)


class RoundManager:
    """一輪投資的管理器"""

    @staticmethod
    def submit_investment(db: Session, room_id: str, player_id: str, asset_a, asset_b) -> bool:
        """
        提交投資分配

        前置條件：
        - asset_a、asset_b 為非負整數且總和 = TOTAL_BUDGET（先檢查，不碰資料庫）
        - Room 狀態是 COLLECTING_INVESTMENTS
        - 玩家在房內且尚未提交

        流程：
        1. 驗證分配
        2. 檢查 Room / Player
        3. Guarded 寫入（has_submitted = False）
        4. 重新讀取 Room：若這一輪已被重置（只剩一人），撤回這次提交
        5. 嘗試結算

        返回：
            True 如果這次呼叫把房間轉到 RESULTS_READY

        異常：
            InvalidAllocation, RoomNotFound, InvalidStateTransition,
            PlayerNotFound, ActionAlreadySubmitted
        """
        # 1. 驗證分配
        validate_allocation(asset_a, asset_b)
        room_id = normalize_room_code(room_id)

        # 2. 檢查 Room / Player
        room = RoomManager.get_room_by_id(db, room_id)
        if room.state != RoomState.COLLECTING_INVESTMENTS:
            raise InvalidStateTransition("Game is not accepting investments")

        player = RoomManager.get_player_in_room(db, room_id, player_id)
        if player is None:
            raise PlayerNotFound(player_id)
        if player.has_submitted:
            raise ActionAlreadySubmitted("You have already submitted")

        # 3. Guarded 寫入：同一個玩家兩個請求同時進來，只有一個會成功
        applied = record_store.update(
            db, Player, player_id,
            {"asset_a": asset_a, "asset_b": asset_b, "has_submitted": True},
            guard={"room_id": room_id, "has_submitted": False}
        )
        if not applied:
            if RoomManager.get_player_in_room(db, room_id, player_id) is None:
                raise PlayerNotFound(player_id)
            raise ActionAlreadySubmitted("You have already submitted")

        logger.info(f"Player {player_id} submitted ({asset_a}, {asset_b}) in room {room_id}")

        # 4. 重新讀取 Room
        room = record_store.get(db, Room, room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if room.state == RoomState.WAITING_FOR_PLAYERS:
            record_store.update(
                db, Player, player_id,
                {"asset_a": None, "asset_b": None, "has_submitted": False},
                guard={"has_submitted": True, "asset_a": asset_a, "asset_b": asset_b}
            )
            logger.warning(f"Submission of {player_id} withdrawn: room {room_id} round was reset")
            raise InvalidStateTransition("Game is not accepting investments")

        # 5. 嘗試結算（冪等：重複呼叫不會重複轉換）
        return RoundManager.try_finalize_round(db, room_id)

    @staticmethod
    def try_finalize_round(db: Session, room_id: str) -> bool:
        """
        如果所有玩家都已提交，把 Room 轉到 RESULTS_READY

        注意：
        - 必須在觸發的寫入之後才呼叫（這裡一律重新讀取名單）
        - 轉換成功後清空 wants_restart，結果階段從空的投票開始
        - 保留 asset_a / asset_b / has_submitted，結果由分配欄位計算

        返回：
            True 如果這次呼叫完成了轉換，False 代表還沒到 quorum 或別人已轉換
        """
        players = RoomManager.get_players(db, room_id)
        if not players or not all(p.has_submitted for p in players):
            return False

        applied = RoomStateMachine.transition(
            db, room_id,
            RoomState.COLLECTING_INVESTMENTS,
            RoomState.RESULTS_READY
        )
        if applied:
            record_store.update_where(db, Player, {"wants_restart": False}, room_id=room_id)
            logger.info(f"Round finalized in room {room_id} with {len(players)} players")
        return applied

    @staticmethod
    def request_restart(db: Session, room_id: str, player_id: str) -> bool:
        """
        投票「再玩一次」

        前置條件：
        - Room 狀態是 RESULTS_READY
        - 玩家在房內

        流程：
        1. 設定 wants_restart = True（重複投票只是再確認一次，不報錯）
        2. 重新讀取名單，所有人都投票了就：
           a. 重置投過票的玩家（wants_restart = True 為 guard，重複執行是 no-op）
           b. Guarded 轉換 RESULTS_READY -> WAITING_FOR_PLAYERS（只有一個贏家）
           房間進入 WAITING_FOR_PLAYERS 時名單已經是乾淨的

        返回：
            True 如果房間已回到 WAITING_FOR_PLAYERS

        異常：
            RoomNotFound, InvalidStateTransition, PlayerNotFound
        """
        room_id = normalize_room_code(room_id)
        room = RoomManager.get_room_by_id(db, room_id)
        if room.state != RoomState.RESULTS_READY:
            raise InvalidStateTransition("Play again is only available after results")

        if RoomManager.get_player_in_room(db, room_id, player_id) is None:
            raise PlayerNotFound(player_id)

        # 1. 投票
        voted = record_store.update(
            db, Player, player_id,
            {"wants_restart": True},
            guard={"room_id": room_id}
        )
        if not voted:
            raise PlayerNotFound(player_id)

        logger.info(f"Player {player_id} voted to play again in room {room_id}")

        # 2. 重新讀取判斷 quorum
        players = RoomManager.get_players(db, room_id)
        if not players or not all(p.wants_restart for p in players):
            return False

        RoomManager.reset_players(db, room_id, wants_restart=True)
        applied = RoomStateMachine.transition(
            db, room_id,
            RoomState.RESULTS_READY,
            RoomState.WAITING_FOR_PLAYERS
        )
        if applied:
            logger.info(f"Room {room_id} restarted")
            return True

        room = record_store.get(db, Room, room_id)
        return room is not None and room.state == RoomState.WAITING_FOR_PLAYERS

    @staticmethod
    def get_results(db: Session, room_id: str) -> GameResults:
        """
        取得結果表（只有 RESULTS_READY 時可用）

        異常：
            RoomNotFound, InvalidStateTransition
        """
        room_id = normalize_room_code(room_id)
        room = RoomManager.get_room_by_id(db, room_id)
        if room.state != RoomState.RESULTS_READY:
            raise InvalidStateTransition("Results are not available yet")
        return calculate_payouts(RoomManager.get_players(db, room_id))
