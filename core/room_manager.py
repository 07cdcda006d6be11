"""
Room Manager：管理 Room 的建立、加入與開始

職責：
1. 建立 Room（含 Host player）
2. 玩家加入（容量上限、只在 WAITING_FOR_PLAYERS）
3. 開始遊戲（狀態轉換 + 驗證）
4. 查詢 Room / 玩家（永遠重新讀取，不快取）

並發原則：
- 不上鎖：每個寫入都帶 guard（讀到什麼就以什麼為條件）
- 寫入後重新讀取驗證，發現被別人搶先就撤回或當作 no-op
"""
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
import logging

from models import MAX_PLAYERS, MIN_PLAYERS, Player, Room, RoomState
from core import record_store
from core.state_machine import RoomStateMachine
from core.exceptions import (
    GameAlreadyStarted,
    InvalidPlayerCount,
    InvalidStateTransition,
    NotRoomHost,
    PlayerNotFound,
    RecordConflict,
    RoomFull,
    RoomNotAcceptingPlayers,
    RoomNotFound,
    StorageError
)
from services.naming_service import generate_room_code, normalize_player_name, normalize_room_code
from database import settings

logger = logging.getLogger(__name__)

# 一輪開始前的玩家欄位
ROUND_RESET_FIELDS = {
    "has_submitted": False,
    "asset_a": None,
    "asset_b": None,
    "wants_restart": False,
}


class RoomManager:
    """Room 生命週期管理器"""

    @staticmethod
    def create_room(db: Session, host_name: str) -> Tuple[Room, Player]:
        """
        建立新房間（含 Host 玩家）

        流程：
        1. 檢查名稱
        2. 生成房間代碼並 insert（碰撞時重新生成）
        3. 建立 Host Player

        參數：
            db: SQLAlchemy Session
            host_name: Host 的顯示名稱

        返回：
            (Room, Host Player) tuple

        異常：
            InvalidPlayerName: 名稱不合法
            StorageError: 多次碰撞仍無法取得代碼，或寫入失敗
        """
        # 1. 檢查名稱（不碰資料庫）
        name = normalize_player_name(host_name)

        # 2. 建立 Room，代碼碰撞時重新生成
        room = None
        for _ in range(settings.room_code_attempts):
            code = generate_room_code()
            try:
                room = record_store.insert(db, Room(id=code, state=RoomState.WAITING_FOR_PLAYERS))
                break
            except RecordConflict:
                logger.warning(f"Room code collision detected, regenerating: {code}")

        if room is None:
            raise StorageError(
                f"Could not allocate a room code after {settings.room_code_attempts} attempts"
            )

        logger.info(f"Created room {room.id}")

        # 3. 建立 Host Player；失敗時把空房間收掉
        try:
            host = record_store.insert(db, Player(room_id=room.id, name=name, is_host=True))
        except StorageError:
            record_store.delete(db, Room, room.id)
            raise

        logger.info(f"Player {host.id} ({host.name}) created room {room.id} as host")
        return room, host

    @staticmethod
    def join_room(db: Session, room_id: str, player_name: str) -> Player:
        """
        加入房間

        前置條件：
        - 房間必須存在
        - 房間狀態必須是 WAITING_FOR_PLAYERS
        - 房間人數 < MAX_PLAYERS

        流程：
        1. 檢查名稱、整理代碼
        2. 檢查前置條件
        3. insert Player
        4. 重新讀取驗證：名單超過容量、或房間已開始，就撤回自己

        異常：
            InvalidPlayerName, RoomNotFound, RoomNotAcceptingPlayers, RoomFull
        """
        # 1. 整理輸入
        name = normalize_player_name(player_name)
        code = normalize_room_code(room_id)

        # 2. 前置條件
        room = RoomManager.get_room_by_id(db, code)
        if room.state != RoomState.WAITING_FOR_PLAYERS:
            raise RoomNotAcceptingPlayers(f"Room {code} has already started")

        if len(RoomManager.get_players(db, code)) >= MAX_PLAYERS:
            raise RoomFull(f"Room {code} is full (max {MAX_PLAYERS} players)")

        # 3. 建立玩家（房間剛好被刪除時 FK 會擋下）
        try:
            player = record_store.insert(db, Player(room_id=code, name=name, is_host=False))
        except RecordConflict:
            raise RoomNotFound(code)

        # 4. 重新讀取驗證
        room = record_store.get(db, Room, code)
        if room is None:
            raise RoomNotFound(code)

        if room.state != RoomState.WAITING_FOR_PLAYERS:
            record_store.delete(db, Player, player.id)
            logger.warning(f"Join of {player.id} withdrawn: room {code} started concurrently")
            # 撤回的人可能是唯一「未提交」的人
            if room.state == RoomState.COLLECTING_INVESTMENTS:
                from core.round_manager import RoundManager
                RoundManager.try_finalize_round(db, code)
            raise RoomNotAcceptingPlayers(f"Room {code} has already started")

        # created_at 在寫入前產生，不能用來排序並發的 join：看到超額的人一律撤回
        if len(RoomManager.get_players(db, code)) > MAX_PLAYERS:
            record_store.delete(db, Player, player.id)
            logger.warning(f"Join of {player.id} withdrawn: room {code} filled concurrently")
            raise RoomFull(f"Room {code} is full (max {MAX_PLAYERS} players)")

        logger.info(f"Player {player.id} ({player.name}) joined room {code}")
        return player

    @staticmethod
    def start_game(db: Session, room_id: str, actor_id: str) -> bool:
        """
        開始遊戲（狀態轉換 WAITING_FOR_PLAYERS -> COLLECTING_INVESTMENTS）

        前置條件：
        1. Room 必須存在
        2. Room 狀態必須是 WAITING_FOR_PLAYERS
        3. actor 是房內玩家且是 Host
        4. 玩家數量 >= MIN_PLAYERS

        返回：
            True 如果這次呼叫完成了轉換
            False 如果重複的 start 請求輸掉競爭（視為成功，不是錯誤）

        異常：
            RoomNotFound, GameAlreadyStarted, PlayerNotFound, NotRoomHost,
            InvalidPlayerCount（包含「轉換後發現有人同時離開」的情況）
            InvalidStateTransition: 上一輪的玩家欄位還沒重置完成
        """
        room_id = normalize_room_code(room_id)

        # 1. 檢查 Room
        room = RoomManager.get_room_by_id(db, room_id)
        if room.state != RoomState.WAITING_FOR_PLAYERS:
            raise GameAlreadyStarted(f"Room {room_id} has already started")

        # 2. 檢查 Host
        actor = RoomManager.get_player_in_room(db, room_id, actor_id)
        if actor is None:
            raise PlayerNotFound(actor_id)
        if not actor.is_host:
            raise NotRoomHost("Only the host can start the game")

        # 3. 檢查人數，以及上一輪的重置是否已完成
        players = RoomManager.get_players(db, room_id)
        player_count = len(players)
        if player_count < MIN_PLAYERS:
            raise InvalidPlayerCount(
                f"Need at least {MIN_PLAYERS} players to start, got {player_count}"
            )
        if any(p.has_submitted for p in players):
            raise InvalidStateTransition(f"Room {room_id} is still resetting the previous round")

        # 4. Guarded 狀態轉換
        applied = RoomStateMachine.transition(
            db, room_id,
            RoomState.WAITING_FOR_PLAYERS,
            RoomState.COLLECTING_INVESTMENTS
        )
        if not applied:
            if record_store.get(db, Room, room_id) is None:
                raise RoomNotFound(room_id)
            logger.info(f"Duplicate start for room {room_id} ignored")
            return False

        # 5. 轉換後重新確認人數：開始的同時有人離開，就撤回這次開始
        player_count = len(RoomManager.get_players(db, room_id))
        if player_count < MIN_PLAYERS:
            reverted = RoomStateMachine.transition(
                db, room_id,
                RoomState.COLLECTING_INVESTMENTS,
                RoomState.WAITING_FOR_PLAYERS
            )
            if reverted:
                RoomManager.reset_players(db, room_id)
            logger.warning(f"Start of room {room_id} reverted: roster dropped to {player_count}")
            raise InvalidPlayerCount(
                f"Need at least {MIN_PLAYERS} players to start, got {player_count}"
            )

        logger.info(f"Game started in room {room_id} with {player_count} players")
        return True

    @staticmethod
    def reset_players(db: Session, room_id: str, **guard) -> int:
        """
        把房內所有玩家重置為一輪開始前的狀態

        guard 額外限制要重置的玩家，例如 wants_restart=True

        返回：
            被重置的玩家數量
        """
        count = record_store.update_where(db, Player, ROUND_RESET_FIELDS, room_id=room_id, **guard)
        logger.info(f"Reset {count} players in room {room_id}")
        return count

    @staticmethod
    def get_room_by_id(db: Session, room_id: str) -> Room:
        """
        透過房間代碼取得 Room

        異常：
            RoomNotFound: Room 不存在
        """
        room = record_store.get(db, Room, room_id)
        if not room:
            raise RoomNotFound(room_id)
        return room

    @staticmethod
    def get_players(db: Session, room_id: str) -> List[Player]:
        """取得房內所有玩家，依加入順序排列"""
        return record_store.list_rows(
            db, Player,
            order_by=(Player.created_at, Player.id),
            room_id=room_id
        )

    @staticmethod
    def get_player_in_room(db: Session, room_id: str, player_id: str) -> Optional[Player]:
        """玩家存在且屬於此房間才回傳，否則 None"""
        player = record_store.get(db, Player, player_id)
        if player is None or player.room_id != room_id:
            return None
        return player
