"""
Player API Endpoints

職責：
1. 玩家加入房間
2. 玩家離開 / Host 踢人
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import ActionResponse, LeaveRequest, PlayerJoin, PlayerResponse
from core.room_manager import RoomManager
from core.roster_manager import RosterManager
from core.exceptions import InvestmentGameException

router = APIRouter(prefix="/api/rooms", tags=["players"])
logger = logging.getLogger(__name__)

INTERNAL_ERROR = {"code": "INTERNAL_ERROR", "message": "Internal error"}


@router.post("/{room_id}/join", response_model=PlayerResponse)
def join_room(room_id: str, player_data: PlayerJoin, db: Session = Depends(get_db)):
    """
    加入房間（玩家 endpoint）

    前置條件：
    - 房間必須存在
    - 房間狀態必須是 WAITING_FOR_PLAYERS
    - 房間未滿（最多 4 人）
    """
    try:
        player = RoomManager.join_room(db, room_id, player_data.name)
        return PlayerResponse(
            player_id=player.id,
            room_id=player.room_id,
            name=player.name,
            is_host=player.is_host
        )

    except InvestmentGameException as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Failed to join room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.post("/{room_id}/leave", response_model=ActionResponse)
def leave_room(room_id: str, leave_data: LeaveRequest, db: Session = Depends(get_db)):
    """
    離開房間 / 踢人

    - actor_id 省略或等於 player_id：自己離開
    - actor_id 不同：Host 踢人

    回應旗標：
        - already_removed: 玩家早就不在了（重送的請求）
        - closed: 房間已刪除
        - terminated: 只剩一人，這一輪被中止
        - results_ready: 離開的人讓其他人湊滿 quorum
    """
    try:
        result = RosterManager.leave_or_kick(
            db, room_id, leave_data.player_id, leave_data.actor_id
        )
        return ActionResponse(
            status="ok",
            already_removed=result.already_removed,
            closed=result.closed,
            terminated=result.terminated,
            results_ready=result.results_ready,
            new_host_id=result.new_host_id
        )

    except InvestmentGameException as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Failed to leave room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
