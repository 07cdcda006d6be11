"""
Room API Endpoints

職責：
1. 建立房間（建立者成為 Host）
2. 查詢房間完整狀態（收到變更通知後重新讀取用）
3. 開始遊戲（Host endpoint）
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import ActionResponse, PlayerAction, PlayerResponse, PlayerState, RoomCreate, RoomStateResponse
from core.room_manager import RoomManager
from core.exceptions import InvestmentGameException
from services.naming_service import normalize_room_code

router = APIRouter(prefix="/api/rooms", tags=["rooms"])
logger = logging.getLogger(__name__)

INTERNAL_ERROR = {"code": "INTERNAL_ERROR", "message": "Internal error"}


@router.post("", response_model=PlayerResponse)
def create_room(room_data: RoomCreate, db: Session = Depends(get_db)):
    """
    建立房間

    返回：
        - player_id: Host 的 id（之後所有請求都用它識別身分）
        - room_id: 分享給其他玩家的房間代碼
    """
    try:
        room, host = RoomManager.create_room(db, room_data.name)
        return PlayerResponse(
            player_id=host.id,
            room_id=room.id,
            name=host.name,
            is_host=True
        )

    except InvestmentGameException as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.get("/{room_id}", response_model=RoomStateResponse)
def get_room_state(room_id: str, db: Session = Depends(get_db)):
    """
    取得房間與所有玩家的最新狀態

    前端收到任何變更通知、或任何操作（成功或失敗）之後，都應該重新呼叫這裡，
    而不是信任操作本身的回應
    """
    try:
        room = RoomManager.get_room_by_id(db, normalize_room_code(room_id))
        players = RoomManager.get_players(db, room.id)
        return RoomStateResponse(
            room_id=room.id,
            state=room.state,
            created_at=room.created_at,
            players=[PlayerState.model_validate(p) for p in players]
        )

    except InvestmentGameException as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Failed to get room state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.post("/{room_id}/start", response_model=ActionResponse)
def start_game(room_id: str, action_data: PlayerAction, db: Session = Depends(get_db)):
    """
    開始遊戲（Host endpoint）

    重複的 start 請求輸掉競爭時一樣回 ok
    """
    try:
        RoomManager.start_game(db, room_id, action_data.player_id)
        return ActionResponse(status="ok")

    except InvestmentGameException as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Failed to start game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
