"""
Round API Endpoints

重點：
1. submit_investment 以 guard 防止重複提交，最後一個提交的人觸發結算
2. 所有業務邏輯集中在 RoundManager
3. 前端靠 GET /api/rooms/{room_id} 重新讀取狀態，不依賴這裡的回應
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import ActionResponse, InvestmentSubmit, PlayerAction, ResultsResponse
from core.round_manager import RoundManager
from core.exceptions import InvestmentGameException

router = APIRouter(prefix="/api/rooms", tags=["rounds"])
logger = logging.getLogger(__name__)

INTERNAL_ERROR = {"code": "INTERNAL_ERROR", "message": "Internal error"}


@router.post("/{room_id}/invest", response_model=ActionResponse)
def submit_investment(room_id: str, investment: InvestmentSubmit, db: Session = Depends(get_db)):
    """
    提交投資分配

    **並發安全**：
    - 同一玩家重複提交：guard 擋下，回 409 ALREADY_SUBMITTED
    - 最後兩人同時提交：兩個提交都保留，房間只轉換一次

    返回：
        - status: "ok"
        - results_ready: 這次提交是否完成了這一輪
    """
    try:
        finalized = RoundManager.submit_investment(
            db,
            room_id,
            investment.player_id,
            investment.asset_a,
            investment.asset_b
        )
        return ActionResponse(status="ok", results_ready=finalized)

    except InvestmentGameException as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Failed to submit investment: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.post("/{room_id}/play-again", response_model=ActionResponse)
def play_again(room_id: str, action_data: PlayerAction, db: Session = Depends(get_db)):
    """
    投票再玩一次

    返回：
        - restarted: 所有人都投票後房間回到 WAITING_FOR_PLAYERS
    """
    try:
        restarted = RoundManager.request_restart(db, room_id, action_data.player_id)
        return ActionResponse(status="ok", restarted=restarted)

    except InvestmentGameException as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Failed to register play again: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.get("/{room_id}/results", response_model=ResultsResponse)
def get_results(room_id: str, db: Session = Depends(get_db)):
    """
    取得結果表（依 final_payout 由高到低）

    前置條件：
    - 房間狀態必須是 RESULTS_READY
    """
    try:
        results = RoundManager.get_results(db, room_id)
        return ResultsResponse.model_validate(results)

    except InvestmentGameException as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.error(f"Failed to get results: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
