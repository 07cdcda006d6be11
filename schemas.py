"""
API request / response schemas

數值規則（預算總和、名稱長度）由 core 檢查，這裡只描述資料形狀
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, StrictInt

from models import RoomState


# ============ Requests ============

class RoomCreate(BaseModel):
    name: str


class PlayerJoin(BaseModel):
    name: str


class PlayerAction(BaseModel):
    """start / play-again 只需要知道是誰"""
    player_id: str


class InvestmentSubmit(BaseModel):
    player_id: str
    # 不接受 60.0、"60"、true 之類的隱性轉換
    asset_a: StrictInt
    asset_b: StrictInt


class LeaveRequest(BaseModel):
    player_id: str
    # 不帶 actor_id 代表自己離開；帶了且不同於 player_id 代表 Host 踢人
    actor_id: Optional[str] = None


# ============ Responses ============

class PlayerResponse(BaseModel):
    player_id: str
    room_id: str
    name: str
    is_host: bool


class PlayerState(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    is_host: bool
    asset_a: Optional[int] = None
    asset_b: Optional[int] = None
    has_submitted: bool
    wants_restart: bool
    created_at: datetime


class RoomStateResponse(BaseModel):
    room_id: str
    state: RoomState
    created_at: datetime
    players: List[PlayerState]


class ActionResponse(BaseModel):
    status: str = "ok"
    results_ready: bool = False
    already_removed: bool = False
    closed: bool = False
    terminated: bool = False
    restarted: bool = False
    new_host_id: Optional[str] = None


class PlayerResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: str
    name: str
    asset_a: int
    asset_b: int
    final_payout: float


class ResultsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    b_total: int
    b_increased: float
    equal_share: float
    players: List[PlayerResult]
