"""
資料模型：Room 與 Player

Room.state 與 Player 的欄位只由 core 內的 Manager 透過 guarded update 修改，
client 永遠不直接寫入。
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer, String

from database import Base

# 遊戲常數
TOTAL_BUDGET = 100
MULTIPLIER = 1.5
MIN_PLAYERS = 2
MAX_PLAYERS = 4
MAX_NAME_LENGTH = 20
ROOM_CODE_LENGTH = 6


def _utcnow() -> datetime:
    # 由 Python 端產生（含微秒），join 順序才分得出先後
    return datetime.now(timezone.utc)


def _new_player_id() -> str:
    return str(uuid.uuid4())


class RoomState(str, enum.Enum):
    WAITING_FOR_PLAYERS = "WAITING_FOR_PLAYERS"
    COLLECTING_INVESTMENTS = "COLLECTING_INVESTMENTS"
    RESULTS_READY = "RESULTS_READY"


class Room(Base):
    __tablename__ = "rooms"

    id = Column(String(ROOM_CODE_LENGTH), primary_key=True)
    state = Column(
        Enum(RoomState, name="room_state"),
        nullable=False,
        default=RoomState.WAITING_FOR_PLAYERS
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<Room {self.id} {self.state.value if self.state else None}>"


class Player(Base):
    __tablename__ = "players"
    __table_args__ = (
        CheckConstraint(
            "(asset_a IS NULL AND asset_b IS NULL) OR "
            f"(asset_a >= 0 AND asset_b >= 0 AND asset_a + asset_b = {TOTAL_BUDGET})",
            name="allocation_total"
        ),
    )

    # id 同時也是這個 session 的 bearer credential
    id = Column(String(36), primary_key=True, default=_new_player_id)
    room_id = Column(
        String(ROOM_CODE_LENGTH),
        ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(MAX_NAME_LENGTH), nullable=False)
    is_host = Column(Boolean, nullable=False, default=False)
    asset_a = Column(Integer, nullable=True)
    asset_b = Column(Integer, nullable=True)
    has_submitted = Column(Boolean, nullable=False, default=False)
    # 結果階段的「再玩一次」投票，與 has_submitted 分開
    wants_restart = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<Player {self.id} room={self.room_id} host={self.is_host}>"
