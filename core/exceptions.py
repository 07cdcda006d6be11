"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

每個異常帶有：
- code：穩定的錯誤分類（前端依此判斷，不依賴 message 文字）
- status_code：API 層對應的 HTTP 狀態碼
"""


class InvestmentGameException(Exception):
    """所有遊戲異常的基類"""
    code = "INTERNAL_ERROR"
    status_code = 500

    def to_detail(self) -> dict:
        return {"code": self.code, "message": str(self)}


# ============ 輸入驗證異常（不碰資料庫就拒絕） ============

class InvalidAllocation(InvestmentGameException):
    """投資分配不合法（必須是非負整數且總和等於預算）"""
    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidPlayerName(InvestmentGameException):
    """玩家名稱不合法（去除空白後需為 1-20 字元）"""
    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidRequest(InvestmentGameException):
    """請求本身的格式不對（缺欄位、型別錯誤），在進入 core 之前就被擋下"""
    code = "VALIDATION_ERROR"
    status_code = 400


# ============ Room / Player 不存在 ============

class RoomNotFound(InvestmentGameException):
    """房間不存在"""
    code = "ROOM_NOT_FOUND"
    status_code = 404

    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class PlayerNotFound(InvestmentGameException):
    """玩家不存在（或不屬於此房間）"""
    code = "PLAYER_NOT_FOUND"
    status_code = 404

    def __init__(self, player_id):
        self.player_id = player_id
        super().__init__(f"Player {player_id} not found")


# ============ 權限異常 ============

class NotRoomHost(InvestmentGameException):
    """只有 Host 可以執行的動作（開始遊戲、踢人）"""
    code = "FORBIDDEN"
    status_code = 403


# ============ 狀態衝突異常 ============

class InvalidStateTransition(InvestmentGameException):
    """房間目前的階段不允許這個動作"""
    code = "WRONG_STATE"
    status_code = 409


class GameAlreadyStarted(InvalidStateTransition):
    """房間已經不在 WAITING_FOR_PLAYERS"""
    code = "ALREADY_STARTED"


class RoomNotAcceptingPlayers(InvalidStateTransition):
    """房間不接受新玩家加入（已經開始遊戲）"""
    code = "NOT_ACCEPTING_PLAYERS"


class RoomFull(InvestmentGameException):
    """房間人數已滿"""
    code = "ROOM_FULL"
    status_code = 409


class ActionAlreadySubmitted(InvestmentGameException):
    """玩家這一輪已經提交過投資了"""
    code = "ALREADY_SUBMITTED"
    status_code = 409


class InvalidPlayerCount(InvestmentGameException):
    """玩家數量不足，無法開始（或繼續）這一輪"""
    code = "TOO_FEW_PLAYERS"
    status_code = 409


# ============ Storage 異常 ============

class StorageError(InvestmentGameException):
    """資料庫操作失敗（core 不自動重試，由呼叫端決定是否重送）"""
    code = "INTERNAL_ERROR"
    status_code = 500


class RecordConflict(StorageError):
    """insert 違反唯一鍵或外鍵"""
    code = "RECORD_CONFLICT"
