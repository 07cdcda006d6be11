"""
命名服務：生成 Room Code、整理 Player 名稱

純計算邏輯，不涉及狀態轉換
"""
import random

from models import MAX_NAME_LENGTH, ROOM_CODE_LENGTH
from core.exceptions import InvalidPlayerName

# 去掉容易看錯的 0/O、1/I
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_room_code(length: int = ROOM_CODE_LENGTH) -> str:
    """
    生成隨機的房間代碼

    範例：K7QMZP, 2HX9AB

    注意：
    - 不檢查唯一性（由呼叫者負責，insert 衝突時重新生成）
    - 32^6 ≈ 10 億種可能，碰撞機率極低
    """
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))


def normalize_room_code(code: str) -> str:
    """使用者輸入的代碼不分大小寫，前後空白忽略"""
    return code.strip().upper()


def normalize_player_name(name: str) -> str:
    """
    整理玩家顯示名稱

    規則：
    - 去除前後空白
    - 長度 1-20 字元
    - 不要求唯一

    異常：
        InvalidPlayerName: 名稱為空或過長
    """
    if not isinstance(name, str):
        raise InvalidPlayerName("Display name must be a string")

    cleaned = name.strip()
    if not cleaned:
        raise InvalidPlayerName("Please enter your display name")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise InvalidPlayerName(
            f"Display name must be at most {MAX_NAME_LENGTH} characters, got {len(cleaned)}"
        )
    return cleaned
