"""
命名服務：生成 Room Code / Host Token，正規化玩家名稱

純計算邏輯，不涉及狀態轉換
"""
import random
import secrets
import string

from core.exceptions import ValidationError

MAX_PLAYER_NAME_LENGTH = 50


def generate_room_code() -> str:
    """
    生成隨機的 6 位大寫字母房間代碼

    範例：ABCDEF, XYZABC

    注意：
    - 不檢查唯一性（由呼叫者負責）
    - 26^6 = 308,915,776 種可能，碰撞機率極低
    """
    return ''.join(random.choices(string.ascii_uppercase, k=6))


def generate_host_token() -> str:
    """Host lease：只交給建立房間的人，用來驗證比賽由誰驅動"""
    return secrets.token_urlsafe(32)


def normalize_room_code(code: str) -> str:
    """玩家輸入的代碼不分大小寫，前後空白忽略"""
    return (code or "").strip().upper()


def normalize_player_name(name: str) -> str:
    """
    正規化玩家名稱

    規則：
    - 去除前後空白
    - 不可為空
    - 最長 50 字元

    異常：
        ValidationError: 名稱不合法
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Player name must not be empty")
    if len(cleaned) > MAX_PLAYER_NAME_LENGTH:
        raise ValidationError(
            f"Player name must be at most {MAX_PLAYER_NAME_LENGTH} characters"
        )
    return cleaned
