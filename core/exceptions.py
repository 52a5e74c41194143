"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理
"""


class CryptoRaceException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ Room 相關異常 ============

class RoomNotFound(CryptoRaceException):
    """房間不存在"""
    def __init__(self, code):
        self.code = code
        super().__init__(f"Room {code} not found")


class RoomNotAcceptingPlayers(CryptoRaceException):
    """房間不接受新玩家加入（比賽已經開始）"""
    pass


class StaleRoomVersion(CryptoRaceException):
    """寫入者看到的 state_version 已經過期"""
    def __init__(self, code, expected, actual):
        self.code = code
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Room {code} is at version {actual}, writer expected {expected}"
        )


class NotRoomHost(CryptoRaceException):
    """Host token 不符，只有 Host 可以驅動比賽"""
    pass


# ============ Player 相關異常 ============

class PlayerNotFound(CryptoRaceException):
    """玩家不存在"""
    def __init__(self, player_name):
        self.player_name = player_name
        super().__init__(f"Player {player_name} not found")


class DuplicatePlayerName(CryptoRaceException):
    """同一房間內玩家名稱必須唯一"""
    pass


class ValidationError(CryptoRaceException):
    """輸入不合法（空名稱、非數字預測）；操作不產生任何變更"""
    pass


# ============ 狀態轉換異常 ============

class InvalidStateTransition(CryptoRaceException):
    """非法的狀態轉換"""
    pass


# ============ 報價相關異常 ============

class QuoteFetchError(CryptoRaceException):
    """報價來源失敗（網路錯誤、非 2xx、缺少價格欄位）"""
    def __init__(self, symbol, reason):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"Failed to fetch quote for {symbol}: {reason}")


class RaceAborted(CryptoRaceException):
    """連續報價失敗達上限，比賽中止"""
    def __init__(self, code, failures):
        self.code = code
        self.failures = failures
        super().__init__(
            f"Race in room {code} aborted after {failures} consecutive quote failures"
        )
