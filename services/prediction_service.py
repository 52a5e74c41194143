"""
預測服務：驗證玩家預測、決定贏家

純計算邏輯，不碰資料庫

Winner Resolution：
- 只有有預測的玩家有資格
- 與最終價格的絕對差最小者獲勝
- 距離相同時，較早加入房間的玩家（join_order 較小，Host 為 0）獲勝
- 沒有任何人預測時回傳 NO_WINNER
"""
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from core.exceptions import ValidationError

NO_WINNER_NAME = "No winner"


@dataclass(frozen=True)
class WinnerResult:
    name: str
    prediction: Optional[float]
    final_price: float

    @property
    def has_winner(self) -> bool:
        return self.prediction is not None


def parse_prediction(value: Union[str, int, float, None]) -> float:
    """
    把玩家輸入轉成預測價格

    接受數字或可轉成數字的字串；空字串、None、非數字、NaN、無限大一律拒絕

    異常：
        ValidationError: 輸入不合法（呼叫者不應做任何變更）

    範例：
        parse_prediction("101.5") -> 101.5
        parse_prediction(" 99 ") -> 99.0
        parse_prediction("abc") -> ValidationError
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("Prediction must be a number")

    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError("Prediction must not be empty")

    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Prediction {value!r} is not a number")

    if math.isnan(number) or math.isinf(number):
        raise ValidationError("Prediction must be a finite number")

    return number


def resolve_winner(players: Iterable, final_price: float) -> WinnerResult:
    """
    計算贏家

    參數：
        players: 具有 name / prediction / join_order 屬性的物件
        final_price: 比賽最終價格

    返回：
        WinnerResult；沒有人預測時 name 為 NO_WINNER_NAME、prediction 為 None

    範例：
        A=100, B=105, C=None, final=103 -> B（距離 2 < 3，C 沒資格）
    """
    eligible = [p for p in players if p.prediction is not None]
    if not eligible:
        return WinnerResult(name=NO_WINNER_NAME, prediction=None, final_price=final_price)

    winner = min(
        eligible,
        key=lambda p: (abs(p.prediction - final_price), p.join_order)
    )
    return WinnerResult(name=winner.name, prediction=winner.prediction, final_price=final_price)
