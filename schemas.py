"""
Pydantic Schemas：API request / response 以及 Room Store 之間傳遞的資料
"""
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

from models import RaceStatus


# ============ Crypto Asset ============

class CryptoAsset(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    symbol: str = Field(..., min_length=1)
    image: Optional[str] = None


# ============ Price Sample ============

class PriceSampleData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    elapsed_seconds: int = Field(..., ge=0)
    price: float
    timestamp: datetime


# ============ Room / Player requests ============

class RoomCreate(BaseModel):
    player_name: str
    asset: CryptoAsset


class RoomCreateResponse(BaseModel):
    code: str
    host_token: str
    player_name: str
    state_version: int


class PlayerJoin(BaseModel):
    player_name: str


class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    prediction: Optional[float] = None
    is_host: bool = False


class PredictionSubmit(BaseModel):
    player_name: str
    # 字串也接受，由 prediction_service 驗證；Strict 型別避免 true 被轉成 1.0
    value: Union[StrictFloat, StrictInt, str, None] = None


# ============ Room state（短輪詢） ============

class WinnerResponse(BaseModel):
    name: str
    prediction: Optional[float] = None
    final_price: Optional[float] = None


class RoomStateResponse(BaseModel):
    changed: bool = True
    code: str
    state_version: int
    status: Optional[RaceStatus] = None
    started: Optional[bool] = None
    asset: Optional[CryptoAsset] = None
    players: List[PlayerResponse] = []
    start_time: Optional[datetime] = None
    time_left: Optional[int] = None
    current_price: Optional[float] = None
    initial_price: Optional[float] = None
    winner: Optional[WinnerResponse] = None
    last_error: Optional[str] = None
    samples: List[PriceSampleData] = []


class PriceHistoryResponse(BaseModel):
    code: str
    samples: List[PriceSampleData]


class LivePriceResponse(BaseModel):
    symbol: str
    price: float
    timestamp: datetime


class RaceStartResponse(BaseModel):
    status: RaceStatus
    state_version: int
    initial_price: float
