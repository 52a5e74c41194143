"""
Room API Endpoints - 短輪詢版

職責：
1. 建立房間（Host endpoint）
2. 房間狀態快照（所有參與者短輪詢，靠 state_version 判斷是否更新）
3. 價格歷史、即時價格、選幣清單
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    CryptoAsset,
    RoomCreate,
    RoomCreateResponse,
    RoomStateResponse,
    PriceHistoryResponse,
    LivePriceResponse,
)
from core.room_manager import RoomManager
from core.exceptions import RoomNotFound, ValidationError, QuoteFetchError
from services.history_service import build_room_state, get_price_history
from services.quote_service import QuoteSource
from api.deps import get_quote_source

router = APIRouter(prefix="/api", tags=["rooms"])
logger = logging.getLogger(__name__)


@router.get("/assets", response_model=List[CryptoAsset])
async def list_assets(quote_source: QuoteSource = Depends(get_quote_source)):
    """
    取得可選的幣種清單（依市值排序）

    報價來源失敗時回傳 502，前端顯示「無法載入清單」
    """
    try:
        return await quote_source.list_assets()
    except QuoteFetchError as e:
        logger.warning(f"Asset list unavailable: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/rooms", response_model=RoomCreateResponse)
def create_room(room_data: RoomCreate, db: Session = Depends(get_db)):
    """
    建立房間（Host endpoint）

    流程：
    1. 驗證 Host 名稱與幣種
    2. 建立 Room + Host Player
    3. 返回房間代碼與 host_token（只有 Host 拿得到，用來開始比賽）
    """
    try:
        room, host = RoomManager.create_room(db, room_data.player_name, room_data.asset)
        return RoomCreateResponse(
            code=room.code,
            host_token=room.host_token,
            player_name=host.name,
            state_version=room.state_version
        )

    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/rooms/{code}/state", response_model=RoomStateResponse)
def get_room_state(
    code: str,
    since_version: Optional[int] = Query(default=None),
    db: Session = Depends(get_db)
):
    """
    房間狀態快照（短輪詢）

    參數：
        since_version: 前端目前持有的版本；未變更時只回傳 changed=false

    返回：
        玩家、比賽狀態、剩餘秒數、價格樣本、贏家、暫時性錯誤
    """
    try:
        room = RoomManager.get_room_by_code(db, code)
        return build_room_state(room, since_version)

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except Exception as e:
        logger.error(f"Failed to get room state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/rooms/{code}/history", response_model=PriceHistoryResponse)
def get_room_history(code: str, db: Session = Depends(get_db)):
    """取得比賽的價格樣本（依附加順序）"""
    try:
        room = RoomManager.get_room_by_code(db, code)
        return PriceHistoryResponse(code=room.code, samples=get_price_history(room))

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except Exception as e:
        logger.error(f"Failed to get price history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/rooms/{code}/price", response_model=LivePriceResponse)
async def get_live_price(
    code: str,
    db: Session = Depends(get_db),
    quote_source: QuoteSource = Depends(get_quote_source)
):
    """
    比賽開始前的即時價格預覽

    不寫入房間，只是幫玩家做預測參考
    """
    try:
        room = RoomManager.get_room_by_code(db, code)
        quote = await quote_source.fetch_price(room.asset_symbol)
        return LivePriceResponse(symbol=quote.symbol, price=quote.price, timestamp=quote.timestamp)

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except QuoteFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get live price: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
