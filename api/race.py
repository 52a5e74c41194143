"""
Race API Endpoints

只有 Host 能開始比賽；開始後由伺服器上的 race task 每秒 tick，
所有人（包含 Host 的前端）都透過 /state 短輪詢看進度
"""
from fastapi import APIRouter, Depends, Header, HTTPException
import asyncio
import logging

from schemas import RaceStartResponse
from core.race_lifecycle import RaceLifecycle
from core.room_manager import RoomManager
from core.exceptions import (
    RoomNotFound,
    NotRoomHost,
    InvalidStateTransition,
    QuoteFetchError
)
from services.quote_service import QuoteSource
from services.race_runner import RaceRunner
from api.deps import get_quote_source, get_race_runner, get_session_factory

router = APIRouter(prefix="/api/rooms", tags=["race"])
logger = logging.getLogger(__name__)


@router.post("/{code}/start", response_model=RaceStartResponse)
async def start_race(
    code: str,
    x_host_token: str = Header(...),
    quote_source: QuoteSource = Depends(get_quote_source),
    race_runner: RaceRunner = Depends(get_race_runner),
    session_factory=Depends(get_session_factory)
):
    """
    開始比賽（Host endpoint）

    前置條件：
    - X-Host-Token 必須是建立房間時拿到的 host_token
    - 房間狀態必須是 IDLE

    流程：
    1. 取得第一筆價格並寫入（IDLE -> RUNNING）
    2. 啟動 race task，每秒 tick 直到倒數結束
    """
    try:
        lifecycle = RaceLifecycle(code, quote_source, session_factory=session_factory)
        if race_runner.is_running(lifecycle.code):
            raise InvalidStateTransition(f"Room {lifecycle.code} is already racing")

        sample = await lifecycle.start(x_host_token)
        race_runner.launch(lifecycle)

        def read_version():
            with session_factory() as db:
                return RoomManager.get_room_by_code(db, lifecycle.code).state_version

        loop = asyncio.get_running_loop()
        version = await loop.run_in_executor(None, read_version)

        return RaceStartResponse(
            status=lifecycle.status,
            state_version=version,
            initial_price=sample.price
        )

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except NotRoomHost as e:
        raise HTTPException(status_code=403, detail=str(e))
    except InvalidStateTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except QuoteFetchError as e:
        logger.warning(f"Could not start race in room {code}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to start race: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
