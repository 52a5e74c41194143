"""
Player API Endpoints

職責：
1. 玩家加入房間
2. 玩家提交價格預測
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import PlayerJoin, PlayerResponse, PredictionSubmit
from core.room_manager import RoomManager
from core.exceptions import (
    RoomNotFound,
    RoomNotAcceptingPlayers,
    DuplicatePlayerName,
    PlayerNotFound,
    ValidationError,
    InvalidStateTransition
)

router = APIRouter(prefix="/api/rooms", tags=["players"])
logger = logging.getLogger(__name__)


@router.post("/{code}/join", response_model=PlayerResponse)
def join_room(code: str, player_data: PlayerJoin, db: Session = Depends(get_db)):
    """
    加入房間（玩家 endpoint）

    前置條件：
    - 房間必須存在
    - 比賽尚未開始（IDLE）
    - 名稱在房間內唯一

    流程：
    1. 透過房間代碼找到 Room 並鎖定
    2. 檢查房間是否接受新玩家
    3. 建立 Player
    4. 返回玩家資訊
    """
    try:
        player = RoomManager.join_room(db, code, player_data.player_name)
        return PlayerResponse.model_validate(player)

    except RoomNotFound:
        raise HTTPException(status_code=404, detail="Room not found")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except (RoomNotAcceptingPlayers, DuplicatePlayerName) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to join room: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/prediction", response_model=PlayerResponse)
def submit_prediction(code: str, prediction_data: PredictionSubmit, db: Session = Depends(get_db)):
    """
    提交價格預測（可重複提交，覆蓋前一次）

    前置條件：
    - 比賽尚未開始

    錯誤：
    - 422：空值或非數字，原預測不變
    - 409：比賽已開始
    """
    try:
        player = RoomManager.set_prediction(
            db,
            code,
            prediction_data.player_name,
            prediction_data.value
        )
        return PlayerResponse.model_validate(player)

    except (RoomNotFound, PlayerNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InvalidStateTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to submit prediction: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
