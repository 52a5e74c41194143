"""
State version 服務

每次 Room 有寫入就提升 state_version，前端 / 訪客靠短輪詢比對版本決定是否重繪
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from models import Room
from core.exceptions import StaleRoomVersion

logger = logging.getLogger(__name__)


def bump_state_version(db: Session, room: Room, reason: str = "") -> int:
    """
    提升房間的 state_version

    參數：
        db: SQLAlchemy Session
        room: 要提升版本的 Room（呼叫者應已鎖定）
        reason: 記錄用的原因字串

    返回：
        新的版本號

    注意：
        - 只 flush，不 commit（交由外層 transaction 處理）
    """
    room.state_version = (room.state_version or 0) + 1
    db.flush()
    logger.debug(f"Room {room.code} state_version -> {room.state_version} ({reason})")
    return room.state_version


def check_expected_version(room: Room, expected_version: Optional[int]) -> None:
    """expected_version 為 None 時不檢查"""
    if expected_version is not None and room.state_version != expected_version:
        raise StaleRoomVersion(room.code, expected_version, room.state_version)
