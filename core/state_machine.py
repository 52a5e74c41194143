"""
比賽狀態機：集中管理所有 RaceStatus 轉換

合法轉換：
    IDLE    -> RUNNING   （Host 開始比賽）
    RUNNING -> ENDED     （倒數結束，決定贏家）
    RUNNING -> ABORTED   （報價連續失敗）

ENDED / ABORTED 是終止狀態，不能再轉換
"""
import logging

from sqlalchemy.orm import Session

from models import Room, RaceStatus, EventLog
from core.exceptions import InvalidStateTransition
from services.state_service import bump_state_version

logger = logging.getLogger(__name__)


class RaceStateMachine:
    """Room 比賽狀態機"""

    TRANSITIONS = {
        RaceStatus.IDLE: {RaceStatus.RUNNING},
        RaceStatus.RUNNING: {RaceStatus.ENDED, RaceStatus.ABORTED},
        RaceStatus.ENDED: set(),
        RaceStatus.ABORTED: set(),
    }

    @classmethod
    def can_transition(cls, current: RaceStatus, target: RaceStatus) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, room: Room, target: RaceStatus, db: Session) -> Room:
        """
        轉換 Room 狀態並記錄 ROOM_STATE_CHANGED 事件

        參數：
            room: 已鎖定的 Room
            target: 目標狀態
            db: SQLAlchemy Session

        返回：
            更新後的 Room

        異常：
            InvalidStateTransition: 不在合法轉換表內

        注意：
            - 不 commit，由呼叫者的 transaction 處理
        """
        current = room.status
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                f"Room {room.code} cannot go from {current.value} to {target.value}"
            )

        room.status = target
        db.add(EventLog(
            room_id=room.id,
            event_type="ROOM_STATE_CHANGED",
            data={"from": current.value, "to": target.value}
        ))
        bump_state_version(db, room, reason=f"status_{target.value.lower()}")

        logger.info(f"Room {room.code} status {current.value} -> {target.value}")
        return room
