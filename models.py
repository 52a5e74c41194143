"""
ORM Models

一個房間一筆 Room record（以 code 定址），玩家、價格樣本、事件記錄各自一張表。
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RaceStatus(str, enum.Enum):
    IDLE = "IDLE"          # 接受預測中
    RUNNING = "RUNNING"    # 倒數中，持續取樣價格
    ENDED = "ENDED"        # 已決定贏家
    ABORTED = "ABORTED"    # 報價連續失敗，比賽中止


class Room(Base):
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=_uuid)
    code = Column(String(6), unique=True, index=True, nullable=False)
    host_token = Column(String(64), nullable=False)

    # Crypto Asset（建立後不可變）
    asset_id = Column(String(100), nullable=False)
    asset_name = Column(String(100), nullable=False)
    asset_symbol = Column(String(20), nullable=False)
    asset_image = Column(String(500), nullable=True)

    status = Column(Enum(RaceStatus), nullable=False, default=RaceStatus.IDLE)
    start_time = Column(DateTime(timezone=True), nullable=True)
    time_left = Column(Integer, nullable=True)

    winner_name = Column(String(50), nullable=True)
    winner_prediction = Column(Float, nullable=True)
    final_price = Column(Float, nullable=True)
    last_error = Column(String(500), nullable=True)

    state_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    players = relationship(
        "Player",
        back_populates="room",
        order_by="Player.join_order",
        cascade="all, delete-orphan",
    )
    samples = relationship(
        "PriceSample",
        back_populates="room",
        order_by="PriceSample.seq",
        cascade="all, delete-orphan",
    )

    @property
    def started(self) -> bool:
        return self.status != RaceStatus.IDLE


class Player(Base):
    __tablename__ = "players"
    __table_args__ = (UniqueConstraint("room_id", "name", name="uq_player_room_name"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    prediction = Column(Float, nullable=True)
    is_host = Column(Boolean, nullable=False, default=False)
    join_order = Column(Integer, nullable=False, default=0)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    room = relationship("Room", back_populates="players")


class PriceSample(Base):
    __tablename__ = "price_samples"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    elapsed_seconds = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    room = relationship("Room", back_populates="samples")


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
