"""
Room Manager：Room Store，管理房間 record 的所有讀寫

職責：
1. 建立 Room（含 Host player）
2. 玩家加入、提交預測
3. 開始比賽、追加價格樣本、寫入贏家
4. 查詢 Room 資訊

原則：
- 一個房間一筆 record，以 code 定址
- 每個寫入操作是一個 transaction，先鎖定 Room 再 read-modify-write
- 每次寫入提升 state_version，訪客靠版本號判斷是否需要更新
- 所有狀態變更經過 RaceStateMachine
"""
from datetime import datetime
from sqlalchemy.orm import Session
from typing import Iterable, Optional, Tuple
import logging

from models import Room, Player, PriceSample, RaceStatus, EventLog
from schemas import CryptoAsset, PriceSampleData
from core.state_machine import RaceStateMachine
from core.locks import with_room_lock
from core.exceptions import (
    RoomNotFound,
    PlayerNotFound,
    DuplicatePlayerName,
    RoomNotAcceptingPlayers,
    InvalidStateTransition,
    NotRoomHost,
    ValidationError,
)
from services.naming_service import (
    generate_room_code,
    generate_host_token,
    normalize_room_code,
    normalize_player_name,
)
from services.prediction_service import parse_prediction
from services.state_service import bump_state_version, check_expected_version
from database import transactional

logger = logging.getLogger(__name__)


class RoomManager:
    """Room 讀寫管理器"""

    @staticmethod
    @transactional
    def create_room(
        db: Session,
        host_name: str,
        asset: CryptoAsset,
        code: Optional[str] = None
    ) -> Tuple[Room, Player]:
        """
        建立新房間（含 Host 玩家）

        流程：
        1. 驗證 Host 名稱
        2. 生成唯一的房間代碼（或使用指定代碼）
        3. 建立 Room 與 Host Player
        4. 記錄事件

        參數：
            db: SQLAlchemy Session
            host_name: Host 的玩家名稱
            asset: 比賽使用的幣種
            code: 指定房間代碼（測試用），None 則自動生成

        返回：
            (Room, Host Player) tuple

        異常：
            ValidationError: 名稱為空
            ValidationError: 指定的代碼已被使用
        """
        host_name = normalize_player_name(host_name)

        # 1. 生成唯一的房間代碼
        if code is not None:
            code = normalize_room_code(code)
            if db.query(Room).filter(Room.code == code).first():
                raise ValidationError(f"Room code {code} is already in use")
        else:
            code = generate_room_code()
            while db.query(Room).filter(Room.code == code).first():
                code = generate_room_code()
                logger.warning(f"Room code collision detected, regenerating: {code}")

        # 2. 建立 Room
        room = Room(
            code=code,
            host_token=generate_host_token(),
            asset_id=asset.id,
            asset_name=asset.name,
            asset_symbol=asset.symbol.upper(),
            asset_image=asset.image,
            status=RaceStatus.IDLE,
            state_version=1,
        )
        db.add(room)
        db.flush()  # 取得 room.id

        # 3. 建立 Host Player
        host = Player(
            room_id=room.id,
            name=host_name,
            is_host=True,
            join_order=0
        )
        db.add(host)

        # 4. 記錄事件
        db.add(EventLog(
            room_id=room.id,
            event_type="ROOM_CREATED",
            data={"code": code, "asset": asset.id, "host": host_name}
        ))

        logger.info(f"Created room {code} for {asset.symbol.upper()} hosted by {host_name}")
        return room, host

    @staticmethod
    @transactional
    def join_room(db: Session, code: str, player_name: str) -> Player:
        """
        玩家加入房間

        前置條件：
        - 房間必須存在
        - 比賽尚未開始（IDLE）
        - 名稱在房間內唯一

        異常：
            RoomNotFound / RoomNotAcceptingPlayers / DuplicatePlayerName / ValidationError
        """
        player_name = normalize_player_name(player_name)
        room = RoomManager._lock_room(db, code)

        if room.status != RaceStatus.IDLE:
            raise RoomNotAcceptingPlayers(
                f"Room {room.code} is not accepting players (status: {room.status.value})"
            )

        if any(p.name == player_name for p in room.players):
            raise DuplicatePlayerName(
                f"Name {player_name} is already taken in room {room.code}"
            )

        player = Player(
            room_id=room.id,
            name=player_name,
            is_host=False,
            join_order=len(room.players)
        )
        db.add(player)
        db.add(EventLog(
            room_id=room.id,
            event_type="PLAYER_JOINED",
            data={"name": player_name}
        ))
        bump_state_version(db, room, reason="player_joined")

        logger.info(f"Player {player_name} joined room {room.code}")
        return player

    @staticmethod
    @transactional
    def set_prediction(db: Session, code: str, player_name: str, value) -> Player:
        """
        設定玩家預測（覆蓋之前的預測）

        前置條件：
        - 比賽尚未開始；一旦 started，任何人的預測都不能再改

        異常：
            ValidationError: 非數字或空值，原本的預測保持不變
            InvalidStateTransition: 比賽已開始
            PlayerNotFound: 玩家不在房間內
        """
        prediction = parse_prediction(value)
        player_name = normalize_player_name(player_name)
        room = RoomManager._lock_room(db, code)

        if room.started:
            raise InvalidStateTransition(
                f"Room {room.code} no longer accepts predictions (status: {room.status.value})"
            )

        player = next((p for p in room.players if p.name == player_name), None)
        if player is None:
            raise PlayerNotFound(player_name)

        player.prediction = prediction
        db.add(EventLog(
            room_id=room.id,
            event_type="PREDICTION_SET",
            data={"name": player_name, "prediction": prediction}
        ))
        bump_state_version(db, room, reason="prediction_set")

        logger.info(f"Player {player_name} predicted {prediction} in room {room.code}")
        return player

    @staticmethod
    @transactional
    def start_race(
        db: Session,
        code: str,
        start_time: datetime,
        initial_samples: Iterable[PriceSampleData],
        host_token: Optional[str] = None,
        time_left: Optional[int] = None,
        expected_version: Optional[int] = None
    ) -> Room:
        """
        開始比賽（狀態轉換 IDLE -> RUNNING）

        流程：
        1. 鎖定 Room，檢查版本與 Host token
        2. 寫入開始時間與初始價格樣本
        3. 透過 StateMachine 轉換狀態

        異常：
            RoomNotFound / NotRoomHost / StaleRoomVersion / InvalidStateTransition
        """
        room = RoomManager._lock_room(db, code)
        check_expected_version(room, expected_version)
        if host_token is not None and host_token != room.host_token:
            raise NotRoomHost(f"Only the host can start the race in room {room.code}")

        room.start_time = start_time
        room.time_left = time_left
        room.winner_name = None
        room.winner_prediction = None
        room.final_price = None
        room.last_error = None
        RaceStateMachine.transition(room, RaceStatus.RUNNING, db)
        RoomManager._add_samples(db, room, initial_samples)

        db.add(EventLog(
            room_id=room.id,
            event_type="RACE_STARTED",
            data={"start_time": start_time.isoformat(), "players": len(room.players)}
        ))

        logger.info(f"Race started in room {room.code} with {len(room.players)} players")
        return room

    @staticmethod
    @transactional
    def append_samples(
        db: Session,
        code: str,
        samples: Iterable[PriceSampleData],
        time_left: Optional[int] = None,
        expected_version: Optional[int] = None
    ) -> Room:
        """
        追加價格樣本（並更新剩餘秒數）

        注意：
        - 只能在 RUNNING 時追加
        - 樣本依序附加在既有序列之後，不重排也不改寫
        - 成功取得報價代表報價來源恢復，清除 last_error
        """
        room = RoomManager._lock_room(db, code)
        check_expected_version(room, expected_version)
        if room.status != RaceStatus.RUNNING:
            raise InvalidStateTransition(
                f"Room {room.code} is not running (status: {room.status.value})"
            )

        RoomManager._add_samples(db, room, samples)
        if time_left is not None:
            room.time_left = time_left
        room.last_error = None
        bump_state_version(db, room, reason="samples_appended")
        return room

    @staticmethod
    @transactional
    def set_winner(
        db: Session,
        code: str,
        winner_name: str,
        prediction: Optional[float],
        final_price: float
    ) -> Room:
        """
        寫入贏家並結束比賽（狀態轉換 RUNNING -> ENDED）

        贏家一旦寫入就是最終結果：已結束的房間會被狀態機拒絕
        """
        room = RoomManager._lock_room(db, code)

        room.winner_name = winner_name
        room.winner_prediction = prediction
        room.final_price = final_price
        room.time_left = 0
        room.last_error = None
        RaceStateMachine.transition(room, RaceStatus.ENDED, db)

        db.add(EventLog(
            room_id=room.id,
            event_type="RACE_ENDED",
            data={"winner": winner_name, "prediction": prediction, "final_price": final_price}
        ))

        logger.info(
            f"Race ended in room {room.code}: winner={winner_name} "
            f"prediction={prediction} final_price={final_price}"
        )
        return room

    @staticmethod
    @transactional
    def record_error(db: Session, code: str, message: str) -> Room:
        """記錄暫時性錯誤，讓輪詢的訪客看得到"""
        room = RoomManager._lock_room(db, code)
        room.last_error = message
        bump_state_version(db, room, reason="error_recorded")
        return room

    @staticmethod
    @transactional
    def abort_race(db: Session, code: str, message: str) -> Room:
        """比賽中止（狀態轉換 RUNNING -> ABORTED），不產生贏家"""
        room = RoomManager._lock_room(db, code)
        room.last_error = message
        RaceStateMachine.transition(room, RaceStatus.ABORTED, db)
        db.add(EventLog(
            room_id=room.id,
            event_type="RACE_ABORTED",
            data={"reason": message}
        ))
        logger.error(f"Race aborted in room {room.code}: {message}")
        return room

    @staticmethod
    def find_room(db: Session, code: str) -> Optional[Room]:
        """找不到時回傳 None"""
        return db.query(Room).filter(Room.code == normalize_room_code(code)).first()

    @staticmethod
    def get_room_by_code(db: Session, code: str) -> Room:
        """
        透過房間代碼取得 Room

        異常：
            RoomNotFound: Room 不存在
        """
        room = RoomManager.find_room(db, code)
        if not room:
            raise RoomNotFound(normalize_room_code(code))
        return room

    @staticmethod
    def verify_host(db: Session, code: str, host_token: Optional[str]) -> Room:
        room = RoomManager.get_room_by_code(db, code)
        if not host_token or host_token != room.host_token:
            raise NotRoomHost(f"Only the host can drive the race in room {room.code}")
        return room

    @staticmethod
    def _lock_room(db: Session, code: str) -> Room:
        code = normalize_room_code(code)
        room = with_room_lock(code, db).first()
        if not room:
            raise RoomNotFound(code)
        return room

    @staticmethod
    def _add_samples(db: Session, room: Room, samples: Iterable[PriceSampleData]) -> None:
        next_seq = len(room.samples)
        for sample in samples:
            room.samples.append(PriceSample(
                room_id=room.id,
                seq=next_seq,
                elapsed_seconds=sample.elapsed_seconds,
                price=sample.price,
                timestamp=sample.timestamp,
            ))
            next_seq += 1
        db.flush()
