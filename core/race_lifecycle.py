"""
Race Lifecycle：比賽倒數、價格取樣、決定贏家

狀態：
    IDLE（接受預測）-> RUNNING（倒數中）-> ENDED（已決定贏家）
    RUNNING -> ABORTED（報價連續失敗，或 race task 發生非預期錯誤）

單一寫入者：只有 Host 的 RaceLifecycle 會呼叫 tick() / end() 並寫入樣本與贏家，
其他參與者只透過 /state 短輪詢讀取。

每個操作都自己開一個 session，因為 tick 會在 await 報價期間讓出 event loop，
不能在 await 前後持有同一個 transaction。
Session 是同步的，資料庫讀寫都丟到 executor 執行，鎖等待不會卡住 event loop。
"""
import asyncio
import functools
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from models import RaceStatus
from schemas import PriceSampleData
from core.room_manager import RoomManager
from core.exceptions import InvalidStateTransition, QuoteFetchError, RaceAborted
from services.prediction_service import WinnerResult, resolve_winner
from services.quote_service import Quote, QuoteSource
from database import SessionLocal, get_settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RaceLifecycle:
    """一個房間的比賽生命週期（Host 端）"""

    def __init__(
        self,
        code: str,
        quote_source: QuoteSource,
        session_factory: Callable[[], Session] = SessionLocal,
        duration: Optional[int] = None,
        max_failures: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        settings = get_settings()
        self.code = code.strip().upper()
        self.quote_source = quote_source
        self.session_factory = session_factory
        self.duration = duration if duration is not None else settings.race_duration_seconds
        self.max_failures = (
            max_failures if max_failures is not None
            else settings.max_consecutive_quote_failures
        )
        self.clock = clock

        self.status: Optional[RaceStatus] = None
        self.time_left: Optional[int] = None
        self.consecutive_failures = 0
        self.result: Optional[WinnerResult] = None

    @property
    def finished(self) -> bool:
        return self.status in (RaceStatus.ENDED, RaceStatus.ABORTED)

    async def start(self, host_token: str) -> PriceSampleData:
        """
        開始比賽（只有 Host、只能從 IDLE）

        流程：
        1. 驗證 Host token 與狀態
        2. 取得 elapsed=0 的第一筆價格
        3. 寫入開始時間、初始樣本，狀態 -> RUNNING，倒數重設

        異常：
            NotRoomHost: token 不符
            InvalidStateTransition: 房間不是 IDLE
            QuoteFetchError: 第一筆報價失敗（房間維持 IDLE）
        """
        symbol = await self._run_sync(self._check_can_start, host_token)

        start_time = self.clock()
        quote = await self.quote_source.fetch_price(symbol)
        sample = self._sample(quote, elapsed=0)

        await self._run_sync(self._write_start, start_time, sample, host_token)

        self.status = RaceStatus.RUNNING
        self.time_left = self.duration
        self.consecutive_failures = 0
        self.result = None
        logger.info(f"Race started in room {self.code} at ${quote.price} ({self.duration}s)")
        return sample

    async def tick(self) -> Optional[PriceSampleData]:
        """
        每秒呼叫一次：取價格、附加樣本、倒數減一，倒數歸零時呼叫 end()

        返回：
            新附加的樣本；報價失敗或比賽不在 RUNNING 時回傳 None

        異常：
            RaceAborted: 連續報價失敗達上限
        """
        symbol = await self._run_sync(self._load_running_symbol)
        if symbol is None:
            return None

        if self.time_left <= 0:
            # 前一次 end() 取最終價格失敗，重試
            await self.end()
            return None

        try:
            quote = await self.quote_source.fetch_price(symbol)
        except QuoteFetchError as e:
            await self._run_sync(self._handle_quote_failure, e)
            return None

        self.consecutive_failures = 0
        self.time_left -= 1
        sample = self._sample(quote, elapsed=self.duration - self.time_left)

        await self._run_sync(self._write_tick, sample)

        if self.time_left <= 0:
            await self.end()
        return sample

    async def end(self) -> Optional[WinnerResult]:
        """
        結束比賽：取最終價格、附加樣本、決定並寫入贏家

        返回：
            WinnerResult；報價失敗或比賽不在 RUNNING 時回傳 None（已結束則回傳既有結果）
        """
        symbol = await self._run_sync(self._load_running_symbol)
        if symbol is None:
            return self.result

        try:
            quote = await self.quote_source.fetch_price(symbol)
        except QuoteFetchError as e:
            self.time_left = 0
            await self._run_sync(self._handle_quote_failure, e)
            return None

        self.consecutive_failures = 0
        self.time_left = 0
        final_sample = self._sample(quote, elapsed=self.duration)

        result = await self._run_sync(self._write_result, final_sample, quote.price)

        self.status = RaceStatus.ENDED
        self.result = result
        logger.info(
            f"Race in room {self.code} finished at ${quote.price}, winner: {result.name}"
        )
        return result

    async def abort(self, reason: str) -> None:
        """RUNNING -> ABORTED，不產生贏家"""
        await self._run_sync(self._write_abort, reason)
        self.status = RaceStatus.ABORTED

    def submit_prediction(self, player_name: str, value) -> float:
        """只在 IDLE 時接受；非數字輸入拋出 ValidationError 且不變更"""
        with self.session_factory() as db:
            player = RoomManager.set_prediction(db, self.code, player_name, value)
            return player.prediction

    async def _run_sync(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    def _check_can_start(self, host_token: str) -> str:
        with self.session_factory() as db:
            room = RoomManager.verify_host(db, self.code, host_token)
            if room.status != RaceStatus.IDLE:
                raise InvalidStateTransition(
                    f"Room {self.code} cannot start a race from {room.status.value}"
                )
            return room.asset_symbol

    def _write_start(self, start_time: datetime, sample: PriceSampleData, host_token: str) -> None:
        with self.session_factory() as db:
            RoomManager.start_race(
                db,
                self.code,
                start_time,
                [sample],
                host_token=host_token,
                time_left=self.duration,
            )

    def _write_tick(self, sample: PriceSampleData) -> None:
        with self.session_factory() as db:
            RoomManager.append_samples(db, self.code, [sample], time_left=self.time_left)

    def _write_result(self, final_sample: PriceSampleData, final_price: float) -> WinnerResult:
        with self.session_factory() as db:
            room = RoomManager.append_samples(db, self.code, [final_sample], time_left=0)
            result = resolve_winner(room.players, final_price)
            RoomManager.set_winner(db, self.code, result.name, result.prediction, final_price)
            return result

    def _write_abort(self, reason: str) -> None:
        with self.session_factory() as db:
            RoomManager.abort_race(db, self.code, reason)

    def _load_running_symbol(self) -> Optional[str]:
        """RUNNING 時回傳幣種代號，否則 None（tick / end 變成 no-op）"""
        with self.session_factory() as db:
            room = RoomManager.get_room_by_code(db, self.code)
            self.status = room.status
            if room.status != RaceStatus.RUNNING:
                return None
            if self.time_left is None:
                self.time_left = room.time_left if room.time_left is not None else self.duration
            return room.asset_symbol

    def _handle_quote_failure(self, error: QuoteFetchError) -> None:
        self.consecutive_failures += 1
        logger.warning(
            f"Quote failure {self.consecutive_failures}/{self.max_failures} "
            f"in room {self.code}: {error}"
        )

        with self.session_factory() as db:
            if self.consecutive_failures >= self.max_failures:
                RoomManager.abort_race(db, self.code, str(error))
                self.status = RaceStatus.ABORTED
                raise RaceAborted(self.code, self.consecutive_failures) from error
            RoomManager.record_error(db, self.code, str(error))

    @staticmethod
    def _sample(quote: Quote, elapsed: int) -> PriceSampleData:
        return PriceSampleData(
            elapsed_seconds=elapsed,
            price=quote.price,
            timestamp=quote.timestamp,
        )
