from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache, wraps
import logging

from core.exceptions import CryptoRaceException

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./crypto_race.db"

    # 報價來源（CryptoCompare 格式：{"USD": 123.45}）
    quote_api_url: str = "https://min-api.cryptocompare.com/data/price"
    quote_price_field: str = "USD"
    quote_timeout_seconds: float = 5.0
    # Lobby 選幣清單（CoinGecko markets 格式）
    assets_api_url: str = "https://api.coingecko.com/api/v3/coins/markets"
    assets_limit: int = 100

    # 比賽參數
    race_duration_seconds: int = 60
    tick_interval_seconds: float = 1.0
    max_consecutive_quote_failures: int = 3
    poll_interval_seconds: float = 3.0

    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env")


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite 需要特殊設定：connect_args={"check_same_thread": False}
# 比賽 tick 在 event loop 上執行，和 request thread 共用同一個 SQLite 檔案
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def some_business_logic(db: Session, ...):
            room = Room(code=code, ...)
            db.add(room)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 異常會被重新拋出（讓上層處理）
        - CryptoRaceException 只記 INFO，其他異常記 ERROR + traceback

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except CryptoRaceException as e:
            # 業務規則拒絕（非法輸入、狀態不符）：不是系統錯誤
            logger.info(f"Transaction rejected in {func.__name__}: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
