"""
並發控制工具

提供 Database-level 的鎖定機制，防止 Room 的 read-modify-write 互相覆蓋

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）；
SQLite 會忽略 FOR UPDATE，改由資料庫層級的寫入鎖保護
"""
from sqlalchemy.orm import Session, Query

from models import Room


def with_room_lock(code: str, db: Session) -> Query:
    """
    鎖定一個 Room（行級鎖），以房間代碼定址

    使用場景：
    - 修改 Room 狀態、玩家預測、價格樣本時
    - 需要確保 Room 在整個 transaction 期間不被其他請求修改

    範例：
        room = with_room_lock(code, db).first()
        if not room:
            raise RoomNotFound(code)
        room.status = RaceStatus.RUNNING
        db.commit()

    參數：
        code: 6 位房間代碼
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Room).filter(
        Room.code == code
    ).with_for_update(nowait=False)
