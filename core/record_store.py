"""
Record Store：並發控制工具

提供 row-level 的樂觀鎖（Optimistic Concurrency）原語，取代 SELECT ... FOR UPDATE

核心概念：
- 讀：一律從資料庫重新讀取（populate_existing），不信任 session 內的舊物件
- 寫：每次寫入都是單一 statement + 立即 commit
- Guarded update：UPDATE ... WHERE id = :key AND <欄位 = 讀到的值>
  回傳 False 代表「別人已經先改過了」，呼叫端自行決定要當成 no-op 還是錯誤

不提供跨多筆 row 的 transaction；跨 row 的一致性由 Manager 以
「讀快照 -> 判斷 -> 帶 guard 寫入 -> 重新讀取驗證」的方式維持
"""
from contextlib import contextmanager
from typing import Any, Iterable, List, Mapping, Optional
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import RecordConflict, StorageError
from database import transactional

logger = logging.getLogger(__name__)


@contextmanager
def _storage_errors(operation: str):
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Read failed in {operation}: {e}", exc_info=True)
        raise StorageError(f"{operation} failed") from e


def _conditions(model, filters: Mapping[str, Any]) -> list:
    return [getattr(model, field) == value for field, value in filters.items()]


def get(db: Session, model, key) -> Optional[Any]:
    """
    以主鍵讀取單筆資料

    返回：
        record，不存在時回傳 None
    """
    with _storage_errors("get"):
        return (
            db.query(model)
            .populate_existing()
            .filter(model.id == key)
            .first()
        )


def list_rows(db: Session, model, order_by: Iterable = (), **filters) -> List[Any]:
    """
    依條件讀取多筆資料

    範例：
        players = list_rows(db, Player, order_by=(Player.created_at, Player.id), room_id=room_id)
    """
    with _storage_errors("list_rows"):
        query = db.query(model).populate_existing().filter(*_conditions(model, filters))
        order = tuple(order_by)
        if order:
            query = query.order_by(*order)
        return query.all()


@transactional
def insert(db: Session, record):
    """
    新增一筆資料

    異常：
        RecordConflict: 主鍵重複或外鍵指向不存在的 row
    """
    db.add(record)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise RecordConflict(f"Cannot insert {type(record).__name__}: {e.orig}") from e
    return record


@transactional
def update(
    db: Session,
    model,
    key,
    fields: Mapping[str, Any],
    guard: Optional[Mapping[str, Any]] = None
) -> bool:
    """
    Compare-and-swap：只有在 guard 的每個欄位都等於預期值時才寫入

    參數：
        model: Room 或 Player
        key: 主鍵
        fields: 要寫入的欄位
        guard: {欄位: 預期值}，None 代表只要求 row 存在

    返回：
        True 如果 row 符合條件並已寫入，False 代表 0 rows affected
    """
    matched = (
        db.query(model)
        .filter(model.id == key, *_conditions(model, guard or {}))
        .update(dict(fields), synchronize_session=False)
    )
    return matched > 0


@transactional
def update_where(db: Session, model, fields: Mapping[str, Any], **filters) -> int:
    """
    單一 statement 的多筆更新（例如重置整個房間的玩家）

    返回：
        符合條件的 row 數量
    """
    return (
        db.query(model)
        .filter(*_conditions(model, filters))
        .update(dict(fields), synchronize_session=False)
    )


@transactional
def delete(db: Session, model, key) -> int:
    """
    無條件刪除（本身就是冪等的：第二次刪除只會回傳 0）
    """
    return (
        db.query(model)
        .filter(model.id == key)
        .delete(synchronize_session=False)
    )


@transactional
def delete_where(db: Session, model, **filters) -> int:
    return (
        db.query(model)
        .filter(*_conditions(model, filters))
        .delete(synchronize_session=False)
    )
