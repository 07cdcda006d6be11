from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache, wraps
import logging

from core.exceptions import InvestmentGameException, StorageError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    database_url: str = "sqlite:///./investment_game.db"
    sql_echo: bool = False
    log_level: str = "INFO"
    cors_allow_origins: str = "*"
    room_code_attempts: int = 10
    host_election_attempts: int = 5


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()


def create_db_engine(database_url: str, echo: bool = False):
    """
    建立 SQLAlchemy Engine

    SQLite 需要特殊設定：
    - connect_args={"check_same_thread": False}：允許多執行緒共用連線池
    - PRAGMA foreign_keys=ON：players.room_id 的 ON DELETE CASCADE 才會生效
    """
    is_sqlite = database_url.startswith("sqlite")
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if is_sqlite else {},
        pool_pre_ping=True,
        echo=echo
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(bind) -> sessionmaker:
    """
    建立 Session factory

    expire_on_commit=False：每次寫入後 commit，但已讀出的物件保留為「快照」，
    需要最新狀態時一律重新查詢（見 core.record_store）
    """
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = create_db_engine(settings.database_url, echo=settings.sql_echo)
SessionLocal = create_session_factory(engine)
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
    Transaction decorator：每一次寫入都是一個獨立、立即 commit 的 transaction

    使用方式：
        @transactional
        def update(db: Session, ...):
            db.query(Room).filter(...).update(...)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - SQLAlchemy 的錯誤轉成 StorageError（讓 API 層回 500）
        - 業務異常（例如 RecordConflict）原樣重新拋出，不記 error log
        - 其他異常記錄後原樣重新拋出

    注意：
        - 第一個參數必須是 db: Session
        - 不提供跨多筆資料的 transaction，跨 row 的一致性靠 guarded update
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
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise StorageError(f"{func.__name__} failed") from e
        except InvestmentGameException:
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
