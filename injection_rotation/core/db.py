import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


_engine: Optional[Engine] = None


def init_db(url: Optional[str]) -> Optional[Engine]:
    global _engine

    if not url:
        logger.info("DATABASE_URL not set. History is kept in the JSON data store.")
        _engine = None
        return None

    safe_url = url.split("@")[-1] if "@" in url else url.split("://")[0]
    logger.info(f"Connecting to database: {safe_url}")
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    _engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
    return _engine


def get_engine() -> Optional[Engine]:
    return _engine


def create_tables(engine: Engine) -> None:
    # Table classes must be registered on Base before create_all
    import injection_rotation.models  # noqa: F401

    Base.metadata.create_all(engine)


def check_db_health() -> dict:
    if not _engine:
        return {"ok": True, "mode": "file"}
    try:
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"ok": True, "mode": "database", "driver": _engine.driver}
    except Exception as e:
        logger.error(f"DB Health Check Failed: {e}")
        return {"ok": False, "error": str(e)}
