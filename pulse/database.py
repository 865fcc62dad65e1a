"""PULSE — Database Engine.

One engine per process, built from ``settings.effective_database_url``.
SQLite (local dev, tests, serverless fallback) and PostgreSQL get
different pool settings; everything else goes through ``SqlStore``.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, create_engine

from pulse.config import settings
from pulse.core.logging import get_logger, timed

logger = get_logger("database")

db_url = settings.effective_database_url


def mask_url(url: str) -> str:
    """The URL with its password replaced by ``***``."""
    return make_url(url).render_as_string(hide_password=True)


def backend_name(url: str) -> str:
    return make_url(url).get_backend_name()


def engine_options(url: str) -> Dict[str, Any]:
    if backend_name(url) == "sqlite":
        return {"echo": False, "connect_args": {"check_same_thread": False}}
    return {
        "echo": False,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 300,
    }


def build_engine(url: str) -> Engine:
    logger.info(f"📦 Database backend: {backend_name(url)} ({mask_url(url)})")
    return create_engine(url, **engine_options(url))


engine = build_engine(db_url)


def check_connection(bind: Optional[Engine] = None) -> bool:
    """Run ``SELECT 1``; False if the database cannot be reached."""
    try:
        with timed(logger, "✅ Database connection check passed", level=logging.INFO):
            with (bind or engine).connect() as conn:
                conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"❌ Database connection check failed: {e}")
        return False


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the identity, post, snapshot and archive tables."""
    from pulse.models import identity_models, raw_models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    logger.info(f"✅ Tables ready: {', '.join(sorted(SQLModel.metadata.tables))}")
