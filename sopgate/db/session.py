"""Engine and session factory.

SQLite is the development default; production deployments point
``DATABASE_URL`` at PostgreSQL.
"""

import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from sopgate.core.config import get_settings
from sopgate.db.base import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine with pool settings suited to the backend."""
    engine_kwargs: dict = {
        "future": True,
        "echo": echo,
        "pool_pre_ping": True,
    }
    if database_url.startswith("sqlite"):
        # Worker threads (sweeper, request handlers) share the file; writers
        # wait on the lock instead of failing straight away.
        engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    else:
        engine_kwargs.update(
            {
                "pool_recycle": 1800,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
            }
        )
    return create_engine(database_url, **engine_kwargs)


def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )


settings = get_settings()
engine = build_engine(settings.database_url, echo=settings.database_echo)
SessionLocal = build_sessionmaker(engine)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet (dev / test convenience)."""
    import sopgate.db.models  # noqa: F401  registers the mappers

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database schema ensured")
