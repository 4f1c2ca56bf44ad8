"""
Database Session Management

Builds the SQLAlchemy engine and session factory from the engine's
configuration. All engine I/O is synchronous.
"""

from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from qengine.common.config import DatabaseConfig, get_config
from qengine.common.logger import app_logger
from qengine.database.base import metadata

logger = app_logger.getChild("db.session")


def get_engine_kwargs(db_config: DatabaseConfig) -> Dict[str, Any]:
    """
    Get engine keyword arguments based on database type.
    Different databases support different connection options.
    """
    kwargs: Dict[str, Any] = {"echo": db_config.echo}

    if not db_config.is_sqlite:
        kwargs.update({
            "pool_size": db_config.pool_size,
            "pool_pre_ping": True,
            "pool_recycle": 300,
        })

    return kwargs


def create_db_engine(db_config: Optional[DatabaseConfig] = None) -> Engine:
    """Create an engine for the configured database."""
    db_config = db_config or get_config().database
    logger.info(f"Creating database engine for {db_config.url.split('@')[-1]}")
    return create_engine(db_config.url, **get_engine_kwargs(db_config))


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_database(engine: Engine) -> None:
    """Create any missing engine tables."""
    import qengine.database.models  # noqa: F401  registers the tables on the metadata

    metadata.create_all(engine)
    logger.info("Question engine tables created")
