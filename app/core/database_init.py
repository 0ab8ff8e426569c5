"""Database initialization module.

Creates any missing tables on app startup. Existing tables are left alone;
schema changes go through Alembic migrations.
"""

import logging

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from app.core.db import get_engine
from app.models import Base

logger = logging.getLogger(__name__)


def init_database_schema() -> None:
    engine = get_engine()
    try:
        existing = set(inspect(engine).get_table_names())
        missing = [table.name for table in Base.metadata.sorted_tables if table.name not in existing]
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        logger.exception("Failed to initialize database schema")
        raise
    if missing:
        logger.info("Database tables created: %s", ", ".join(missing))
    else:
        logger.info("Database schema is up to date")
