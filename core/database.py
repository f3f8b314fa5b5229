from sqlmodel import SQLModel, create_engine, Session
from typing import Generator
import logging

from core.config import settings

logger = logging.getLogger(__name__)

# ============================================================
# ✅ Database URL setup (PostgreSQL preferred)
# ============================================================
DATABASE_URL = settings.DATABASE_URL

if DATABASE_URL.startswith("sqlite"):
    logger.warning("⚠️ Using local SQLite database. Set DATABASE_URL for PostgreSQL.")
    connect_args = {"check_same_thread": False}
else:
    logger.info("✅ Using database from environment.")
    connect_args = {}

# ============================================================
# ✅ Create SQLModel engine
# ============================================================
# For PostgreSQL, pool_pre_ping avoids stale connections
engine = create_engine(
    DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
    connect_args=connect_args,
)


# ============================================================
# ✅ Create tables (called at startup)
# ============================================================
def create_db_and_tables() -> None:
    """
    Create all database tables based on SQLModel models.
    This runs automatically at app startup.
    """
    # Registers every table on SQLModel.metadata
    import models.models  # noqa: F401

    try:
        SQLModel.metadata.create_all(engine)
        logger.info("✅ All database tables created successfully.")
    except Exception as e:
        logger.error(f"❌ Failed to create tables: {e}")
        raise


# ============================================================
# ✅ Dependency: FastAPI session generator
# ============================================================
def get_session() -> Generator[Session, None, None]:
    """
    Provides a SQLModel Session to FastAPI dependencies.
    Closes automatically after request completes.
    """
    with Session(engine) as session:
        yield session
