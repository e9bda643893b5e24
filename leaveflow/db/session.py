"""
Database session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from leaveflow.core.config import settings
from leaveflow.db.base import Base

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args,
    echo=False
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_models() -> None:
    """Create all tables automatically for SQLite (other backends use alembic)"""
    import leaveflow.models  # noqa: F401  register models on Base.metadata

    if "sqlite" in settings.DATABASE_URL:
        Base.metadata.create_all(bind=engine)
