"""Database session management with connection pooling"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from crm_billing.config import settings


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # Local runs and tests share one connection across threads
        return create_engine(database_url, connect_args={"check_same_thread": False})

    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
