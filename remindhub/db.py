"""
RemindHub WhatsApp Integration
Database module (single-file)

Provides:
- SQLAlchemy engine + SessionLocal for DATABASE_URL
  (PostgreSQL in production; SQLite accepted for local runs)
- get_db() generator for FastAPI dependency injection
- init_db() to create the chats / messages / app_settings tables at startup
- ping() for the health endpoint
"""

from __future__ import annotations

import os
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

# ---- Config ----
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set")


def _engine_kwargs(url: str) -> dict:
    kwargs: dict = {"pool_pre_ping": True}
    # Sync routes run in the threadpool; SQLite connections must be shareable
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


# ---- Engine + Session ----
engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db():
    """
    FastAPI dependency: one session per request, closed afterwards.
    Services commit their own units of work.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    from remindhub.models import Base

    Base.metadata.create_all(bind=engine)


def ping(db: Session) -> None:
    db.execute(text("SELECT 1"))
