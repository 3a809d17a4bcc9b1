"""Database session and engine setup."""

from __future__ import annotations

import os
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from srtflow.core.settings import ENV_DATABASE_URL, PATHS

DATABASE_URL = os.environ.get(ENV_DATABASE_URL) or f"sqlite:///{PATHS.db_path}"


def build_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=False, future=True)
    options: dict[str, object] = {"connect_args": {"check_same_thread": False}}
    if url in {"sqlite://", "sqlite:///:memory:"}:
        # One shared connection, otherwise every session sees its own empty database.
        options["poolclass"] = StaticPool
    return create_engine(url, echo=False, future=True, **options)


def build_sessionmaker(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False)


engine = build_engine(DATABASE_URL)
SessionLocal = build_sessionmaker(engine)


@contextmanager
def session_scope(factory: sessionmaker[Session] = SessionLocal) -> Session:
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
