from __future__ import annotations

import os
import tempfile

# Keep runtime files (config, sqlite) out of the working tree.
os.environ.setdefault("SRTFLOW_RUNTIME_DIR", tempfile.mkdtemp(prefix="srtflow-tests-"))

import pytest  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from srtflow.db.base import Base  # noqa: E402
from srtflow.db.session import build_engine, build_sessionmaker  # noqa: E402
from srtflow.services.job_store import SqlJobStore  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def session_factory() -> sessionmaker[Session]:
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield build_sessionmaker(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory: sessionmaker[Session]) -> SqlJobStore:
    return SqlJobStore(session_factory)
