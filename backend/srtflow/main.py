"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from srtflow.api import router
from srtflow.core.settings import APP_VERSION, PATHS
from srtflow.db.session import SessionLocal, build_engine, build_sessionmaker
from srtflow.schemas.config import AppConfig
from srtflow.services.config_store import load_config, save_config
from srtflow.services.job_store import SqlJobStore


def build_store(config: AppConfig) -> SqlJobStore:
    if config.store.database_url:
        return SqlJobStore(build_sessionmaker(build_engine(config.store.database_url)))
    return SqlJobStore(SessionLocal)


def create_app(store: Optional[SqlJobStore] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=os.environ.get("SRTFLOW_LOG_LEVEL", "INFO"),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        PATHS.runtime_root.mkdir(parents=True, exist_ok=True)

        # Ensure config file exists with defaults.
        if not PATHS.config_path.exists():
            save_config(load_config())

        job_store = store or build_store(load_config())
        job_store.create_schema()
        app.state.job_store = job_store

        yield

        job_store.hub.close_all()

    app = FastAPI(title="srtflow", version=APP_VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


app = create_app()
