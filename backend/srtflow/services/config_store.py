"""Read/write persisted local configuration."""

from __future__ import annotations

import json
import os
from pathlib import Path

from srtflow.core.settings import ENV_API_URL, ENV_DATABASE_URL, PATHS
from srtflow.schemas.config import AppConfig


def apply_env_overrides(config: AppConfig) -> AppConfig:
    api_url = os.environ.get(ENV_API_URL, "").strip()
    if api_url:
        config.service.base_url = api_url
    database_url = os.environ.get(ENV_DATABASE_URL, "").strip()
    if database_url:
        config.store.database_url = database_url
    return config


def load_config(path: Path = PATHS.config_path) -> AppConfig:
    if not path.exists():
        return apply_env_overrides(AppConfig())
    data = json.loads(path.read_text(encoding="utf-8"))
    return apply_env_overrides(AppConfig.model_validate(data))


def save_config(config: AppConfig, path: Path = PATHS.config_path) -> AppConfig:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(config.model_dump(), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return config
