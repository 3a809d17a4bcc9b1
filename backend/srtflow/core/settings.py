"""Runtime paths and static app settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AppPaths:
    project_root: Path
    backend_root: Path
    runtime_root: Path
    config_path: Path
    db_path: Path


def build_paths() -> AppPaths:
    backend_root = Path(__file__).resolve().parents[2]
    project_root = backend_root.parent
    runtime_root = Path(os.environ.get("SRTFLOW_RUNTIME_DIR") or project_root / "runtime")
    config_path = runtime_root / "config.json"
    db_path = runtime_root / "jobs.sqlite3"

    runtime_root.mkdir(parents=True, exist_ok=True)

    return AppPaths(
        project_root=project_root,
        backend_root=backend_root,
        runtime_root=runtime_root,
        config_path=config_path,
        db_path=db_path,
    )


APP_VERSION = "0.1.0"
PATHS = build_paths()

ENV_API_URL = "SRTFLOW_API_URL"
ENV_DATABASE_URL = "SRTFLOW_DATABASE_URL"
