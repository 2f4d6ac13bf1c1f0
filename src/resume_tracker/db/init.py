from __future__ import annotations

from pathlib import Path

from resume_tracker.config import get_settings
from resume_tracker.db.base import Base
from resume_tracker.db.session import engine
from resume_tracker.db import models  # noqa: F401


def ensure_data_directories() -> None:
    settings = get_settings()
    paths: list[Path] = [settings.data_dir, settings.local_storage_path.parent]
    database_url = settings.database_url
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        paths.append(Path(database_url.removeprefix("sqlite:///")).parent)
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)


def init_database() -> dict[str, list[str]]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)
    return {"tables": sorted(Base.metadata.tables)}
