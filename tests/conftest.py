from __future__ import annotations

import os
import tempfile
from pathlib import Path

_TEST_DIR = Path(tempfile.mkdtemp(prefix="resume-tracker-tests-"))
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR / 'tracker.db'}"
os.environ["DATA_DIR"] = str(_TEST_DIR)
os.environ["LOCAL_STORAGE_PATH"] = str(_TEST_DIR / "local_store.json")
os.environ["OPENAI_API_KEY"] = ""

import pytest  # noqa: E402

from resume_tracker.core.runtime import get_parse_cache  # noqa: E402
from resume_tracker.db.base import Base  # noqa: E402
from resume_tracker.db.session import engine  # noqa: E402
from resume_tracker.db import models  # noqa: E402,F401


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    get_parse_cache().clear()
    yield
