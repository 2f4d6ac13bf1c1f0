from __future__ import annotations

import logging

from resume_tracker.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
# These log every HTTP request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")

_LOG_CONFIGURED = False


def configure_logging(level: str | None = None) -> None:
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    settings = get_settings()
    resolved = logging.getLevelName((level or settings.log_level).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
    _LOG_CONFIGURED = True
