from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resume_tracker.api.errors import install_exception_handlers
from resume_tracker.api.routes import build_api_router
from resume_tracker.config import get_settings
from resume_tracker.db.base import utcnow
from resume_tracker.db.init import init_database
from resume_tracker.logging_config import configure_logging
from resume_tracker.types import format_utc


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization"],
    )
    install_exception_handlers(app)

    @app.on_event("startup")
    def _startup() -> None:
        init_database()

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "timestamp": format_utc(utcnow())})

    app.include_router(build_api_router(settings.api_prefix))
    return app
