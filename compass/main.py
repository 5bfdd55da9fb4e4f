"""FastAPI entry point: app factory, table creation and migrations."""

import logging

from fastapi import FastAPI

from compass.api.v1 import router as api_v1_router
from compass.config import get_settings
from compass.db import Base, engine
from compass.infra.logging import setup_logging
from compass.migrations import run_migrations
from compass import models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """App factory, used by the tests and by uvicorn."""

    settings = get_settings()
    setup_logging(settings.service_name, settings.log_level)
    app = FastAPI(title="Reading Compass API", version="0.1.0")

    @app.on_event("startup")
    def init_models() -> None:
        """Create missing tables, then apply pending SQL migrations."""

        Base.metadata.create_all(bind=engine)
        run_migrations(engine)
        logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.service_name}

    app.include_router(api_v1_router)
    return app


app = create_app()
