from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from admin_service.core.config import Settings, settings as default_settings
from admin_service.core.database import Database
from admin_service.core.module_loader import collect_routers


logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Admin Service", version="0.1.0")
    app.state.settings = settings
    app.state.db = Database(settings.DATABASE_URL, echo=settings.SQL_ECHO)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Content-Type", "Authorization"],
    )

    routers = collect_routers()
    # Ensure DB schema is present before routes are registered
    app.state.db.ensure_core_schema()

    for router in routers:
        app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "admin-service"}

    @app.on_event("shutdown")
    def _shutdown():
        app.state.db.dispose()
        logger.info("Database engine disposed")

    return app
