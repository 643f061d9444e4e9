from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from scopeauth.db.init_db import init_db
from scopeauth.logging_config import configure_app_logging
from scopeauth.routers import admin, health, reports, users
from scopeauth.security.config import load_security_config
from scopeauth.security.dependencies import enforce_security
from scopeauth.security.errors import ScopeResolutionError
from scopeauth.security.service import AccessControl
from scopeauth.settings import get_settings

logger = logging.getLogger(__name__)


async def _scope_resolution_failed(request: Request, exc: ScopeResolutionError) -> JSONResponse:
    # Fail closed with a generic error; details only go to the log.
    logger.error("Scope resolution failed path=%s method=%s: %s", request.url.path, request.method, exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Permission check failed"})


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())

        # One access-control instance per process; its caches start at generation 0.
        app.state.access_control = AccessControl(admin_role=settings.admin_role)

        init_db()
        logger.info("Database initialized (tables ensured + seed if needed)")

        yield

    # Global dependency: route rules from security_config.yaml, no handler changes needed.
    app = FastAPI(dependencies=[Depends(enforce_security)], lifespan=lifespan)
    app.add_exception_handler(ScopeResolutionError, _scope_resolution_failed)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(reports.router)
    app.include_router(admin.router)

    return app


app = create_app()
