from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI
from sqlalchemy.orm import sessionmaker

from crm_scope.db import filters as _filters  # noqa: F401  (register row scoping listener)
from crm_scope.db.init_db import init_db
from crm_scope.db.session import SessionLocal
from crm_scope.logging_config import configure_app_logging
from crm_scope.routers import admin, catalog, employees, health, leads, reports, tasks, workforce
from crm_scope.security.config import SecurityConfig, load_security_config
from crm_scope.security.dependencies import enforce_security
from crm_scope.settings import get_settings

logger = logging.getLogger(__name__)


def create_app(
    session_factory: sessionmaker | None = None,
    security_config: SecurityConfig | None = None,
) -> FastAPI:
    """
    Build the API.

    `session_factory` and `security_config` let tests run the app against
    their own database and rules; without them the app uses the configured
    database (created and seeded on startup) and YAML file.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        if security_config is None:
            app.state.security_config = load_security_config(settings.resolved_security_config_path())
            logger.info("Loaded security config: %s", settings.resolved_security_config_path())
        else:
            app.state.security_config = security_config

        if session_factory is None:
            init_db()
            logger.info("Database initialized (tables ensured + seed if needed)")
            app.state.session_factory = SessionLocal
        else:
            app.state.session_factory = session_factory

        yield

    # Global dependency: every route is authenticated, authorized and scoped.
    app = FastAPI(title="CRM scope engine", dependencies=[Depends(enforce_security)], lifespan=lifespan)

    app.include_router(health.router)
    app.include_router(employees.router)
    app.include_router(leads.router)
    app.include_router(tasks.router)
    app.include_router(workforce.router)
    app.include_router(catalog.router)
    app.include_router(reports.router)
    app.include_router(admin.router)

    return app


app = create_app()
