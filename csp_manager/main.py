"""FastAPI application serving the policy settings API with CSP headers applied."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from csp_manager.api.settings_routes import router as settings_router
from csp_manager.config.loader import load_settings, register_reload_handler
from csp_manager.config.policy_service import (
    get_policy_service,
    reload_policy_service,
    reset_policy_service,
)
from csp_manager.health import router as health_router
from csp_manager.logging_config import setup_logging
from csp_manager.middleware.csp_headers import CSPHeadersMiddleware
from csp_manager.policy.dispatcher import PolicySnapshot
from csp_manager.store.options import OptionsStoreError

logger = structlog.get_logger()


def _current_snapshot() -> PolicySnapshot:
    return get_policy_service().get_snapshot()


def _reload_policies() -> None:
    """Rebuild the service from fresh settings (the options file may have moved)."""
    reload_policy_service()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    settings = load_settings()
    setup_logging(log_level=settings.log_level, json_format=settings.log_json)
    register_reload_handler(_reload_policies)

    reset_policy_service()
    service = get_policy_service()
    try:
        added = service.activate()
    except OptionsStoreError as exc:
        # Serve without policies rather than refuse to start.
        logger.error("csp_activation_failed", error=str(exc))
    else:
        if added:
            logger.info("csp_first_activation", options=added)

    yield

    logger.info("csp_manager_shutdown")


app = FastAPI(title="CSP Manager", lifespan=lifespan)
app.add_middleware(CSPHeadersMiddleware, snapshot_provider=_current_snapshot)
app.include_router(health_router)
app.include_router(settings_router)
