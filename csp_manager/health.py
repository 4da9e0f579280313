"""Health endpoint reporting which policies are active."""

from __future__ import annotations

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from csp_manager.config.policy_service import get_policy_service
from csp_manager.policy.model import PolicyContext
from csp_manager.store.options import OptionsStoreError

logger = structlog.get_logger()
router = APIRouter()


@router.get("/health")
async def health():
    """Health check: store readability and each context's current mode."""
    service = get_policy_service()
    snapshot = service.get_snapshot()
    policies = {
        ctx.value: snapshot[ctx].mode.value if ctx in snapshot else "missing"
        for ctx in PolicyContext
    }

    try:
        service.store.all_options()
    except OptionsStoreError as exc:
        logger.warning("health_store_unreadable", error=str(exc))
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "store": "down", "policies": policies},
        )

    return {"status": "healthy", "store": "up", "policies": policies}
