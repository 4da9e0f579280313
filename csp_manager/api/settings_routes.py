"""Endpoints for reading and replacing the per-context policies."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException

from csp_manager.api.auth import require_api_key
from csp_manager.config.policy_service import get_policy_service
from csp_manager.models.policy import (
    DiagnosticOut,
    DirectiveInfo,
    HeaderOut,
    PolicyResponse,
    PolicyUpdate,
    PreviewResponse,
)
from csp_manager.policy.directives import is_known, list_directives
from csp_manager.policy.model import DirectiveEntry, PolicyContext, PolicyModel
from csp_manager.policy.serializer import render
from csp_manager.policy.validator import validate
from csp_manager.store.options import OptionsStoreError

logger = structlog.get_logger()

router = APIRouter(prefix="/api/csp", tags=["csp"], dependencies=[Depends(require_api_key)])


def _context_or_404(context: str) -> PolicyContext:
    try:
        return PolicyContext.parse(context)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown policy context: {context}")


def _model_or_404(ctx: PolicyContext) -> PolicyModel:
    model = get_policy_service().get_model(ctx)
    if model is None:
        raise HTTPException(status_code=404, detail=f"No stored policy for context: {ctx.value}")
    return model


@router.get("/directives", response_model=list[DirectiveInfo])
async def get_directives():
    """List the configurable directives in rendering order."""
    return [DirectiveInfo.from_directive(d) for d in list_directives()]


@router.get("/policies", response_model=list[PolicyResponse])
async def list_policies():
    """Return every stored policy."""
    snapshot = get_policy_service().get_snapshot()
    return [PolicyResponse.build(snapshot[ctx]) for ctx in PolicyContext if ctx in snapshot]


@router.get("/policies/{context}", response_model=PolicyResponse)
async def get_policy(context: str):
    """Return one context's stored policy."""
    return PolicyResponse.build(_model_or_404(_context_or_404(context)))


@router.put("/policies/{context}", response_model=PolicyResponse)
async def update_policy(context: str, body: PolicyUpdate):
    """Replace one context's policy.

    Syntax problems are returned as diagnostics but do not block the save.
    """
    ctx = _context_or_404(context)
    unknown = sorted(name for name in body.directives if not is_known(name))
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown directives: {', '.join(unknown)}")

    submitted = PolicyModel(
        context=ctx,
        mode=body.mode,
        entries={
            name: DirectiveEntry(enabled=setting.enabled, value=setting.value)
            for name, setting in body.directives.items()
        },
        report_to=body.report_to,
    )

    try:
        model = get_policy_service().save_record(ctx, submitted.to_record())
    except OptionsStoreError as exc:
        logger.error("csp_policy_save_failed", context=ctx.value, error=str(exc))
        raise HTTPException(status_code=503, detail="Option store unavailable")
    return PolicyResponse.build(model, render(model), validate(model))


@router.get("/policies/{context}/preview", response_model=PreviewResponse)
async def preview_policy(context: str):
    """Show the headers a request in this context would receive."""
    model = _model_or_404(_context_or_404(context))
    return PreviewResponse(
        context=model.context.value,
        headers=[HeaderOut(name=n, value=v) for n, v in render(model)],
        diagnostics=[DiagnosticOut.from_diagnostic(d) for d in validate(model)],
    )
