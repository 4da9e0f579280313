"""Attach the resolved CSP headers to every HTTP response."""

from __future__ import annotations

from collections.abc import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from csp_manager.config.loader import get_settings
from csp_manager.policy.dispatcher import OnceSink, PolicySnapshot, resolve
from csp_manager.policy.model import PolicyContext
from csp_manager.policy.serializer import CSP_HEADER, CSP_REPORT_ONLY_HEADER, REPORT_TO_HEADER

logger = structlog.get_logger()

# Upstream values for these are replaced, never merged.
_MANAGED_HEADERS = (CSP_HEADER, CSP_REPORT_ONLY_HEADER, REPORT_TO_HEADER)


def classify_request(request: Request, admin_path_prefix: str, logged_in_cookie_prefix: str) -> PolicyContext:
    """Decide which audience a request belongs to.

    The admin interface wins over the logged-in state, matching how the
    admin area is only reachable by logged-in users anyway.
    """
    prefix = admin_path_prefix.rstrip("/")
    path = request.url.path
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        return PolicyContext.ADMIN
    if logged_in_cookie_prefix and any(
        name.startswith(logged_in_cookie_prefix) for name in request.cookies
    ):
        return PolicyContext.LOGGED_IN
    return PolicyContext.FRONTEND


class CSPHeadersMiddleware(BaseHTTPMiddleware):
    """Resolve the policy for each request's context and set its headers.

    The snapshot is fetched per request through *snapshot_provider*, so a
    reload only has to swap the object the provider returns.
    """

    def __init__(self, app: ASGIApp, snapshot_provider: Callable[[], PolicySnapshot]) -> None:
        super().__init__(app)
        self._snapshot_provider = snapshot_provider
        self._sink_snapshot: PolicySnapshot | None = None
        self._sink = OnceSink()

    def _sink_for(self, snapshot: PolicySnapshot) -> OnceSink:
        # One dedup sink per snapshot: a reload reports remaining problems again.
        if snapshot is not self._sink_snapshot:
            self._sink_snapshot = snapshot
            self._sink = OnceSink()
        return self._sink

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        try:
            return self._apply_headers(request, response)
        except Exception as exc:
            logger.error("csp_headers_error", error=str(exc), path=request.url.path)
            return response

    def _apply_headers(self, request: Request, response: Response) -> Response:
        settings = get_settings()
        context = classify_request(
            request, settings.admin_path_prefix, settings.logged_in_cookie_prefix
        )
        snapshot = self._snapshot_provider()
        rendered = resolve(context, snapshot, sink=self._sink_for(snapshot))

        for header in _MANAGED_HEADERS:
            if header in response.headers:
                del response.headers[header]
        for name, value in rendered:
            try:
                response.headers[name] = value
            except UnicodeEncodeError as exc:
                # Only this header is lost; the others still go out.
                logger.error("csp_header_unencodable", header=name, error=str(exc))
        return response
