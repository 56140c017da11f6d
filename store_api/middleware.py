"""
Request pre-processing that has to happen before routing:

* path normalization – ``/functions/v1/store-api/products/`` and
  ``/store-api/products`` both become ``/store-api/products``;
* bearer authentication – no route is matched for an unauthenticated caller;
* error envelope – unexpected exceptions become a 500 envelope inside CORS.
"""
from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from store_api.errors import InternalError, Unauthorized, fail
from store_api.services.identity import parse_bearer

logger = logging.getLogger(__name__)

# Paths served without a bearer token.
PUBLIC_PATHS = {"/health"}


def normalize_path(path: str, function_name: str) -> str:
    """
    Drop empty segments and everything up to the function name segment.
    The bare function path is the store root resource.
    """
    parts = [p for p in path.split("/") if p]
    if function_name in parts:
        rest = parts[parts.index(function_name) + 1:]
        return "/" + "/".join([function_name, *rest])
    return "/" + "/".join(parts)


class PathNormalizationMiddleware:
    """Pure ASGI middleware rewriting ``scope['path']`` to its canonical form."""

    def __init__(self, app: ASGIApp, function_name: str) -> None:
        self.app = app
        self.function_name = function_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            path = normalize_path(scope["path"], self.function_name)
            scope = dict(scope, path=path, raw_path=path.encode())
        await self.app(scope, receive, send)


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """
    Resolve the caller from ``Authorization: Bearer <token>`` and store the
    user id on ``request.state.user_id``. The identity provider is read from
    ``app.state.identity_provider`` so tests can swap it.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS" or request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        provider = request.app.state.identity_provider
        try:
            token = parse_bearer(request.headers.get("authorization"))
            request.state.user_id = await provider.resolve(token)
        except Unauthorized as exc:
            logger.warning(
                "Rejected unauthenticated %s %s", request.method, request.url.path
            )
            return fail(exc.message, exc.status_code)

        return await call_next(request)


class ErrorEnvelopeMiddleware(BaseHTTPMiddleware):
    """
    Render unexpected exceptions as the 500 envelope inside the CORS layer,
    so error responses carry the same CORS headers as any other response.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("Store API error on %s %s", request.method, request.url.path)
            err = InternalError(str(exc) or None)
            return fail(err.message, err.status_code)
