"""
Seller Store API – FastAPI entry point.

Request flow: CORS → path normalization → bearer authentication → route
table (first match wins) → handler with an ``AuthContext`` → JSON envelope.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from store_api.config import get_settings
from store_api.errors import ApiError, InternalError, NotFound, fail
from store_api.middleware import (
    BearerAuthMiddleware,
    ErrorEnvelopeMiddleware,
    PathNormalizationMiddleware,
)
from store_api.routers import (
    chat,
    financial,
    health,
    products,
    questions,
    reviews,
    social,
    store,
    support,
)
from store_api.services.identity import HostedIdentityProvider

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s – %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Seller Store API",
    version="1.0.0",
    description="Store, products, reviews, financials, chat and support for sellers.",
)

app.state.identity_provider = HostedIdentityProvider.from_settings(settings)

# ── Middleware ────────────────────────────────────────────────────────────────
# Added innermost first: CORS wraps normalization, which wraps authentication,
# which wraps the error envelope for anything the exception handlers miss.

app.add_middleware(ErrorEnvelopeMiddleware)
app.add_middleware(BearerAuthMiddleware)
app.add_middleware(PathNormalizationMiddleware, function_name=settings.function_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Exception handlers ────────────────────────────────────────────────────────

@app.exception_handler(ApiError)
async def _api_error(request: Request, exc: ApiError):
    return fail(exc.message, exc.status_code)


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors and errors[0].get("type") == "json_invalid":
        message = "Invalid JSON body"
    elif errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        message = f"Invalid or missing field: {field}"
    else:
        message = "Invalid request"
    return fail(message, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    # Unknown method on a known path is still an unmatched route.
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return fail(NotFound.default_message, status.HTTP_404_NOT_FOUND)
    return fail(str(exc.detail), exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def _database_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    err = InternalError(str(exc.orig) if getattr(exc, "orig", None) else str(exc))
    return fail(err.message, err.status_code)


# Last resort for failures raised outside ErrorEnvelopeMiddleware.
@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception):
    logger.exception("Store API error on %s %s", request.method, request.url.path)
    err = InternalError(str(exc) or None)
    return fail(err.message, err.status_code)


# ── Routers ───────────────────────────────────────────────────────────────────
# Order is the match order. Within each router static paths precede
# parametric ones.

app.include_router(health.router)

for _router in (
    store.router,
    products.router,
    social.router,
    questions.router,
    reviews.router,
    financial.router,
    chat.router,
    support.router,
):
    app.include_router(_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def _startup() -> None:
    logger.info("Seller Store API ready under %s", settings.api_prefix)
