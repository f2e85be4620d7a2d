# ============================================================================
# API MIDDLEWARE & ERROR HANDLERS
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: API - Cross-cutting HTTP behaviour
# PURPOSE: Uniform CORS headers, 204 preflight, sanitized error responses
# CREATED: 02 OCT 2026
# ============================================================================
"""
API middleware.

CORS headers go on every response, including errors; any OPTIONS request
short-circuits with 204.

Error mapping:
    ValidationError       -> 400 {"error", "field"}
    MintCoordinatorError  -> 500 {"error", "errorId"}   (StoreFatalError etc.)
    anything else         -> 500 {"error", "errorId"}

The errorId is a uuid logged next to the full exception; no stack trace
or store message leaves the process.
"""

import logging
import uuid
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from core.errors import MintCoordinatorError, ValidationError

logger = logging.getLogger(__name__)


def cors_headers(origin: str = "*") -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Max-Age": "86400",
    }


def install_cors(app: FastAPI, origin: str = "*") -> None:
    headers = cors_headers(origin)

    @app.middleware("http")
    async def _cors(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)
        response = await call_next(request)
        response.headers.update(headers)
        return response


def install_error_handlers(app: FastAPI, origin: str = "*") -> None:
    headers = cors_headers(origin)

    def _opaque(exc: Exception, where: str) -> JSONResponse:
        error_id = uuid.uuid4().hex
        logger.error(f"Unhandled error in {where} [errorId={error_id}]: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "errorId": error_id},
            headers=headers,
        )

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=400,
            content={"error": exc.message, "field": exc.field},
            headers=headers,
        )

    @app.exception_handler(MintCoordinatorError)
    async def _coordinator_error(request: Request, exc: MintCoordinatorError):
        return _opaque(exc, f"{request.method} {request.url.path} ({exc.kind.value})")

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception):
        return _opaque(exc, f"{request.method} {request.url.path}")


__all__ = ["cors_headers", "install_cors", "install_error_handlers"]
