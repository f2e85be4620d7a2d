# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - FastAPI route definitions
# PURPOSE: Enqueue, status polling, cron trigger, metrics and health
# CREATED: 02 OCT 2026
# ============================================================================
"""
API Routes

    GET  /process/{tokenId}       enqueue a generate-and-mint task
    GET  /status/{taskId}         task record (?minimal=true for the short form)
    POST /cancel/{taskId}         cancel a PENDING/PROCESSING task
    GET  /tasks/token/{tokenId}   every stored task for a token, newest first
    GET  /cron                    run one cron tick
    GET  /metrics                 aggregate counters
    GET  /providers               provider capabilities
    GET  /health                  store reachability (503 when unhealthy)

Query parameters are taken as raw strings and validated by
services.validation so that every rejection is a 400 with a sanitized
message.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from __version__ import __version__, BUILD_DATE
from services.query_service import UNKNOWN_STATUS
from services.validation import (
    parse_flag,
    parse_process_request,
    validate_task_id,
    validate_token_id,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# These will be set by the main app at startup

_task_service = None
_query_service = None
_cron_handler = None
_adapter = None
_dispatcher = None


def set_services(task_service, query_service, cron_handler, adapter, dispatcher=None):
    """Set service instances for dependency injection."""
    global _task_service, _query_service, _cron_handler, _adapter, _dispatcher
    _task_service = task_service
    _query_service = query_service
    _cron_handler = cron_handler
    _adapter = adapter
    _dispatcher = dispatcher


def get_task_service():
    if _task_service is None:
        raise HTTPException(500, "Services not initialized")
    return _task_service


def get_query_service():
    if _query_service is None:
        raise HTTPException(500, "Services not initialized")
    return _query_service


def get_cron_handler():
    if _cron_handler is None:
        raise HTTPException(500, "Cron handler not initialized")
    return _cron_handler


# ============================================================================
# ENQUEUE
# ============================================================================

@router.get("/process/{token_id}", tags=["Tasks"])
async def process_token(
    token_id: str,
    breed: Optional[str] = Query(None),
    image_provider: Optional[str] = Query(None, alias="imageProvider"),
    prompt_extras: Optional[str] = Query(None, alias="promptExtras"),
    negative_prompt: Optional[str] = Query(None, alias="negativePrompt"),
    provider_options: Optional[str] = Query(None, alias="providerOptions"),
    force: Optional[str] = Query(None),
    regenerate: Optional[str] = Query(None),
    timeout: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
):
    """
    Queue image generation + finalize for a token.

    Returns {status: "queued", taskId, ...}, or {status: "already_processed"}
    when the token has an active task or was already minted (without force).
    """
    task_service = get_task_service()
    request = parse_process_request(
        token_id,
        {
            "breed": breed,
            "imageProvider": image_provider,
            "promptExtras": prompt_extras,
            "negativePrompt": negative_prompt,
            "providerOptions": provider_options,
            "force": force,
            "regenerate": regenerate,
            "timeout": timeout,
            "priority": priority,
        },
        providers=task_service.registry.names,
        max_token_id=task_service.config.max_token_id,
    )
    result = await task_service.enqueue(request)
    return result.to_response()


# ============================================================================
# TASK QUERIES
# ============================================================================

@router.get("/status/{task_id}", tags=["Tasks"])
async def task_status(task_id: str, minimal: Optional[str] = Query(None)):
    """Fresh task record; an overdue task is timed out before it is returned."""
    validate_task_id(task_id)
    task = await get_query_service().status(task_id)
    if task is None:
        return JSONResponse(
            status_code=404,
            content={**UNKNOWN_STATUS, "taskId": task_id, "error": "Task not found"},
        )
    if parse_flag(minimal, "minimal"):
        return task.to_minimal()
    return task.to_public()


@router.post("/cancel/{task_id}", tags=["Tasks"])
async def cancel_task(task_id: str, reason: Optional[str] = Query(None)):
    """Cancel a task. Cancelling a terminal task changes nothing."""
    validate_task_id(task_id)
    transition = await get_task_service().cancel(task_id, reason=reason[:500] if reason else None)
    if transition is None:
        return JSONResponse(
            status_code=404,
            content={**UNKNOWN_STATUS, "taskId": task_id, "error": "Task not found"},
        )
    return {
        "taskId": task_id,
        "status": transition.task.status.value,
        "canceled": transition.applied,
        "message": transition.events[0].message,
    }


@router.get("/tasks/token/{token_id}", tags=["Tasks"])
async def tasks_for_token(token_id: str):
    """All stored tasks for a token, newest first."""
    task_service = get_task_service()
    parsed = validate_token_id(token_id, task_service.config.max_token_id)
    tasks = await get_query_service().tasks_by_token(parsed)
    return {
        "tokenId": parsed,
        "count": len(tasks),
        "tasks": [t.to_public() for t in tasks],
    }


# ============================================================================
# CRON / METRICS / HEALTH
# ============================================================================

@router.get("/cron", tags=["Operations"])
async def run_cron():
    """Run one tick: sweep, cleanup, reseed, scan, drain."""
    return await get_cron_handler().tick()


@router.get("/metrics", tags=["Operations"])
async def get_metrics():
    return await get_query_service().metrics()


@router.get("/providers", tags=["Operations"])
async def get_providers():
    task_service = get_task_service()
    return {
        "default": task_service.config.default_provider,
        "providers": task_service.registry.capabilities(),
    }


@router.get("/health", tags=["Health"])
async def health_check():
    """Store reachability plus dispatcher state. 503 when the store is unreachable."""
    if _adapter is None:
        raise HTTPException(500, "Services not initialized")
    store = await _adapter.health_check()
    body = {
        "status": store["status"],
        "version": __version__,
        "build_date": BUILD_DATE,
        "store": store,
    }
    if _dispatcher is not None:
        body["dispatcher"] = _dispatcher.stats
    return JSONResponse(status_code=200 if store["status"] == "healthy" else 503, content=body)


__all__ = ["router", "set_services"]
