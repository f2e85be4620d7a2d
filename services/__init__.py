# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - Business logic layer
# PURPOSE: Enqueue, transition, preference and query services
# CREATED: 26 SEP 2026
# ============================================================================
"""
Services Module

Business logic for mint coordination.
Services coordinate between the persistence adapter, the provider
registry and the in-memory queue.

Usage:
    from services import TaskService, QueryService

    task_service = TaskService(adapter, registry, queue, config.coordinator)
    result = await task_service.enqueue(request)
"""

from .preference_service import ProviderPreferenceRegistry
from .task_service import EnqueueResult, EnqueueStatus, TaskService
from .query_service import QueryService, UNKNOWN_STATUS
from .validation import ProcessRequest, parse_process_request, validate_task_id

__all__ = [
    "ProviderPreferenceRegistry",
    "TaskService",
    "EnqueueResult",
    "EnqueueStatus",
    "QueryService",
    "UNKNOWN_STATUS",
    "ProcessRequest",
    "parse_process_request",
    "validate_task_id",
]
