# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - Queue, dispatcher and cron tick
# PURPOSE: Drive tasks from PENDING to a terminal state
# CREATED: 28 SEP 2026
# ============================================================================
"""
Orchestrator Module

Usage:
    from orchestrator import Dispatcher, MintQueue, CronTickHandler

    queue = MintQueue()
    dispatcher = Dispatcher(task_service, registry, queue, artifacts, chain)
    summary = await CronTickHandler(adapter, task_service, dispatcher, queue).tick()
"""

from .queue import MintQueue
from .dispatcher import Dispatcher, DrainResult
from .cron import CronTickHandler

__all__ = ["MintQueue", "Dispatcher", "DrainResult", "CronTickHandler"]
