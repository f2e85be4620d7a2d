# ============================================================================
# TASK SERVICE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Service - Enqueue path and the single task write path
# PURPOSE: Create tasks with duplicate suppression; apply transition commands
# CREATED: 27 SEP 2026
# ============================================================================
"""
Task Service

Owns the two ways a task row changes:

enqueue(request)
    provider resolution + option check -> duplicate check ->
    preference write -> task insert (PENDING) -> work item queued

transition(task_id, cmd)
    load -> state_machine.apply -> conditional upsert guarded on the
    observed (status, history length), with the metrics delta applied in
    the same store transaction. A lost race reloads and re-applies, so two
    writers never both land a transition from the same observed state.

Duplicate rules (one non-terminal task per token):
    - token has an active task            -> already_processed (collapse)
    - token completed before, no force    -> already_processed
    - force and the prior task terminal   -> new task
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Optional

from core.config import CoordinatorConfig
from core.contracts import ACTIVE_STATUSES, TaskStatus
from core.errors import StoreFatalError, ValidationError
from core.logging import log_checkpoint, log_context
from core.models import (
    CRON_STATE_TYPE,
    CancelCmd,
    MintTask,
    MintWorkItem,
    ProcessState,
    TaskCommand,
)
from core.state_machine import EventType, TaskEvent, Transition, apply
from infrastructure.chain import MintChain
from providers import ProviderRegistry
from repositories import PersistenceAdapter, TaskFilter
from services.preference_service import ProviderPreferenceRegistry
from services.validation import ProcessRequest

if TYPE_CHECKING:
    from orchestrator.queue import MintQueue

logger = logging.getLogger(__name__)

MAX_WRITE_CONFLICTS = 3


class EnqueueStatus(str, Enum):
    QUEUED = "queued"
    ALREADY_PROCESSED = "already_processed"


@dataclass(frozen=True)
class EnqueueResult:
    """Outcome of enqueue(). task is the new task, or the one that blocked it."""
    status: EnqueueStatus
    token_id: int
    task: Optional[MintTask] = None
    provider: Optional[str] = None
    options: Optional[Dict[str, Any]] = None
    current_uri: Optional[str] = None
    owner: Optional[str] = None
    reason: Optional[str] = None

    @property
    def queued(self) -> bool:
        return self.status == EnqueueStatus.QUEUED

    def to_response(self) -> Dict[str, Any]:
        if not self.queued:
            body: Dict[str, Any] = {"status": self.status.value, "tokenId": self.token_id}
            if self.task is not None:
                body["taskId"] = self.task.task_id
                body["taskStatus"] = self.task.status.value
            if self.reason:
                body["message"] = self.reason
            return body
        return {
            "status": self.status.value,
            "taskId": self.task.task_id,
            "tokenId": self.token_id,
            "breed": self.task.breed,
            "imageProvider": self.provider,
            "currentURI": self.current_uri,
            "owner": self.owner or "unknown",
            "options": self.options or {},
            "estimatedCompletionTime": (
                self.task.estimated_completion_time.isoformat()
                if self.task.estimated_completion_time else None
            ),
        }


class TaskService:
    """Enqueue path plus the load-apply-write loop every mutation goes through."""

    def __init__(
        self,
        adapter: PersistenceAdapter,
        registry: ProviderRegistry,
        queue: "MintQueue",
        config: Optional[CoordinatorConfig] = None,
        preferences: Optional[ProviderPreferenceRegistry] = None,
        chain: Optional[MintChain] = None,
        on_enqueue: Optional[Callable[[], Any]] = None,
    ):
        """
        Args:
            adapter: Process-wide persistence adapter
            registry: Provider adapters (names and option allow-lists)
            queue: Shared in-memory work queue
            config: Coordinator settings (timeouts, token bound, default provider)
            preferences: Preference registry; built over adapter if omitted
            chain: Optional contract client for currentURI / owner lookups
            on_enqueue: Called after a work item is queued (inline dispatch)
        """
        self.adapter = adapter
        self.registry = registry
        self.queue = queue
        self.config = config or CoordinatorConfig()
        self.preferences = preferences or ProviderPreferenceRegistry(adapter)
        self.chain = chain
        self.on_enqueue = on_enqueue

    # =========================================================================
    # ENQUEUE
    # =========================================================================

    async def enqueue(
        self,
        request: ProcessRequest,
        buyer: Optional[str] = None,
        processed_tokens: Optional[Iterable[int]] = None,
    ) -> EnqueueResult:
        """
        Create a PENDING task for request.token_id and queue it.

        Args:
            request: Validated /process input
            buyer: Owner address from a MintRequested event, if any
            processed_tokens: Tokens already minted; read from the cron
                state document when not supplied

        Raises:
            ValidationError: providerOptions rejected by the resolved provider
        """
        token_id = request.token_id
        with log_context(token_id=token_id, operation="enqueue"):
            provider_name, options = await self._resolve_provider(request)

            active = await self.adapter.find_tasks(TaskFilter(
                token_id=token_id, statuses=ACTIVE_STATUSES, newest_first=True, limit=1,
            ))
            if active:
                logger.info(f"Token {token_id} already has active task {active[0].task_id}")
                return EnqueueResult(
                    EnqueueStatus.ALREADY_PROCESSED, token_id, task=active[0],
                    reason="Token already has an active task",
                )

            if not request.force and await self._already_minted(token_id, processed_tokens):
                logger.info(f"Token {token_id} already processed; pass force=true to regenerate")
                return EnqueueResult(
                    EnqueueStatus.ALREADY_PROCESSED, token_id,
                    reason="Token already processed",
                )

            await self.preferences.set_preference(token_id, provider_name, options)

            current_uri, owner = await self._chain_view(token_id)
            estimate = self.registry.get(provider_name).estimated(options)
            timeout_ms = request.timeout_ms if request.timeout_ms is not None else self.config.task_timeout_ms

            task = MintTask.create(
                token_id=token_id,
                provider=provider_name,
                provider_options=options,
                timeout_ms=timeout_ms,
                estimated_seconds=estimate.time_seconds,
                priority=request.priority,
                breed=request.breed,
                owner=buyer or owner,
                prompt_extras=request.prompt_extras,
                negative_prompt=request.negative_prompt,
                is_regeneration=request.regenerate,
            )
            created = await self.adapter.create_task(task)
            if not created.created:
                # Lost the insert race to a concurrent enqueue of the same token
                return EnqueueResult(
                    EnqueueStatus.ALREADY_PROCESSED, token_id, task=created.task,
                    reason="Token already has an active task",
                )

            item = MintWorkItem.from_task(task).model_copy(update={"force_process": request.force})
            self.queue.push(item)
            log_checkpoint("task_enqueued", {
                "task_id": task.task_id,
                "provider": provider_name,
                "timeout_ms": timeout_ms,
            })
            logger.info(f"Queued {task.task_id} for token {token_id} via {provider_name}")

            if self.on_enqueue is not None:
                self.on_enqueue()

            return EnqueueResult(
                EnqueueStatus.QUEUED,
                token_id,
                task=task,
                provider=provider_name,
                options=options,
                current_uri=current_uri,
                owner=buyer or owner,
            )

    async def _resolve_provider(self, request: ProcessRequest):
        """Explicit provider, else the token's preference, else the default."""
        preference = None
        if request.image_provider is None or request.provider_options is None:
            preference = await self.preferences.get_preference(request.token_id)

        if request.image_provider is not None:
            name = request.image_provider
        elif preference is not None and preference.provider in self.registry:
            name = preference.provider
        else:
            name = self.config.default_provider
        if name not in self.registry:
            raise ValidationError("imageProvider", f"unknown provider {name}")

        raw_options = request.provider_options
        if raw_options is None:
            raw_options = preference.options if preference and preference.provider == name else {}
        options = self.registry.get(name).validate_options(raw_options)
        return name, options

    async def _already_minted(self, token_id: int, processed_tokens: Optional[Iterable[int]]) -> bool:
        if processed_tokens is None:
            document = await self.adapter.load_state(CRON_STATE_TYPE, ProcessState().to_document())
            processed_tokens = ProcessState.model_validate(document).processed_tokens
        if token_id in set(processed_tokens):
            return True
        completed = await self.adapter.find_tasks(TaskFilter(
            token_id=token_id, statuses=frozenset({TaskStatus.COMPLETED}), limit=1,
        ))
        return bool(completed)

    async def _chain_view(self, token_id: int):
        if self.chain is None:
            return None, None
        return await self.chain.token_uri(token_id), await self.chain.owner_of(token_id)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def transition(self, task_id: str, cmd: TaskCommand, now=None) -> Optional[Transition]:
        """
        Apply cmd to the stored task.

        Returns None for an unknown task id. A rejected command returns a
        Transition whose .applied is False and writes nothing.
        """
        observed: Optional[MintTask] = None
        for _ in range(MAX_WRITE_CONFLICTS):
            lookup = await self.adapter.load_task(task_id)
            if not lookup.found:
                return None
            observed = lookup.task
            latest = apply(observed, cmd, now)
            if not latest.applied:
                logger.debug(f"{task_id}: {latest.events[0].message}")
                return latest

            landed = await self.adapter.upsert_task(
                latest.task,
                expected_status=observed.status,
                metrics=latest.metrics_delta,
                expected_history_len=len(observed.history),
            )
            if landed:
                event = latest.events[0]
                if event.type != EventType.PROGRESS:
                    log_checkpoint(f"task_{event.type.value}", {
                        "task_id": task_id,
                        "status": latest.task.status.value,
                        "message": event.message,
                    })
                if latest.task.status == TaskStatus.COMPLETED:
                    await self._record_processed(latest.task.token_id)
                return latest
            logger.debug(f"{task_id}: write conflict on {cmd.kind}, reloading")

        logger.warning(f"{task_id}: {cmd.kind} abandoned after {MAX_WRITE_CONFLICTS} write conflicts")
        task = observed
        rejected = TaskEvent(
            type=EventType.REJECTED,
            task_id=task_id,
            status=task.status,
            message=f"{cmd.kind} lost {MAX_WRITE_CONFLICTS} write races",
        )
        return Transition(task=task, previous_status=task.status, events=(rejected,))

    async def _record_processed(self, token_id: int) -> None:
        """Add a freshly minted token to the cron state document."""
        try:
            document = await self.adapter.load_state(CRON_STATE_TYPE, ProcessState().to_document())
            state = ProcessState.model_validate(document)
            if state.is_processed(token_id):
                return
            state.mark_processed(token_id)
            await self.adapter.save_state(CRON_STATE_TYPE, state.to_document())
        except StoreFatalError as e:
            # The dispatcher still reports the token to the next cron tick
            logger.warning(f"Could not record token {token_id} as processed: {e}")

    async def cancel(self, task_id: str, reason: Optional[str] = None) -> Optional[Transition]:
        """Cancel a PENDING or PROCESSING task; a terminal task is left untouched."""
        cmd = CancelCmd(reason=reason) if reason else CancelCmd()
        with log_context(task_id=task_id, operation="cancel"):
            result = await self.transition(task_id, cmd)
            if result is not None and result.applied:
                logger.info(f"Task {task_id} canceled")
            return result


__all__ = ["TaskService", "EnqueueResult", "EnqueueStatus"]
