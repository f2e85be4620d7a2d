# ============================================================================
# ERROR HIERARCHY
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - Typed exceptions tagged with ErrorKind
# PURPOSE: One exception tree for validation, store, provider and chain errors
# CREATED: 14 SEP 2026
# ============================================================================
"""
Coordinator exceptions.

Every exception carries an ErrorKind so the HTTP layer and the dispatcher
can branch on the classification instead of on the exception type.
"""

from typing import Optional

from core.contracts import ErrorKind


class MintCoordinatorError(Exception):
    """Base exception for coordinator errors."""
    kind: ErrorKind = ErrorKind.STORE_FATAL

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ValidationError(MintCoordinatorError):
    """Raised by the enqueue path when a request field is rejected."""
    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid {field}: {message}")


class TaskNotFoundError(MintCoordinatorError):
    """Raised when an operation requires a task that does not exist."""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class StoreTransientError(MintCoordinatorError):
    """Connection reset, pool timeout, serialization failure. Retried."""
    kind = ErrorKind.STORE_TRANSIENT


class StoreFatalError(MintCoordinatorError):
    """Permanent store failure, or transient failure after retries ran out."""
    kind = ErrorKind.STORE_FATAL


class DuplicateActiveTaskError(MintCoordinatorError):
    """A non-terminal task already exists for the token."""
    kind = ErrorKind.VALIDATION

    def __init__(self, token_id: int):
        self.token_id = token_id
        super().__init__(f"Token {token_id} already has an active task")


class ProviderError(MintCoordinatorError):
    """Raised by a provider adapter. Always triggers fallback."""
    kind = ErrorKind.PROVIDER_TRANSIENT

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        transient: bool = True,
    ):
        self.provider = provider
        self.status_code = status_code
        self.transient = transient
        super().__init__(f"{provider}: {message}")


class ArtifactStoreError(MintCoordinatorError):
    """Raised when a generated image or its metadata cannot be pinned."""
    kind = ErrorKind.PROVIDER_TRANSIENT


class ChainError(MintCoordinatorError):
    """Raised by the chain client for reverted or unsent transactions."""
    kind = ErrorKind.CHAIN_FINALIZE


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "MintCoordinatorError",
    "ValidationError",
    "TaskNotFoundError",
    "StoreTransientError",
    "StoreFatalError",
    "DuplicateActiveTaskError",
    "ProviderError",
    "ArtifactStoreError",
    "ChainError",
]
