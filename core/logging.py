# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - Structured logging with context and redaction
# PURPOSE: Per-task log fields, secret redaction, JSON or console output
# CREATED: 14 SEP 2026
# UPDATED: 02 OCT 2026 - Context moved to contextvars for async dispatch units
# ============================================================================
"""
Structured Logging

Modules log through the standard library (logging.getLogger(__name__));
this module only decides what a record carries and how it is rendered.

- log_context() binds task_id / token_id / provider for the current
  asyncio task. Each dispatch unit is its own asyncio task, so concurrent
  units never see each other's fields.
- RedactingFilter shortens wallet addresses, API keys, JWTs and URIs to
  their first 6 and last 4 characters before any handler sees them.
- StructuredFormatter (LOG_FORMAT=json) or ConsoleFormatter.
- log_checkpoint() for named milestones.

Usage:
    from core.logging import log_context

    logger = logging.getLogger(__name__)

    with log_context(task_id="task_1_ab", token_id=42):
        logger.info("Dispatching task")
"""

import json
import logging
import os
import re
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class LogContext:
    """Fields bound by log_context(); anything unrecognized lands in extra."""
    task_id: Optional[str] = None
    token_id: Optional[int] = None
    provider: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        fields = {k: v for k, v in asdict(self).items() if k != "extra" and v is not None}
        fields.update(self.extra)
        return fields


_current_context: ContextVar[LogContext] = ContextVar("log_context", default=LogContext())


def get_current_context() -> LogContext:
    return _current_context.get()


@contextmanager
def log_context(**kwargs):
    """
    Bind fields for the duration of the block, layered on the outer context.

        with log_context(task_id=task.task_id, token_id=task.token_id):
            with log_context(provider="stability", attempt=2):
                ...
    """
    parent = get_current_context()
    known = {k: v for k, v in kwargs.items() if k in LogContext.__dataclass_fields__ and k != "extra"}
    unknown = {k: v for k, v in kwargs.items() if k not in LogContext.__dataclass_fields__}
    unknown.update(kwargs.get("extra", {}))

    bound = replace(parent, **known, extra={**parent.extra, **unknown})
    reset_token = _current_context.set(bound)
    try:
        yield bound
    finally:
        _current_context.reset(reset_token)


# ============================================================================
# REDACTION
# ============================================================================

_SENSITIVE_PATTERNS = [
    re.compile(r"0x[a-fA-F0-9]{40,}"),
    re.compile(r"\b(?:sk|pk|hf|rk)[-_][A-Za-z0-9_\-]{12,}"),
    re.compile(r"\beyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+"),
    re.compile(r"\b(?:ipfs|https?)://[^\s'\",)]+"),
]


def redact(value: Any) -> str:
    """Reduce a sensitive value to its first 6 and last 4 characters."""
    text = str(value)
    if len(text) <= 12:
        return "***"
    return f"{text[:6]}...{text[-4:]}"


def redact_text(text: str) -> str:
    """Redact every address, key or URI found inside free text."""
    for pattern in _SENSITIVE_PATTERNS:
        text = pattern.sub(lambda m: redact(m.group(0)), text)
    return text


class RedactingFilter(logging.Filter):
    """Rewrites record messages so secrets never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_text(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


# ============================================================================
# FORMATTERS
# ============================================================================

def _redact_payload(value: Any) -> Any:
    """Apply redact_text() to every string inside a checkpoint payload."""
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return {k: _redact_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact_payload(v) for v in value]
    return value


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line.

    Keys: timestamp, level, logger, message, plus context (the active
    log_context fields), data (checkpoint payload), exception and source
    when present.
    """

    def __init__(self, include_context: bool = True, include_source: bool = True):
        super().__init__()
        self.include_context = include_context
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_context:
            fields = get_current_context().to_dict()
            if fields:
                entry["context"] = fields

        payload = getattr(record, "extra", None)
        if payload:
            entry["data"] = _redact_payload(payload)

        if record.exc_info:
            entry["exception"] = redact_text(self.formatException(record.exc_info))

        if self.include_source:
            entry["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Single-line output for local runs: time, level, logger, [task token provider], message."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        ctx = get_current_context()
        tags = [
            f"{label}={value}"
            for label, value in (("task", ctx.task_id), ("token", ctx.token_id), ("provider", ctx.provider))
            if value is not None
        ]
        line = f"{stamp} {record.levelname:<7} {record.name}"
        if tags:
            line += f" [{' '.join(tags)}]"
        line += f": {record.getMessage()}"

        payload = getattr(record, "extra", None)
        if payload and record.name == CHECKPOINT_LOGGER:
            line += f" {json.dumps(_redact_payload(payload.get('data', {})), default=str)}"

        if record.exc_info:
            line += "\n" + redact_text(self.formatException(record.exc_info))
        return line


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
) -> None:
    """
    Install one stdout handler on the root logger.

    Args:
        level: Root level name or number
        json_output: StructuredFormatter instead of ConsoleFormatter; also
            enabled by LOG_FORMAT=json
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    use_json = json_output or os.getenv("LOG_FORMAT", "").lower() == "json"
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if use_json else ConsoleFormatter())
    handler.addFilter(RedactingFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    # httpx logs every request URL at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)


# ============================================================================
# CHECKPOINT LOGGING
# ============================================================================

CHECKPOINT_LOGGER = "checkpoint"


def log_checkpoint(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a named milestone in a task's life.

    Names in use: task_enqueued, task_dispatched, task_completed,
    task_failed, task_canceled, task_timed_out, providers_exhausted,
    mint_finalized, cron_tick. Grepping one task_id across these
    reconstructs what happened to it.
    """
    payload: Dict[str, Any] = {
        "checkpoint": name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **get_current_context().to_dict(),
    }
    if data:
        payload["data"] = data
    (logger or logging.getLogger(CHECKPOINT_LOGGER)).info(f"CHECKPOINT: {name}", extra={"extra": payload})


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "ConsoleFormatter",
    "RedactingFilter",
    "configure_logging",
    "log_context",
    "get_current_context",
    "log_checkpoint",
    "redact",
    "redact_text",
]
