# src/logging/context.py — v2
"""Contextual logging support — attach op_id, phase and task to log records."""

from __future__ import annotations

import contextvars
import time
import uuid
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per invocation.
_op_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "op_id", default=None
)
_component: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "component", default=None
)
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)
_task: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "task", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    op_id: str | None = None
    component: str | None = None
    phase: str | None = None
    task: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        op_id=_op_id.get(),
        component=_component.get(),
        phase=_phase.get(),
        task=_task.get(),
    )


def set_operation_context(op_id: str, component: str) -> None:
    """Set invocation-level context (called once per run or request)."""
    _op_id.set(op_id)
    _component.set(component)
    _phase.set(None)
    _task.set(None)


def set_phase_context(phase: str | None, task: str | None = None) -> None:
    """Set phase/task-level context (called per phase and per task)."""
    _phase.set(phase)
    _task.set(task)


def clear_context() -> None:
    """Reset all context variables."""
    _op_id.set(None)
    _component.set(None)
    _phase.set(None)
    _task.set(None)


def new_op_id(component: str) -> str:
    """``<component>-<epoch ms>-<5 hex chars>``, unique per invocation."""
    return f"{component}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:5]}"
