"""Typed lifecycle state for background embedding-model warmup.

Internal module providing strongly-typed state snapshots for
`EmbeddingWarmer`. Not exposed outside the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class WarmupPhase(Enum):
    """Phase of the embedding-model warmup task."""

    IDLE = auto()
    RUNNING = auto()
    DONE = auto()
    FAILED = auto()
    CANCELLED = auto()


@dataclass(frozen=True)
class WarmupState:
    """Snapshot of warmup progress with timestamps and per-model outcomes."""

    phase: WarmupPhase
    started_at: float | None = None
    completed_at: float | None = None
    loaded: tuple[str, ...] = field(default_factory=tuple)
    failed: tuple[str, ...] = field(default_factory=tuple)
    error_message: str | None = None

