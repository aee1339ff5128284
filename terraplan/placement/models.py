"""Placement queue dataclasses and pipeline configuration constants.

A :class:`PlacementQueue` is an immutable value.  Advancing it produces
a new instance (``with_advanced_index``), which the pipeline swaps into
its id-addressed table — readers never observe a half-advanced queue.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from terraplan.config import WORLD_RULES
from terraplan.errors import InvalidArgument, InvalidState


class QueueStatus(Enum):
    PREPARING = "preparing"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueStatus.COMPLETE, QueueStatus.CANCELLED)


# Forward order of the lifecycle; CANCELLED is reachable from any non-terminal state.
_RANK = {
    QueueStatus.PREPARING: 0,
    QueueStatus.READY: 1,
    QueueStatus.IN_PROGRESS: 2,
    QueueStatus.COMPLETE: 3,
}


# ── Entries ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BlockEntry:
    """One block write, positioned in the layer/row commit order."""

    x: int
    y: int
    z: int
    material: str
    state: Mapping[str, Any] | None = None
    layer: int = 0          # 1-based per distinct Y
    row: int = 0            # 1-based per distinct Z within a layer
    order_index: int = 0

    @property
    def position(self) -> tuple[int, int, int]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class ConstructionProgress:
    layer: int
    row: int
    percent: float


# ── Queue ──────────────────────────────────────────────────────────


def new_queue_id(structure_id: str) -> str:
    return f"{structure_id}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class PlacementQueue:
    """Ordered block writes for one structure plus a commit cursor."""

    queue_id: str
    structure_id: str
    entries: tuple[BlockEntry, ...]
    batch_size: int = WORLD_RULES.batch_size
    status: QueueStatus = QueueStatus.PREPARING
    cursor: int = 0
    seed: int = 0
    created_at: float = field(default_factory=time.time)
    last_commit_at: float | None = None
    cancel_reason: str | None = None
    failed_blocks: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(self.entries))
        if self.batch_size <= 0:
            raise InvalidArgument(f"batch_size must be positive, got {self.batch_size}")
        if not 0 <= self.cursor <= len(self.entries):
            raise InvalidArgument(
                f"cursor {self.cursor} outside 0..{len(self.entries)}"
            )
        if self.status is QueueStatus.CANCELLED and not self.cancel_reason:
            raise InvalidArgument("A cancelled queue must carry a reason")

    # ── Progress ───────────────────────────────────────────────────

    @property
    def total_blocks(self) -> int:
        return len(self.entries)

    @property
    def blocks_placed(self) -> int:
        return self.cursor

    @property
    def blocks_remaining(self) -> int:
        return len(self.entries) - self.cursor

    @property
    def percent_complete(self) -> float:
        if not self.entries:
            return 1.0
        return self.cursor / len(self.entries)

    @property
    def is_finished(self) -> bool:
        return self.status.is_terminal

    @property
    def total_layers(self) -> int:
        return self.entries[-1].layer if self.entries else 0

    def progress(self) -> ConstructionProgress:
        """Layer/row of the next block to place (the last one once done)."""
        if not self.entries:
            return ConstructionProgress(0, 0, 1.0)
        entry = self.entries[min(self.cursor, len(self.entries) - 1)]
        return ConstructionProgress(entry.layer, entry.row, self.percent_complete)

    def get_next_batch(self) -> tuple[BlockEntry, ...]:
        """Up to ``batch_size`` entries from the cursor; empty once finished."""
        if self.is_finished:
            return ()
        return self.entries[self.cursor:self.cursor + self.batch_size]

    # ── Transitions (copy-on-advance) ──────────────────────────────

    def with_status(self, status: QueueStatus) -> "PlacementQueue":
        if status is self.status and not status.is_terminal:
            return self
        self._check_transition(status)
        if status is QueueStatus.CANCELLED:
            raise InvalidArgument("Use as_cancelled(reason) to cancel a queue")
        return replace(self, status=status)

    def with_advanced_index(self, new_cursor: int, **changes: Any) -> "PlacementQueue":
        """Move the cursor to *new_cursor*; COMPLETE once every entry is placed.

        Extra keyword arguments (``failed_blocks``, ``last_commit_at``) are
        applied to the new instance.
        """
        if self.status.is_terminal:
            raise InvalidState(f"Queue {self.queue_id} is finished", current=self.status.value)
        if not self.cursor <= new_cursor <= len(self.entries):
            raise InvalidArgument(
                f"cursor may only advance within {self.cursor}..{len(self.entries)}, got {new_cursor}"
            )
        if new_cursor >= len(self.entries):
            status = QueueStatus.COMPLETE
        else:
            status = QueueStatus.IN_PROGRESS
        self._check_transition(status)
        return replace(self, cursor=new_cursor, status=status, **changes)

    def as_cancelled(self, reason: str) -> "PlacementQueue":
        self._check_transition(QueueStatus.CANCELLED)
        return replace(self, status=QueueStatus.CANCELLED, cancel_reason=reason or "cancelled")

    def _check_transition(self, target: QueueStatus) -> None:
        if self.status.is_terminal:
            raise InvalidState(
                f"Queue {self.queue_id} cannot move to {target.value}", current=self.status.value,
            )
        if target is QueueStatus.CANCELLED:
            return
        if _RANK[target] < _RANK[self.status]:
            raise InvalidState(
                f"Queue {self.queue_id} cannot move back to {target.value}", current=self.status.value,
            )

    def summary(self) -> str:
        return (
            f"PlacementQueue[{self.queue_id} structure={self.structure_id} "
            f"status={self.status.value} {self.cursor}/{self.total_blocks}]"
        )


# ── Pipeline configuration ─────────────────────────────────────────


@dataclass
class PipelineConfig:
    """All tuneable placement-pipeline parameters in one place."""

    batch_size: int = WORLD_RULES.batch_size
    max_concurrent_preparations: int = WORLD_RULES.max_concurrent_preparations
    history_limit: int = 100                 # finished queues kept for status queries
    progress_log_interval: int = 500         # blocks between progress log lines

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise InvalidArgument(f"batch_size must be positive, got {self.batch_size}")
        if self.max_concurrent_preparations <= 0:
            raise InvalidArgument("max_concurrent_preparations must be positive")


# Module-level defaults (used when no PipelineConfig is passed)
_DEFAULT_CFG = PipelineConfig()

DEFAULT_BATCH_SIZE = _DEFAULT_CFG.batch_size
MAX_CONCURRENT_PREPARATIONS = _DEFAULT_CFG.max_concurrent_preparations
HISTORY_LIMIT = _DEFAULT_CFG.history_limit
PROGRESS_LOG_INTERVAL = _DEFAULT_CFG.progress_log_interval
