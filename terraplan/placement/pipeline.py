"""Placement pipeline — async preparation, synchronous batched commits.

Preparation (sorting block writes into layer/row order) is pure and may
run on worker threads.  Every world write happens in :meth:`commit_step`,
on the single thread bound as the world thread; calling it from anywhere
else raises :class:`~terraplan.errors.InvalidState`.

Active queues live in an insertion-ordered table keyed by queue id.
Each commit replaces a queue's entry with its advanced copy; finished
queues move to a bounded history for status queries.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Iterable, Mapping, Sequence

from terraplan.errors import InvalidState
from terraplan.world import World, WorldWriteError

from .models import (
    BlockEntry, PlacementQueue, PipelineConfig, QueueStatus, new_queue_id,
)


log = logging.getLogger(__name__)

QueueListener = Callable[[PlacementQueue], None]

BlockSpec = BlockEntry | Sequence[Any]


def _as_entry(block: BlockSpec) -> BlockEntry:
    """Accept a BlockEntry or an ``(x, y, z, material[, state])`` tuple."""
    if isinstance(block, BlockEntry):
        return block
    x, y, z, material, *rest = block
    state: Mapping[str, Any] | None = rest[0] if rest else None
    return BlockEntry(int(x), int(y), int(z), material, state)


def order_entries(blocks: Iterable[BlockSpec]) -> tuple[BlockEntry, ...]:
    """Sort writes bottom-up, then by Z row, then X, and number layers/rows.

    Ties on position are broken by material so the order is fully
    deterministic for a given input set.
    """
    raw = sorted((_as_entry(b) for b in blocks), key=lambda e: (e.y, e.z, e.x, e.material))
    ordered: list[BlockEntry] = []
    layer = row = 0
    last_y = last_z = None
    for i, e in enumerate(raw):
        if e.y != last_y:
            layer += 1
            row = 1
            last_y, last_z = e.y, e.z
        elif e.z != last_z:
            row += 1
            last_z = e.z
        ordered.append(BlockEntry(e.x, e.y, e.z, e.material, e.state, layer, row, i))
    return tuple(ordered)


class PlacementPipeline:
    """Owns every placement queue and the only path to ``World.set_block``."""

    def __init__(self, world: World, config: PipelineConfig | None = None) -> None:
        self.world = world
        self.config = config or PipelineConfig()
        self._lock = threading.Lock()
        self._active: dict[str, PlacementQueue] = {}
        self._history: OrderedDict[str, PlacementQueue] = OrderedDict()
        self._preparations: dict[str, Future] = {}
        self._cancelled_preparations: set[str] = set()
        self._on_complete: list[QueueListener] = []
        self._on_cancel: list[QueueListener] = []
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_concurrent_preparations,
            thread_name_prefix="terraplan-prepare",
        )
        self._world_thread = threading.get_ident()

    # ── Threading ──────────────────────────────────────────────────

    def bind_world_thread(self) -> None:
        """Make the calling thread the only one allowed to commit."""
        self._world_thread = threading.get_ident()

    def on_complete(self, listener: QueueListener) -> None:
        self._on_complete.append(listener)

    def on_cancel(self, listener: QueueListener) -> None:
        self._on_cancel.append(listener)

    # ── Preparation ────────────────────────────────────────────────

    def prepare_queue(
        self,
        structure_id: str,
        blocks: Iterable[BlockSpec],
        seed: int = 0,
        *,
        queue_id: str | None = None,
    ) -> PlacementQueue:
        """Order *blocks* into a READY queue.  Never touches the world."""
        entries = order_entries(blocks)
        queue = PlacementQueue(
            queue_id=queue_id or new_queue_id(structure_id),
            structure_id=structure_id,
            entries=entries,
            batch_size=self.config.batch_size,
            seed=seed,
        )
        layers = entries[-1].layer if entries else 0
        log.debug("Queue prepared: %s (%d blocks, %d layers, seed=%d)",
                  queue.queue_id, len(entries), layers, seed)
        return queue.with_status(QueueStatus.READY)

    def prepare_queue_async(
        self,
        structure_id: str,
        blocks: Iterable[BlockSpec],
        seed: int = 0,
        *,
        queue_id: str | None = None,
    ) -> Future:
        """Run :meth:`prepare_queue` on a worker thread.

        Returns a ``Future`` resolving to the READY queue, or to a CANCELLED
        one when :meth:`cancel` was called while it ran.

        Raises
        ------
        InvalidState
            If ``max_concurrent_preparations`` are already in flight.
        """
        queue_id = queue_id or new_queue_id(structure_id)
        snapshot = tuple(blocks)
        with self._lock:
            if len(self._preparations) >= self.config.max_concurrent_preparations:
                raise InvalidState(
                    f"Too many concurrent preparations "
                    f"(max {self.config.max_concurrent_preparations})"
                )
            future = self._executor.submit(self._prepare_job, structure_id, snapshot, seed, queue_id)
            self._preparations[queue_id] = future
        future.add_done_callback(lambda f, q=queue_id: self._on_prepared(q, f))
        return future

    def _prepare_job(
        self, structure_id: str, blocks: tuple, seed: int, queue_id: str,
    ) -> PlacementQueue:
        queue = self.prepare_queue(structure_id, blocks, seed, queue_id=queue_id)
        with self._lock:
            cancelled = queue_id in self._cancelled_preparations
            self._cancelled_preparations.discard(queue_id)
        if cancelled:
            return queue.as_cancelled("cancelled during preparation")
        return queue

    def _on_prepared(self, queue_id: str, future: Future) -> None:
        with self._lock:
            self._preparations.pop(queue_id, None)
            self._cancelled_preparations.discard(queue_id)
        if future.cancelled():
            log.debug("Preparation %s cancelled before it started", queue_id)

    # ── Submission & cancellation ──────────────────────────────────

    def submit(self, queue: PlacementQueue) -> PlacementQueue:
        """Register a READY queue for committing; returns it IN_PROGRESS."""
        if queue.status is not QueueStatus.READY:
            raise InvalidState(
                f"Only READY queues can be submitted: {queue.queue_id}",
                current=queue.status.value,
            )
        active = queue.with_status(QueueStatus.IN_PROGRESS)
        with self._lock:
            if queue.queue_id in self._active or queue.queue_id in self._history:
                raise InvalidState(f"Queue {queue.queue_id} was already submitted")
            self._active[queue.queue_id] = active
        log.info("Queue submitted: %s structure=%s blocks=%d batch=%d",
                 queue.queue_id, queue.structure_id, queue.total_blocks, queue.batch_size)
        return active

    def cancel(self, queue_id: str, reason: str = "cancelled") -> bool:
        """Stop a queue or a pending preparation.  Placed blocks stay placed.

        Returns False when *queue_id* is neither active nor preparing.
        """
        with self._lock:
            queue = self._active.pop(queue_id, None)
            if queue is not None:
                cancelled = queue.as_cancelled(reason)
                self._remember(cancelled)
            else:
                future = self._preparations.get(queue_id)
                if future is None:
                    return False
                self._cancelled_preparations.add(queue_id)

        if queue is None:
            # Outside the lock: cancel() runs done-callbacks synchronously
            future.cancel()
            log.warning("Preparation cancelled: %s (%s)", queue_id, reason)
            return True
        log.warning("Queue cancelled: %s at %d/%d blocks (%s)",
                    queue_id, cancelled.blocks_placed, cancelled.total_blocks, reason)
        self._fire(self._on_cancel, cancelled)
        return True

    def shutdown(self) -> None:
        """Cancel every active queue and pending preparation."""
        for queue_id in self.active_queue_ids():
            self.cancel(queue_id, "pipeline shutdown")
        for queue_id in list(self._preparations):
            self.cancel(queue_id, "pipeline shutdown")
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ── Commit (world thread only) ─────────────────────────────────

    def commit_step(self) -> int:
        """Write one batch from every active queue.  Returns blocks written."""
        if threading.get_ident() != self._world_thread:
            raise InvalidState("commit_step must run on the world thread")

        with self._lock:
            snapshot = list(self._active.values())

        written = 0
        for queue in snapshot:
            batch = queue.get_next_batch()
            failed = 0
            try:
                for entry in batch:
                    try:
                        self.world.set_block(entry.x, entry.y, entry.z, entry.material, entry.state)
                        written += 1
                    except WorldWriteError as exc:
                        failed += 1
                        log.warning("Block write rejected in %s: %s", queue.queue_id, exc)
            except Exception as exc:
                log.warning("Commit error in %s: %s", queue.queue_id, exc)
                self.cancel(queue.queue_id, f"commit error: {exc}")
                continue

            advanced = queue.with_advanced_index(
                queue.cursor + len(batch),
                failed_blocks=queue.failed_blocks + failed,
                last_commit_at=time.time(),
            )
            self._log_progress(queue, advanced)

            with self._lock:
                # Cancelled from another thread while the batch was written
                if queue.queue_id not in self._active:
                    continue
                if advanced.status is QueueStatus.COMPLETE:
                    del self._active[queue.queue_id]
                    self._remember(advanced)
                else:
                    self._active[queue.queue_id] = advanced

            if advanced.status is QueueStatus.COMPLETE:
                log.info("Queue complete: %s structure=%s blocks=%d failed=%d",
                         advanced.queue_id, advanced.structure_id,
                         advanced.total_blocks, advanced.failed_blocks)
                self._fire(self._on_complete, advanced)

        return written

    def _log_progress(self, before: PlacementQueue, after: PlacementQueue) -> None:
        interval = self.config.progress_log_interval
        if interval <= 0:
            return
        if after.cursor // interval > before.cursor // interval:
            progress = after.progress()
            log.debug("Queue %s: %d/%d blocks (%.0f%%), layer %d/%d row %d",
                      after.queue_id, after.blocks_placed, after.total_blocks,
                      progress.percent * 100, progress.layer, after.total_layers, progress.row)

    def _remember(self, queue: PlacementQueue) -> None:
        # Caller holds _lock
        self._history[queue.queue_id] = queue
        self._history.move_to_end(queue.queue_id)
        while len(self._history) > self.config.history_limit:
            self._history.popitem(last=False)

    @staticmethod
    def _fire(listeners: list[QueueListener], queue: PlacementQueue) -> None:
        for listener in list(listeners):
            listener(queue)

    # ── Queries ────────────────────────────────────────────────────

    def active_queue_count(self) -> int:
        return len(self._active)

    def active_queue_ids(self) -> list[str]:
        """Active queue ids in submission order."""
        with self._lock:
            return list(self._active)

    def preparation_count(self) -> int:
        return len(self._preparations)

    def get_queue(self, queue_id: str) -> PlacementQueue | None:
        with self._lock:
            return self._active.get(queue_id) or self._history.get(queue_id)

    def queue_status(self, queue_id: str) -> QueueStatus | None:
        queue = self.get_queue(queue_id)
        return queue.status if queue is not None else None
