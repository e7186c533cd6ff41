"""Export scheduler: a fixed pool of worker threads fed through a one-slot queue.

The producer hands tables to the workers one at a time. Because the handoff
queue holds a single table, the producer never runs more than one table
ahead of the pool. Each worker reports failures on its own channel and stops;
the healthy workers keep draining the queue. The coordinator joins every
thread it started before returning.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from typing import Callable, Iterable, Optional

from tabdelta.exceptions import SchedulerError
from tabdelta.models.results import TableExportResult
from tabdelta.models.table import TableDescriptor

logger = logging.getLogger(__name__)

ExportFunc = Callable[[TableDescriptor, threading.Event, int], TableExportResult]

# How long the producer waits on a full slot before re-checking worker health
POLL_INTERVAL = 0.1


class _Worker:
    """One export thread with its own results and failure channel."""

    def __init__(
        self,
        worker_id: int,
        export_table: ExportFunc,
        handoff: queue.Queue,
        cancel: threading.Event,
        dispatch_interval: float,
    ):
        self.worker_id = worker_id
        self.export_table = export_table
        self.handoff = handoff
        self.cancel = cancel
        self.dispatch_interval = dispatch_interval
        self.results: list[TableExportResult] = []
        self.failed = threading.Event()
        self.error: Optional[BaseException] = None
        self.thread = threading.Thread(
            target=self._loop,
            name=f"export-worker-{worker_id}",
            daemon=True,
        )

    @property
    def healthy(self) -> bool:
        return self.thread.is_alive() and not self.failed.is_set()

    def _loop(self) -> None:
        while True:
            table = self.handoff.get()
            if table is None:
                return

            if self.cancel.wait(self.dispatch_interval):
                self.results.append(_skipped(table, "run cancelled before export started"))
                continue

            started = time.monotonic()
            try:
                result = self.export_table(table, self.cancel, self.worker_id)
            except Exception as e:
                logger.error("Worker %d failed on %s: %s", self.worker_id, table.name, e)
                self.results.append(
                    TableExportResult(
                        table_name=table.name,
                        status="failed",
                        worker_id=self.worker_id,
                        filter_value=table.filter_value,
                        duration_seconds=time.monotonic() - started,
                        error_message=str(e),
                    )
                )
                self.error = e
                self.failed.set()
                return

            self.results.append(result)


def _skipped(table: TableDescriptor, reason: str) -> TableExportResult:
    return TableExportResult(
        table_name=table.name,
        status="skipped",
        filter_value=table.filter_value,
        error_message=reason,
    )


class ExportScheduler:
    """Runs table exports on a bounded worker pool.

    Only tables with rows are dispatched. Every dispatched table ends with
    exactly one result: exported, failed, or skipped when no healthy worker
    was left to take it (or the run deadline passed first).

    Examples:
        >>> scheduler = ExportScheduler(streamer.export, workers=10)
        >>> results = scheduler.run(tables)
        >>> sum(1 for r in results if r.success)
        42
    """

    def __init__(
        self,
        export_table: ExportFunc,
        workers: int = 10,
        dispatch_interval: float = 0.1,
        run_timeout: Optional[float] = None,
    ):
        """Initialize the scheduler.

        Args:
            export_table: Called as ``export_table(table, cancel_event, worker_id)``
            workers: Pool size
            dispatch_interval: Pause in seconds before a worker starts each table
            run_timeout: Deadline in seconds for the whole export stage

        Raises:
            SchedulerError: If the pool size or interval is invalid
        """
        if workers < 1:
            raise SchedulerError(f"Worker pool size must be >= 1, got {workers}")
        if dispatch_interval < 0:
            raise SchedulerError(f"Dispatch interval must be >= 0, got {dispatch_interval}")
        self.export_table = export_table
        self.workers = workers
        self.dispatch_interval = dispatch_interval
        self.run_timeout = run_timeout

    def run(self, tables: Iterable[TableDescriptor]) -> list[TableExportResult]:
        """Export tables and wait for every worker to finish.

        Args:
            tables: Classified tables; those with ``row_count == 0`` are not dispatched

        Returns:
            One result per dispatched table, in input order

        Raises:
            SchedulerError: If two tables share a name
        """
        eligible = [table for table in tables if table.row_count > 0]
        order = {table.name: index for index, table in enumerate(eligible)}
        if len(order) != len(eligible):
            raise SchedulerError("Table names must be unique within a run")
        if not eligible:
            logger.info("No tables with rows to export")
            return []

        handoff: queue.Queue = queue.Queue(maxsize=1)
        cancel = threading.Event()
        pool = [
            _Worker(worker_id, self.export_table, handoff, cancel, self.dispatch_interval)
            for worker_id in range(1, self.workers + 1)
        ]

        timer = None
        if self.run_timeout:
            timer = threading.Timer(self.run_timeout, self._expire, args=(cancel,))
            timer.daemon = True
            timer.start()

        logger.info("Exporting %d tables with %d workers", len(eligible), len(pool))
        for worker in pool:
            worker.thread.start()

        try:
            pending = self._dispatch(eligible, handoff, cancel, pool)
            self._close(handoff, pool)
            for worker in pool:
                worker.thread.join()
        finally:
            if timer is not None:
                timer.cancel()

        skipped = self._drain(handoff) + list(pending)
        reason = "run cancelled" if cancel.is_set() else "no healthy export worker left"
        if skipped:
            logger.error("Skipping %d tables: %s", len(skipped), reason)

        results = [result for worker in pool for result in worker.results]
        results.extend(_skipped(table, reason) for table in skipped)
        return sorted(results, key=lambda result: order[result.table_name])

    @staticmethod
    def _expire(cancel: threading.Event) -> None:
        logger.error("Run deadline reached; cancelling the export stage")
        cancel.set()

    @staticmethod
    def _dispatch(
        tables: list[TableDescriptor],
        handoff: queue.Queue,
        cancel: threading.Event,
        pool: list[_Worker],
    ) -> deque:
        """Hand tables to the pool until done, cancelled or out of workers.

        Returns:
            Tables that were never handed off
        """
        pending = deque(tables)
        while pending:
            if cancel.is_set():
                break
            if not any(worker.healthy for worker in pool):
                break
            try:
                handoff.put(pending[0], timeout=POLL_INTERVAL)
            except queue.Full:
                continue
            logger.debug("Dispatched %s", pending[0].name)
            pending.popleft()
        return pending

    @staticmethod
    def _close(handoff: queue.Queue, pool: list[_Worker]) -> None:
        """Send one sentinel per live worker until every worker has exited."""
        while any(worker.thread.is_alive() for worker in pool):
            try:
                handoff.put(None, timeout=POLL_INTERVAL)
            except queue.Full:
                continue

    @staticmethod
    def _drain(handoff: queue.Queue) -> list[TableDescriptor]:
        """Tables left in the slot after every worker exited."""
        leftovers = []
        while True:
            try:
                item = handoff.get_nowait()
            except queue.Empty:
                return leftovers
            if item is not None:
                leftovers.append(item)
