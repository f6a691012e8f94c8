"""Tracking of remote long-running operations."""

import asyncio
import logging
import time
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Set, Tuple

from catlet.errors import OperationFailedError
from catlet.errors import OperationTimeoutError
from catlet.models.operation import (
    LogLine,
    Operation,
    OperationFinished,
    OperationResult,
    OperationStatus,
    ProgressEvent,
    ResourceAttached,
    TaskStarted,
    TaskUpdated,
)
from catlet.providers.base import ComputeAPI


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT = 600.0

EventListener = Callable[[ProgressEvent], None]


class _OperationView:
    """What has already been reported for one operation."""

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        self.resources: Set[Tuple[str, str]] = set()
        self.tasks: Dict[str, Tuple[Optional[int], Optional[str]]] = {}
        self.log_since: Optional[datetime] = None
        # entries without a timestamp cannot be filtered by log_since
        self.untimed_logs: Set[str] = set()

    def diff(self, snapshot: Operation) -> list:
        """Events for everything in the snapshot not reported yet."""
        events: list = []

        for resource in snapshot.resources:
            key = (resource.resource_type, resource.resource_id)
            if key not in self.resources:
                self.resources.add(key)
                events.append(ResourceAttached(self.operation_id, resource.resource_type, resource.resource_id))

        for task in snapshot.tasks:
            state = (task.progress, task.status)
            if task.id not in self.tasks:
                self.tasks[task.id] = state
                events.append(
                    TaskStarted(
                        self.operation_id,
                        task.id,
                        task.label,
                        progress=task.progress,
                        primary=task.parent_task_id == self.operation_id,
                    )
                )
            elif self.tasks[task.id] != state:
                self.tasks[task.id] = state
                events.append(
                    TaskUpdated(self.operation_id, task.id, task.label, progress=task.progress, status=task.status)
                )

        entries = sorted(
            snapshot.log_entries,
            key=lambda e: e.timestamp.timestamp() if e.timestamp else float("-inf"),
        )
        for entry in entries:
            if entry.timestamp:
                if self.log_since and entry.timestamp <= self.log_since:
                    continue
                self.log_since = entry.timestamp
            else:
                key = entry.id or entry.message
                if key in self.untimed_logs:
                    continue
                self.untimed_logs.add(key)
            if entry.message:
                events.append(LogLine(self.operation_id, entry.message, entry.timestamp))

        return events


class OperationTracker:
    """Resolves an operation id to an OperationResult by polling."""

    def __init__(
        self,
        api: ComputeAPI,
        poll_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize operation tracker."""
        self.api = api
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    async def watch(self, operation_id: str, timeout: float = DEFAULT_TIMEOUT) -> AsyncIterator[ProgressEvent]:
        """Yield progress events until the operation is terminal.

        The last event is OperationFinished. A failed operation raises
        OperationFailedError, an exceeded deadline OperationTimeoutError.
        Closing the iterator early stops polling but leaves the remote
        operation running.
        """
        deadline = self._clock() + timeout
        view = _OperationView(operation_id)
        logger.info(f"Waiting for operation {operation_id}")

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(f"Gave up waiting for operation {operation_id} after {timeout:g}s")
                raise OperationTimeoutError(operation_id, timeout)

            try:
                # a stalled poll must not outlive the deadline
                snapshot = await asyncio.wait_for(
                    self.api.get_operation(operation_id, log_since=view.log_since), remaining
                )
            except asyncio.TimeoutError as e:
                logger.warning(f"Operation {operation_id} did not answer within {timeout:g}s")
                raise OperationTimeoutError(operation_id, timeout) from e

            for event in view.diff(snapshot):
                yield event

            if snapshot.status == OperationStatus.COMPLETED:
                logger.info(f"Operation {operation_id} completed successfully")
                yield OperationFinished(operation_id, OperationResult(operation=snapshot))
                return

            if snapshot.status == OperationStatus.FAILED:
                logger.error(f"Operation {operation_id} failed: {snapshot.status_message}")
                raise OperationFailedError(operation_id, snapshot.status_message)

            remaining = deadline - self._clock()
            if remaining > 0:
                await self._sleep(min(self.poll_interval, remaining))

    async def wait(
        self,
        operation_id: str,
        timeout: float = DEFAULT_TIMEOUT,
        listener: Optional[EventListener] = None,
    ) -> OperationResult:
        """Wait for the operation and return its terminal result."""
        async for event in self.watch(operation_id, timeout=timeout):
            if isinstance(event, OperationFinished):
                return event.result

            if isinstance(event, LogLine):
                logger.info(event.message)
            elif isinstance(event, ResourceAttached):
                logger.debug(f"Attached {event.resource_type} '{event.resource_id}' to operation {operation_id}")
            elif isinstance(event, TaskStarted) and event.primary:
                logger.info(f"Waiting for operation {event.name} ({operation_id})")

            if listener:
                try:
                    listener(event)
                except Exception as e:
                    logger.warning(f"Progress listener failed on {type(event).__name__}: {e}")

        # watch() always ends with OperationFinished or raises
        raise RuntimeError(f"Operation {operation_id} ended without a result")
