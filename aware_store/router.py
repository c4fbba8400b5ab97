"""
Operation router: maps named request messages onto the persistence paths.

Callers hand the router an operation name and a message body, either directly
through `dispatch` or by posting `Envelope`s on a queue consumed by `serve`.

Usage:
    router = OperationRouter(writer, reader)
    router.dispatch("insertData", {"device_id": d, "table": "battery", "data": "[...]"})
    rows = await router.dispatch("getData", {"device_id": d, "table": "battery",
                                             "start": 0, "end": 2000})

Writes are fire-and-forget: `dispatch` returns at once, failures are only logged,
and the returned task resolves to a `WriteResult` (with `error` set on failure).
Reads resolve to the document list or raise the read error.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from aware_store.domain.models import OperationRequest, WriteResult
from aware_store.errors import RequestError, UnknownOperation
from aware_store.persistence.reader import RecordReader
from aware_store.persistence.writer import RecordWriter
from aware_store.utils.logging import get_logger

log = get_logger(__name__)

INSERT_DATA = "insertData"
UPDATE_DATA = "updateData"
DELETE_DATA = "deleteData"
GET_DATA = "getData"

Handler = Callable[[OperationRequest], Awaitable[Any]]


@dataclass
class Envelope:
    """
    A request message on the router's channel.

    `reply` is completed with the result for operations that answer; it is left
    pending when the operation fails, so the sender must apply its own timeout.
    """

    operation: str
    body: Mapping[str, Any]
    reply: Optional[asyncio.Future] = None


class OperationRouter:
    """Registry of operation handlers plus the tasks they have in flight."""

    def __init__(self, writer: RecordWriter, reader: RecordReader) -> None:
        self._writer = writer
        self._reader = reader
        self._handlers: Dict[str, Handler] = {}
        self._replying: Set[str] = set()
        self._inflight: Set[asyncio.Task] = set()

        self.register(INSERT_DATA, self._insert)
        self.register(UPDATE_DATA, self._update)
        self.register(DELETE_DATA, self._delete)
        self.register(GET_DATA, self._get, replies=True)

    def register(self, operation: str, handler: Handler, replies: bool = False) -> None:
        """
        Bind `handler` to `operation`, replacing any previous binding.

        Handlers registered with `replies=False` run fire-and-forget.
        """
        self._handlers[operation] = handler
        if replies:
            self._replying.add(operation)
        else:
            self._replying.discard(operation)

    def operations(self) -> List[str]:
        """List registered operation names."""
        return sorted(self._handlers)

    @property
    def pending(self) -> int:
        return len(self._inflight)

    def dispatch(self, operation: str, body: Mapping[str, Any]) -> asyncio.Task:
        """
        Start `operation` for the message `body` and return its task.

        Must be called from a running event loop.

        Raises
        ------
        UnknownOperation
            If no handler is registered for `operation`.
        RequestError
            If the body cannot be decoded into a request.
        """
        handler = self._handlers.get(operation)
        if handler is None:
            raise UnknownOperation(operation)
        request = OperationRequest.from_message(operation, body)

        if operation in self._replying:
            task = asyncio.create_task(self._timed(handler, request), name=operation)
        else:
            task = asyncio.create_task(self._fire(handler, request), name=operation)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def serve(self, queue: "asyncio.Queue[Envelope]") -> None:
        """
        Consume envelopes from `queue` until cancelled.

        Unknown operations and malformed bodies are logged and dropped.
        """
        while True:
            envelope = await queue.get()
            try:
                self._deliver(envelope)
            finally:
                queue.task_done()

    async def drain(self) -> None:
        """Wait for every dispatched operation to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def _deliver(self, envelope: Envelope) -> None:
        try:
            task = self.dispatch(envelope.operation, envelope.body)
        except (UnknownOperation, RequestError) as exc:
            log.warning(
                "Dropped request",
                extra={"operation": envelope.operation, "error": str(exc)},
            )
            return

        reply = envelope.reply
        if reply is None or envelope.operation not in self._replying:
            return

        def _answer(done: asyncio.Task) -> None:
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                log.warning(
                    f"[{envelope.operation}] left unanswered: {exc}",
                    extra={"operation": envelope.operation, "error": str(exc)},
                )
                return
            if not reply.done():
                reply.set_result(done.result())

        task.add_done_callback(_answer)

    async def _timed(self, handler: Handler, request: OperationRequest) -> Any:
        start = time.perf_counter()
        try:
            return await handler(request)
        finally:
            log.debug(
                f"[{request.operation}] completed",
                extra={
                    "operation": request.operation,
                    "table": request.table,
                    "duration_seconds": round(time.perf_counter() - start, 4),
                },
            )

    async def _fire(self, handler: Handler, request: OperationRequest) -> Any:
        try:
            return await self._timed(handler, request)
        except Exception as exc:  # noqa: BLE001 - writes report failures through logs only
            log.exception(
                f"[{request.operation} FAILED] {request.table}",
                extra={
                    "operation": request.operation,
                    "table": request.table,
                    "device_id": request.device_id,
                },
            )
            return WriteResult(
                operation=request.operation,
                table=request.table,
                device_id=request.device_id,
                rows=len(request.data),
                affected=0,
                failed=len(request.data),
                error=str(exc),
            )

    async def _insert(self, request: OperationRequest) -> WriteResult:
        return await self._writer.insert(request.table, request.device_id, request.data)

    async def _update(self, request: OperationRequest) -> WriteResult:
        return await self._writer.update(request.table, request.device_id, request.data)

    async def _delete(self, request: OperationRequest) -> WriteResult:
        return await self._writer.delete(request.table, request.device_id, request.data)

    async def _get(self, request: OperationRequest) -> List[Dict[str, Any]]:
        start, end = request.time_range()
        return await self._reader.query(request.table, request.device_id, start, end)


__all__ = [
    "Envelope",
    "OperationRouter",
    "INSERT_DATA",
    "UPDATE_DATA",
    "DELETE_DATA",
    "GET_DATA",
]
