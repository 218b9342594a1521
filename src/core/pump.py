"""Request/response pump (core domain).

Each stateful component (an endpoint, the manager) owns one pump. Callers
submit typed request objects; a single worker task runs the registered
handler for one request at a time, so handlers may mutate the owner's
private state without locks. Callers get the handler's result, the
handler's exception, or a pump error when the request could not be queued
or answered in time.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from core.errors import PumpClosedError, PumpTimeoutError, UnknownRequestError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3.0

Handler = Callable[[Any], Awaitable[Any]]


@dataclass
class QueryRequest:
    """One unit of work: the request, where to answer, and when it was queued."""

    request: Any
    response: asyncio.Future
    queued_at: float = field(default_factory=time.monotonic)


class Pump:
    """Single-worker actor loop with call-with-timeout semantics."""

    def __init__(self, name: str, timeout: float = DEFAULT_TIMEOUT, maxsize: int = 1) -> None:
        self.name = name
        self.timeout = timeout
        self._handlers: dict[type, Handler] = {}
        self._queue: asyncio.Queue[QueryRequest] = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()
        self._worker: Optional[asyncio.Task] = None

    def register(self, request_type: type, handler: Handler) -> None:
        self._handlers[request_type] = handler

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Spawn the worker task on the running event loop."""

        if self.is_running:
            return
        self._closed.clear()
        self._worker = asyncio.get_running_loop().create_task(self._run(), name=f"pump:{self.name}")

    async def stop(self) -> None:
        """Stop the worker and fail every caller still waiting."""

        self._closed.set()
        worker = self._worker
        self._worker = None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        while not self._queue.empty():
            query = self._queue.get_nowait()
            if not query.response.done():
                query.response.set_exception(PumpClosedError(self.name, "response"))

    async def call(self, request: Any, timeout: Optional[float] = None) -> Any:
        """Run ``request`` on the worker and return the handler's result.

        Raises PumpTimeoutError (phase "request" or "response"),
        PumpClosedError, UnknownRequestError, or whatever the handler raised.
        Cancelling the caller abandons the answer; the handler may still run.
        """

        if timeout is None:
            timeout = self.timeout
        if not self.is_running:
            raise PumpClosedError(self.name, "request")

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        query = QueryRequest(request=request, response=future)
        await self._race(self._queue.put(query), "request", timeout)
        return await self._race(future, "response", timeout)

    async def _race(self, awaitable: Awaitable[Any], phase: str, timeout: float) -> Any:
        task = asyncio.ensure_future(awaitable)
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait(
                {task, closed}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            task.cancel()
            raise
        finally:
            closed.cancel()

        if task in done:
            return task.result()
        task.cancel()
        if closed in done:
            raise PumpClosedError(self.name, phase)
        raise PumpTimeoutError(self.name, phase, timeout)

    async def _run(self) -> None:
        while True:
            query = await self._queue.get()
            request_type = type(query.request).__name__
            handler = self._handlers.get(type(query.request))

            result: Any = None
            error: Optional[BaseException] = None
            if handler is None:
                LOGGER.warning("%s: unhandled request type %s", self.name, request_type)
                error = UnknownRequestError(self.name, request_type)
            else:
                try:
                    result = await handler(query.request)
                except asyncio.CancelledError:
                    if not query.response.done():
                        query.response.set_exception(PumpClosedError(self.name, "response"))
                    raise
                except Exception as exc:
                    error = exc

            if query.response.done():
                # Caller timed out or was cancelled; the answer has nowhere to go.
                LOGGER.info(
                    "%s: timed out replying to %s request (error=%s)",
                    self.name,
                    request_type,
                    error,
                )
                continue
            if error is not None:
                query.response.set_exception(error)
            else:
                query.response.set_result(result)
