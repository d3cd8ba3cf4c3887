"""One-shot futures for sequencing pipeline steps.

``new_future()`` hands out a resolve/reject pair and the future they
settle. The first settlement wins; later calls are no-ops that return
False. ``then`` chains a continuation that runs only after its predecessor
resolves. A rejection skips the continuation and flows downstream as-is.

Callbacks run synchronously on the thread that settles the future, and
immediately when attached to a future that is already settled.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from typing import Any, Awaitable, Callable, Generator, List, Optional, Set, Tuple

from playbox.errors import CommandTimeoutError

PENDING = "pending"
RESOLVED = "resolved"
REJECTED = "rejected"

Resolve = Callable[[Any], bool]
Reject = Callable[[BaseException], bool]
DoneCallback = Callable[["CommandFuture"], None]

# Strong references for tasks spawned from continuations
_background: Set[asyncio.Task] = set()


class CommandFuture:
    __slots__ = ("_lock", "_state", "_value", "_error", "_callbacks")

    def __init__(self):
        self._lock = threading.Lock()
        self._state = PENDING
        self._value: Any = None
        self._error: Optional[BaseException] = None
        self._callbacks: List[DoneCallback] = []

    def __repr__(self) -> str:
        return f"<CommandFuture {self._state}>"

    @property
    def state(self) -> str:
        return self._state

    @property
    def value(self) -> Any:
        return self._value

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def done(self) -> bool:
        return self._state != PENDING

    def _settle(self, state: str, value: Any, error: Optional[BaseException]) -> bool:
        with self._lock:
            if self._state != PENDING:
                return False
            self._state = state
            self._value = value
            self._error = error
            callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            cb(self)
        return True

    def _resolve(self, value: Any = None) -> bool:
        return self._settle(RESOLVED, value, None)

    def _reject(self, error: BaseException) -> bool:
        if not isinstance(error, BaseException):
            raise TypeError(f"reject() needs an exception, got {error!r}")
        return self._settle(REJECTED, None, error)

    def add_done_callback(self, cb: DoneCallback) -> None:
        with self._lock:
            if self._state == PENDING:
                self._callbacks.append(cb)
                return
        cb(self)

    def then(self, continuation: Callable[[Any], Any]) -> "CommandFuture":
        return then(self, continuation)

    def with_deadline(self, seconds: float) -> "CommandFuture":
        """Reject with CommandTimeoutError if still pending after ``seconds``."""
        loop = asyncio.get_running_loop()
        handle = loop.call_later(seconds, self._reject, CommandTimeoutError(seconds))
        self.add_done_callback(lambda _f: loop.call_soon_threadsafe(handle.cancel))
        return self

    def __await__(self) -> Generator[Any, None, Any]:
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()

        def _wake(fut: "CommandFuture") -> None:
            loop.call_soon_threadsafe(_transfer, fut, waiter)

        self.add_done_callback(_wake)
        return (yield from waiter.__await__())


def _transfer(src: CommandFuture, waiter: asyncio.Future) -> None:
    if waiter.done():
        return
    if src.state == RESOLVED:
        waiter.set_result(src.value)
    else:
        waiter.set_exception(src.error)


def new_future() -> Tuple[Resolve, Reject, CommandFuture]:
    future = CommandFuture()
    return future._resolve, future._reject, future


def resolved(value: Any = None) -> CommandFuture:
    future = CommandFuture()
    future._resolve(value)
    return future


def rejected(error: BaseException) -> CommandFuture:
    future = CommandFuture()
    future._reject(error)
    return future


def from_awaitable(aw: Awaitable[Any]) -> CommandFuture:
    """Schedule ``aw`` on the running loop and mirror its outcome."""
    resolve, reject, future = new_future()
    task = asyncio.ensure_future(aw)
    _background.add(task)

    def _done(t: asyncio.Future) -> None:
        _background.discard(t)
        if t.cancelled():
            reject(asyncio.CancelledError())
        elif t.exception() is not None:
            reject(t.exception())
        else:
            resolve(t.result())

    task.add_done_callback(_done)
    return future


def _follow(src: CommandFuture, resolve: Resolve, reject: Reject) -> None:
    def _copy(f: CommandFuture) -> None:
        if f.state == RESOLVED:
            resolve(f.value)
        else:
            reject(f.error)

    src.add_done_callback(_copy)


def then(future: CommandFuture, continuation: Callable[[Any], Any]) -> CommandFuture:
    """Run ``continuation(value)`` once ``future`` resolves.

    The continuation may return a CommandFuture, an awaitable, or a plain
    value; the returned future settles with whatever it produces. If
    ``future`` rejects, the continuation never runs and the error propagates.
    """
    resolve, reject, downstream = new_future()

    def _on_settled(src: CommandFuture) -> None:
        if src.state == REJECTED:
            reject(src.error)
            return
        try:
            result = continuation(src.value)
        except Exception as e:
            reject(e)
            return
        if isinstance(result, CommandFuture):
            _follow(result, resolve, reject)
        elif inspect.isawaitable(result):
            _follow(from_awaitable(result), resolve, reject)
        else:
            resolve(result)

    future.add_done_callback(_on_settled)
    return downstream
