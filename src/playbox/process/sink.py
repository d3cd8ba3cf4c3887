"""Tagged output sinks and the console they render into.

A ``Console`` is the shared destination: a bounded line history plus any
number of async subscribers (the gateway's SSE streams). ``OutputSink``
instances tag what they write ("stdout" / "stderr") so the consumer can
style them. Several sinks may share one console; their relative order is
arrival order.
"""

from __future__ import annotations

import asyncio
import codecs
import sys
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, List, Optional, Set, Tuple

from playbox.errors import SinkClosedError
from playbox.logging.diagnostic import diagnostic_logger as diag

STDOUT = "stdout"
STDERR = "stderr"

DEFAULT_HISTORY_LINES = 5000
DEFAULT_SUBSCRIBER_QUEUE = 1000

ConsoleEvent = Tuple[str, Any]


@dataclass(frozen=True)
class ConsoleLine:
    seq: int
    tag: str
    text: str

    def to_dict(self) -> dict:
        return {"seq": self.seq, "tag": self.tag, "text": self.text}


class _Subscriber:
    __slots__ = ("loop", "queue")

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Optional[ConsoleEvent]]"):
        self.loop = loop
        self.queue = queue


def _offer(sub: _Subscriber, event: Optional[ConsoleEvent]) -> None:
    try:
        sub.queue.put_nowait(event)
    except asyncio.QueueFull:
        diag.warn("console subscriber queue full; dropping event")


class Console:
    """Append-only console destination that doubles as the loading observer."""

    def __init__(
        self,
        history_lines: int = DEFAULT_HISTORY_LINES,
        subscriber_queue_size: int = DEFAULT_SUBSCRIBER_QUEUE,
    ):
        self._lock = threading.Lock()
        self._history: Deque[ConsoleLine] = deque(maxlen=max(1, history_lines))
        self._subscribers: Set[_Subscriber] = set()
        self._queue_size = max(1, subscriber_queue_size)
        self._seq = 0
        self._closed = False
        self.loading = False

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, tag: str, text: str) -> int:
        with self._lock:
            if self._closed:
                raise SinkClosedError("Console is closed")
            self._seq += 1
            line = ConsoleLine(seq=self._seq, tag=tag, text=text)
            self._history.append(line)
            self._render(line)
            subscribers = list(self._subscribers)
        self._broadcast(subscribers, ("line", line))
        return len(text)

    def set_loading(self, loading: bool) -> None:
        with self._lock:
            self.loading = loading
            subscribers = list(self._subscribers)
        self._broadcast(subscribers, ("loading", loading))

    def history(self) -> List[ConsoleLine]:
        with self._lock:
            return list(self._history)

    def text(self, tag: Optional[str] = None) -> str:
        return "".join(line.text for line in self.history() if tag is None or line.tag == tag)

    def subscribe(self) -> "asyncio.Queue[Optional[ConsoleEvent]]":
        """Register a queue on the running loop; ``None`` marks console close."""
        queue: asyncio.Queue[Optional[ConsoleEvent]] = asyncio.Queue(maxsize=self._queue_size)
        sub = _Subscriber(asyncio.get_running_loop(), queue)
        with self._lock:
            if self._closed:
                queue.put_nowait(None)
            else:
                self._subscribers.add(sub)
        return queue

    def unsubscribe(self, queue: "asyncio.Queue[Optional[ConsoleEvent]]") -> None:
        with self._lock:
            self._subscribers = {s for s in self._subscribers if s.queue is not queue}

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        self._broadcast(subscribers, None)

    def _render(self, line: ConsoleLine) -> None:
        """Hook for subclasses; runs under the console lock."""

    def _broadcast(self, subscribers: List[_Subscriber], event: Optional[ConsoleEvent]) -> None:
        for sub in subscribers:
            try:
                sub.loop.call_soon_threadsafe(_offer, sub, event)
            except RuntimeError:
                # Subscriber's loop is closed
                self.unsubscribe(sub.queue)


class TerminalConsole(Console):
    """Console that also echoes each line to this process's stdout/stderr."""

    def _render(self, line: ConsoleLine) -> None:
        stream = sys.stderr if line.tag == STDERR else sys.stdout
        stream.write(line.text)
        stream.flush()


class OutputSink:
    """Writer that appends tagged text to a console.

    Bytes are decoded incrementally, so a multi-byte character split across
    two ``write`` calls is kept intact.
    """

    def __init__(self, console: Console, tag: str = STDOUT):
        self.console = console
        self.tag = tag
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def write(self, data: bytes) -> int:
        text = self._decoder.decode(bytes(data))
        if text:
            self.console.append(self.tag, text)
        return len(data)

    def write_string(self, text: str) -> int:
        return self.console.append(self.tag, text)

    def flush(self) -> None:
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.console.append(self.tag, tail)
