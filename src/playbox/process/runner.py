"""Single-flight command runner.

At most one tracked command runs at a time. A second ``run`` while one is in
flight is rejected on the spot rather than queued. Output streams into
tagged sinks as it arrives, and the busy flag is released on every exit path.
"""

from __future__ import annotations

import asyncio
import os
import signal
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Sequence

from playbox.errors import SinkClosedError
from playbox.logging.diagnostic import diagnostic_logger as diag, log_runner_done, log_runner_rejected
from playbox.process.sink import STDERR, STDOUT, Console, OutputSink

OK = "ok"
BUSY = "busy"
START_FAILED = "start_failed"
EXIT_FAILED = "exit_failed"

READ_CHUNK = 4096


class Observer(Protocol):
    def set_loading(self, loading: bool) -> None: ...


class RunState:
    """Busy flag mutated only through compare-and-swap and release."""

    def __init__(self):
        self._lock = threading.Lock()
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def compare_and_swap(self, expected: bool, new: bool) -> bool:
        with self._lock:
            if self._busy != expected:
                return False
            self._busy = new
            return True

    def release(self) -> None:
        with self._lock:
            self._busy = False


@dataclass(frozen=True)
class RunOutcome:
    status: str
    exit_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == OK


def describe_exit(exit_code: int) -> str:
    if exit_code < 0:
        try:
            return f"signal: {signal.Signals(-exit_code).name}"
        except ValueError:
            return f"signal: {-exit_code}"
    return f"exit status {exit_code}"


def _emit(sink: OutputSink, text: str) -> None:
    try:
        sink.write_string(text)
    except SinkClosedError:
        diag.warn(f"console closed; dropped: {text.rstrip()}")


async def _pump(stream: Optional[asyncio.StreamReader], sink: OutputSink) -> None:
    if stream is None:
        return
    closed = False
    while True:
        chunk = await stream.read(READ_CHUNK)
        if not chunk:
            break
        if closed:
            continue
        try:
            sink.write(chunk)
        except SinkClosedError:
            # Keep draining so the child never blocks on a full pipe
            closed = True
            diag.warn(f"console closed; discarding further {sink.tag} output")
    if not closed:
        try:
            sink.flush()
        except SinkClosedError:
            diag.warn(f"console closed; dropped trailing {sink.tag} bytes")


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill a child whose run was cancelled and wait for it to exit."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            # Exited between the check and the kill
            pass
    await proc.wait()
    diag.debug(f"reaped cancelled child pid={proc.pid} exit={proc.returncode}")


class SingleFlightRunner:
    def __init__(
        self,
        console: Console,
        observer: Optional[Observer] = None,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        extra_path: Sequence[str] = (),
    ):
        self.console = console
        self.observer = observer
        self.cwd = cwd
        self.env = dict(env or {})
        self.extra_path = list(extra_path)
        self._state = RunState()

    @property
    def busy(self) -> bool:
        return self._state.busy

    def try_acquire(self) -> bool:
        return self._state.compare_and_swap(False, True)

    def release(self) -> None:
        self._state.release()

    def _set_loading(self, loading: bool) -> None:
        if self.observer is not None:
            self.observer.set_loading(loading)

    def _merged_env(self) -> Dict[str, str]:
        merged = {**os.environ, **self.env}
        if self.extra_path:
            current = merged.get("PATH", os.defpath)
            merged["PATH"] = os.pathsep.join([*self.extra_path, current])
        return merged

    async def run(self, command: str, args: Sequence[str] = ()) -> bool:
        return (await self.run_tracked(command, args)).ok

    async def run_tracked(self, command: str, args: Sequence[str] = ()) -> RunOutcome:
        display = " ".join([command, *args])
        if not self.try_acquire():
            log_runner_rejected(display)
            return RunOutcome(status=BUSY)

        start = time.time()
        stdout = OutputSink(self.console, STDOUT)
        stderr = OutputSink(self.console, STDERR)
        try:
            self._set_loading(True)
            _emit(stdout, f"$ {display}\n")
            try:
                proc = await asyncio.create_subprocess_exec(
                    command,
                    *args,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=self.cwd,
                    env=self._merged_env(),
                )
            except (OSError, ValueError) as e:
                _emit(stderr, f"Failed to start process: {e}\n")
                diag.debug(f"start failed: {display}: {e}")
                return RunOutcome(status=START_FAILED, error=str(e))

            try:
                await asyncio.gather(_pump(proc.stdout, stdout), _pump(proc.stderr, stderr))
                exit_code = await proc.wait()
            except asyncio.CancelledError:
                await _reap(proc)
                raise
            log_runner_done(display, exit_code, (time.time() - start) * 1000)
            if exit_code != 0:
                message = describe_exit(exit_code)
                _emit(stderr, message + "\n")
                return RunOutcome(status=EXIT_FAILED, exit_code=exit_code, error=message)
            return RunOutcome(status=OK, exit_code=0)
        finally:
            self.release()
            self._set_loading(False)
