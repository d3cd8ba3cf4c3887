"""Named workflows over the single-flight runner.

Each step is a CommandFuture, and dependent steps are chained with ``then``:
"run" only starts after "build" resolves, and "reload" only after "fmt".
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Sequence

from playbox.config.config import PlayboxConfig, split_command
from playbox.errors import (
    BusyError,
    CommandTimeoutError,
    FilesystemError,
    PlayboxError,
    ProcessExitError,
    ProcessStartError,
)
from playbox.logging.diagnostic import diagnostic_logger as diag
from playbox.process.future import REJECTED, CommandFuture, new_future
from playbox.process.runner import BUSY, START_FAILED, SingleFlightRunner
from playbox.process.sink import STDERR, OutputSink
from playbox.sandbox.local import LocalBackend

SOURCE_FILE_MODE = 0o600
WORKSPACE_MODE = 0o700

DEFAULT_SOURCE = """package main

import "fmt"

func main() {
	fmt.Println("Hello from the playground!")
}
"""

ReloadCallback = Callable[[str], None]


class Playground:
    def __init__(self, runner: SingleFlightRunner, workspace: LocalBackend, settings: PlayboxConfig):
        self.runner = runner
        self.workspace = workspace
        self.settings = settings
        self.source_path = workspace.safe_path(settings.source_file)
        self.build_argv = split_command(settings.build_command)
        self.run_argv = split_command(settings.run_command)
        self.format_argv = split_command(settings.format_command)
        self.init_argv = split_command(settings.init_command)
        self._stderr = OutputSink(runner.console, STDERR)
        self._tasks: set[asyncio.Task] = set()

    def _report(self, message: str) -> None:
        diag.error(message)
        if not self.runner.console.closed:
            self._stderr.write_string(message + "\n")

    def run_process(self, argv: Sequence[str]) -> CommandFuture:
        """Start ``argv`` through the runner; the future settles with its outcome."""
        resolve, reject, future = new_future()
        display = " ".join(argv)

        async def _run() -> None:
            outcome = await self.runner.run_tracked(argv[0], list(argv[1:]))
            if outcome.ok:
                resolve(outcome.exit_code)
            elif outcome.status == BUSY:
                reject(BusyError(display))
            elif outcome.status == START_FAILED:
                reject(ProcessStartError(f"{display}: {outcome.error}"))
            else:
                reject(ProcessExitError(display, outcome.exit_code))

        def _finished(task: asyncio.Task) -> None:
            self._tasks.discard(task)
            if task.cancelled():
                reject(asyncio.CancelledError())
            elif task.exception() is not None:
                reject(task.exception())

        task = asyncio.create_task(_run())
        self._tasks.add(task)
        task.add_done_callback(_finished)

        if self.settings.step_deadline_s:
            future.with_deadline(self.settings.step_deadline_s)
            future.add_done_callback(self._report_timeout)
        return future

    def _report_timeout(self, future: CommandFuture) -> None:
        if future.state == REJECTED and isinstance(future.error, CommandTimeoutError):
            self._report(str(future.error))

    # ── Workflows ───────────────────────────────────────────────────

    def build(self) -> CommandFuture:
        return self.run_process(self.build_argv)

    def build_then_run(self) -> CommandFuture:
        return self.build().then(lambda _: self.run_process(self.run_argv))

    def format_then_reload(self, on_reload: Optional[ReloadCallback] = None) -> CommandFuture:
        async def _reload(_exit_code) -> str:
            try:
                contents = await self.workspace.read_file(self.source_path)
            except OSError as e:
                self._report(f"Failed to read {self.settings.source_file}: {e}")
                raise FilesystemError(str(e), self.source_path) from e
            if on_reload is not None:
                on_reload(contents)
            return contents

        return self.run_process(self.format_argv).then(_reload)

    # ── Editor surface ──────────────────────────────────────────────

    async def edited(self, new_contents: Callable[[], str]) -> bool:
        """Persist the editor's current text to the tracked source file."""
        try:
            await self.workspace.write_file(self.source_path, new_contents(), SOURCE_FILE_MODE)
        except OSError as e:
            self._report(f"Failed to write {self.settings.source_file}: {e}")
            return False
        return True

    async def read_source(self) -> str:
        return await self.workspace.read_file(self.source_path)

    async def prepare(self, initial_contents: str = DEFAULT_SOURCE) -> bool:
        """Create the workspace, seed the source file and initialise the module."""
        try:
            await self.workspace.mkdir(self.workspace.cwd, mode=WORKSPACE_MODE, recursive=True)
        except OSError as e:
            self._report(f"Failed to make playground dir: {e}")
            return False

        if not await self.workspace.exists(self.source_path):
            if not await self.edited(lambda: initial_contents):
                return False

        marker = self.settings.init_marker
        if marker and await self.workspace.exists(self.workspace.resolve(marker)):
            diag.debug(f"{marker} present; skipping module init")
            return True
        try:
            await self.run_process(self.init_argv)
        except PlayboxError as e:
            diag.warn(f"Module init failed: {e}")
            return False
        return True
