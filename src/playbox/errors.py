"""Error kinds raised across extraction and the command pipeline."""

from __future__ import annotations

from typing import Optional


class PlayboxError(Exception):
    """Base class for all playbox errors."""


class PathTraversalError(PlayboxError):
    def __init__(self, entry_name: str, resolved: str):
        super().__init__(f"{resolved}: illegal zip file path (entry {entry_name!r})")
        self.entry_name = entry_name
        self.resolved = resolved


class ArchiveFormatError(PlayboxError):
    pass


class FilesystemError(PlayboxError):
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ProcessStartError(PlayboxError):
    pass


class ProcessExitError(PlayboxError):
    def __init__(self, command: str, exit_code: int):
        super().__init__(f"{command}: exit status {exit_code}")
        self.command = command
        self.exit_code = exit_code


class BusyError(PlayboxError):
    def __init__(self, command: str = ""):
        super().__init__(f"Runner busy; rejected \"{command}\"" if command else "Runner busy")
        self.command = command


class CommandTimeoutError(PlayboxError):
    def __init__(self, seconds: float):
        super().__init__(f"Step did not settle within {seconds}s")
        self.seconds = seconds


class SinkClosedError(PlayboxError):
    pass


class FetchError(PlayboxError):
    pass
