"""SandboxBackend: filesystem abstraction for the playground workspace.

Implementations:
    LocalBackend: thin wrapper over pathlib/os (production)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_directory: bool
    is_file: bool


@dataclass(frozen=True)
class FileStat:
    is_file: bool
    is_directory: bool
    size: int
    mtime_ms: float
    mode: int


@runtime_checkable
class SandboxBackend(Protocol):
    """Minimal contract that all sandbox backends must implement."""

    @property
    def kind(self) -> str: ...

    @property
    def cwd(self) -> str: ...

    # ── Path helpers (pure, no I/O) ─────────────────────────────────

    def resolve(self, *segments: str) -> str: ...
    def safe_path(self, user_path: str) -> str: ...

    # ── File I/O ────────────────────────────────────────────────────

    async def read_file(self, path: str) -> str: ...
    async def write_file(self, path: str, content: str, mode: int = 0o600) -> None: ...

    # ── Directory operations ────────────────────────────────────────

    async def read_dir(self, path: str) -> list[DirEntry]: ...
    async def mkdir(self, path: str, mode: int = 0o755, recursive: bool = False) -> None: ...

    # ── Metadata ────────────────────────────────────────────────────

    async def exists(self, path: str) -> bool: ...
    async def stat(self, path: str) -> FileStat: ...
