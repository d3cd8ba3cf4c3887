"""LocalBackend: SandboxBackend backed by the real filesystem."""

from __future__ import annotations

import os
import stat as stat_mod
import tempfile
from pathlib import Path

from playbox.archive.guard import validate_zip_path
from playbox.errors import PathTraversalError
from playbox.sandbox.backend import DirEntry, FileStat


def write_bytes_atomic(path: str, data: bytes, mode: int) -> None:
    """Write ``data`` to ``path`` via a sibling temp file and rename.

    The final file carries exactly ``mode`` (umask does not apply). An
    existing file at ``path`` is replaced.
    """
    directory = os.path.dirname(path) or "."
    fd, tmp_path = tempfile.mkstemp(prefix=".playbox-", dir=directory)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


class LocalBackend:
    kind = "local"

    def __init__(self, root: str | None = None):
        self._cwd = os.path.abspath(root or os.getcwd())

    @property
    def cwd(self) -> str:
        return self._cwd

    # ── Path helpers ────────────────────────────────────────────────

    def resolve(self, *segments: str) -> str:
        return os.path.normpath(os.path.join(self._cwd, *segments))

    def safe_path(self, user_path: str) -> str:
        if os.path.isabs(user_path):
            user_path = os.path.relpath(user_path, self._cwd)
        try:
            return validate_zip_path(user_path, self._cwd)
        except PathTraversalError:
            raise ValueError(f"Path traversal blocked: {user_path}")

    # ── File I/O ────────────────────────────────────────────────────

    async def read_file(self, path: str) -> str:
        return Path(path).read_text("utf-8")

    async def write_file(self, path: str, content: str, mode: int = 0o600) -> None:
        write_bytes_atomic(path, content.encode("utf-8"), mode)

    # ── Directory operations ────────────────────────────────────────

    async def read_dir(self, path: str) -> list[DirEntry]:
        p = Path(path)
        return [
            DirEntry(name=e.name, is_directory=e.is_dir(), is_file=e.is_file())
            for e in sorted(p.iterdir(), key=lambda x: x.name)
        ]

    async def mkdir(self, path: str, mode: int = 0o755, recursive: bool = False) -> None:
        Path(path).mkdir(mode=mode, parents=recursive, exist_ok=True)

    # ── Metadata ────────────────────────────────────────────────────

    async def exists(self, path: str) -> bool:
        return Path(path).exists()

    async def stat(self, path: str) -> FileStat:
        s = Path(path).stat()
        return FileStat(
            is_file=stat_mod.S_ISREG(s.st_mode),
            is_directory=stat_mod.S_ISDIR(s.st_mode),
            size=s.st_size,
            mtime_ms=s.st_mtime * 1000,
            mode=stat_mod.S_IMODE(s.st_mode),
        )
