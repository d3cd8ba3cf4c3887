"""Zip extraction into a destination root.

Guards against:
- Zip Slip (../ traversal, absolute names)
- Writes outside the destination root

Every entry is validated before anything is written for it. The first
unsafe or unreadable entry aborts the whole extraction. Files already
written are left in place; callers discard the destination tree.
"""

from __future__ import annotations

import errno
import io
import os
import stat
import time
import zipfile
import zlib
from typing import BinaryIO, Iterable, Union

from playbox.archive.guard import validate_zip_path
from playbox.errors import ArchiveFormatError, FilesystemError
from playbox.logging.diagnostic import log_extract_done, log_extract_entry
from playbox.sandbox.local import write_bytes_atomic

ByteSource = Union[bytes, bytearray, memoryview, BinaryIO]

DEST_ROOT_MODE = 0o750
DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644

_MEMBER_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError)


class SectionReader(io.RawIOBase):
    """Read-only, seekable window of ``length`` bytes over a random-access source."""

    def __init__(self, source: BinaryIO, length: int, offset: int = 0):
        super().__init__()
        self._source = source
        self._base = offset
        self._length = length
        self._pos = 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = self._length + offset
        else:
            raise ValueError(f"invalid whence ({whence})")
        if pos < 0:
            raise OSError(errno.EINVAL, f"negative seek position {pos}")
        self._pos = pos
        return pos

    def readinto(self, buffer) -> int:
        remaining = self._length - self._pos
        if remaining <= 0:
            return 0
        view = memoryview(buffer)
        want = min(len(view), remaining)
        self._source.seek(self._base + self._pos)
        data = self._source.read(want)
        n = len(data)
        view[:n] = data
        self._pos += n
        return n


def _open_source(source: ByteSource, size: int | None) -> SectionReader:
    if isinstance(source, (bytes, bytearray, memoryview)):
        fh: BinaryIO = io.BytesIO(source)
        actual = len(source) if not isinstance(source, memoryview) else source.nbytes
    else:
        fh = source
        actual = fh.seek(0, io.SEEK_END)
    if size is None:
        size = actual
    if size < 0:
        raise ValueError(f"Invalid archive size: {size}")
    return SectionReader(fh, min(size, actual))


def entry_mode(info: zipfile.ZipInfo) -> int:
    """Permission bits stored for an entry, without setuid/setgid."""
    mode = stat.S_IMODE(info.external_attr >> 16) & ~stat.S_ISUID & ~stat.S_ISGID
    if mode:
        return mode
    return DEFAULT_DIR_MODE if info.is_dir() else DEFAULT_FILE_MODE


def _ensure_parent(path: str, created: set[str]) -> None:
    parent = os.path.dirname(path)
    missing: list[str] = []
    while parent and not os.path.isdir(parent):
        missing.append(parent)
        parent = os.path.dirname(parent)
    for directory in reversed(missing):
        try:
            os.mkdir(directory, DEFAULT_DIR_MODE)
        except FileExistsError:
            continue
        except OSError as e:
            raise FilesystemError(f"mkdir {directory}: {e}", directory) from e
        created.add(directory)


def _extract_dir(path: str, mode: int, created: set[str]) -> None:
    try:
        os.mkdir(path, mode)
    except FileExistsError:
        if not os.path.isdir(path):
            raise FilesystemError(f"mkdir {path}: file exists and is not a directory", path)
        if path not in created:
            return
    except OSError as e:
        raise FilesystemError(f"mkdir {path}: {e}", path) from e
    try:
        os.chmod(path, mode)
    except OSError as e:
        raise FilesystemError(f"chmod {path}: {e}", path) from e


def _extract_file(zf: zipfile.ZipFile, info: zipfile.ZipInfo, path: str, mode: int, created: set[str]) -> None:
    try:
        with zf.open(info) as src:
            data = src.read()
    except _MEMBER_ERRORS as e:
        raise ArchiveFormatError(f"{info.filename}: {e}") from e

    _ensure_parent(path, created)
    try:
        write_bytes_atomic(path, data, mode)
    except OSError as e:
        raise FilesystemError(f"write {path}: {e}", path) from e


def extract_files(zf: zipfile.ZipFile, entries: Iterable[zipfile.ZipInfo], dest_root: str) -> list[str]:
    """Extract ``entries`` in order; the first failure aborts the rest."""
    written: list[str] = []
    created: set[str] = set()
    for info in entries:
        path = validate_zip_path(info.filename, dest_root)
        mode = entry_mode(info)
        log_extract_entry(info.filename, info.is_dir(), mode)
        if info.is_dir():
            _extract_dir(path, mode, created)
        else:
            _extract_file(zf, info, path, mode, created)
        written.append(path)
    return written


def extract(source: ByteSource, size: int | None, dest_root: str) -> list[str]:
    """Materialize the zip archive in ``source`` under ``dest_root``.

    ``size`` is the declared archive length; only that many bytes of the
    source are visible to the zip reader, since the central directory is
    located from the end. Returns the written paths in archive order.

    Raises PathTraversalError, ArchiveFormatError or FilesystemError.
    """
    start = time.time()
    try:
        os.makedirs(dest_root, mode=DEST_ROOT_MODE, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"mkdir {dest_root}: {e}", dest_root) from e

    reader = _open_source(source, size)
    try:
        zf = zipfile.ZipFile(reader)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, ValueError, OSError) as e:
        raise ArchiveFormatError(f"Cannot read zip index: {e}") from e

    with zf:
        written = extract_files(zf, zf.infolist(), dest_root)

    log_extract_done(dest_root, len(written), (time.time() - start) * 1000)
    return written
