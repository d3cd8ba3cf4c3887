"""Toolchain bootstrap: fetch the archive, extract it, wire up the playground."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from playbox.archive.extractor import extract
from playbox.config.config import PlayboxConfig
from playbox.errors import FetchError
from playbox.logging.diagnostic import diagnostic_logger as diag
from playbox.process.pipeline import Playground
from playbox.process.runner import SingleFlightRunner
from playbox.process.sink import Console
from playbox.sandbox.local import LocalBackend, write_bytes_atomic

TEST_MAIN = """
package main

func main() {
	println("hello world")
}
"""

TEST_GO_MOD = """
module thing
"""


async def fetch_archive(url: str, timeout: float = 60.0) -> bytes:
    """Download the archive at ``url``; ``file://`` URLs and bare paths are read from disk."""
    parsed = urlparse(url)
    loop = asyncio.get_running_loop()

    if parsed.scheme in ("", "file"):
        path = parsed.path if parsed.scheme == "file" else url
        try:
            return await loop.run_in_executor(None, Path(path).read_bytes)
        except OSError as e:
            raise FetchError(f"Cannot read archive {path}: {e}") from e

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise FetchError(f"Invalid archive URL: {url}")

    def _fetch() -> bytes:
        req = Request(url, headers={"User-Agent": "playbox/1.0"})
        with urlopen(req, timeout=timeout) as resp:
            return resp.read()

    try:
        return await loop.run_in_executor(None, _fetch)
    except HTTPError as e:
        raise FetchError(f"HTTP {e.code}: {e.reason}") from e
    except URLError as e:
        raise FetchError(f"Archive fetch failed: {e.reason}") from e
    except TimeoutError as e:
        raise FetchError(f"Archive fetch timed out after {timeout}s") from e


async def install_toolchain(settings: PlayboxConfig, data: Optional[bytes] = None) -> List[str]:
    """Extract the toolchain archive into ``settings.toolchain_dir``.

    Extraction runs in an executor thread. Any PathTraversalError,
    ArchiveFormatError or FilesystemError propagates, and whatever was
    already written stays on disk.
    """
    if data is None:
        diag.info(f"Fetching toolchain from {settings.archive_url}")
        data = await fetch_archive(settings.archive_url, settings.fetch_timeout_s)

    loop = asyncio.get_running_loop()
    written = await loop.run_in_executor(None, extract, data, len(data), settings.toolchain_dir)

    toolchain = LocalBackend(settings.toolchain_dir)
    for entry in await toolchain.read_dir(toolchain.cwd):
        diag.info(f"  {entry.name}{os.sep if entry.is_directory else ''}")
    info = await toolchain.stat(toolchain.cwd)
    diag.info(f"{settings.toolchain_dir} perm {oct(info.mode)}")
    return written


def make_test_module(directory: str) -> None:
    """Write a hello-world main.go and go.mod for smoke-testing a toolchain."""
    write_bytes_atomic(os.path.join(directory, "main.go"), TEST_MAIN.encode(), 0o600)
    write_bytes_atomic(os.path.join(directory, "go.mod"), TEST_GO_MOD.encode(), 0o600)


def create_playground(settings: PlayboxConfig, console: Console) -> Playground:
    workspace = LocalBackend(settings.workspace_dir)
    runner = SingleFlightRunner(
        console,
        observer=console,
        cwd=workspace.cwd,
        extra_path=[settings.toolchain_bin()],
    )
    return Playground(runner, workspace, settings)
