"""
LocalBackend tests with real temp directories.
Run with: python -m pytest tests/test_sandbox.py -v
"""

import os
import shutil
import stat
import tempfile

import pytest

from playbox.sandbox import LocalBackend, SandboxBackend, write_bytes_atomic


class TestLocalBackend:
    def setup_method(self):
        self.tmpdir = tempfile.mkdtemp()
        self.sb = LocalBackend(self.tmpdir)

    def teardown_method(self):
        shutil.rmtree(self.tmpdir)

    def test_satisfies_protocol(self):
        assert isinstance(self.sb, SandboxBackend)

    def test_safe_path_inside(self):
        assert self.sb.safe_path("src/main.go") == os.path.join(self.sb.cwd, "src", "main.go")
        assert self.sb.safe_path(os.path.join(self.sb.cwd, "a")) == os.path.join(self.sb.cwd, "a")

    @pytest.mark.parametrize("path", ["../x", "/etc/passwd", "a/../../x"])
    def test_safe_path_blocks_traversal(self, path):
        with pytest.raises(ValueError, match="Path traversal blocked"):
            self.sb.safe_path(path)

    @pytest.mark.asyncio
    async def test_write_read_roundtrip_and_mode(self):
        path = self.sb.resolve("main.go")
        await self.sb.write_file(path, "package main\n")
        assert await self.sb.read_file(path) == "package main\n"
        st = await self.sb.stat(path)
        assert st.is_file and st.mode == 0o600 and st.size == len("package main\n")

    @pytest.mark.asyncio
    async def test_read_dir_sorted(self):
        await self.sb.mkdir(self.sb.resolve("b"))
        await self.sb.write_file(self.sb.resolve("a.txt"), "a")
        entries = await self.sb.read_dir(self.tmpdir)
        assert [e.name for e in entries] == ["a.txt", "b"]
        assert entries[1].is_directory and entries[0].is_file

    @pytest.mark.asyncio
    async def test_mkdir_idempotent(self):
        target = self.sb.resolve("x", "y")
        await self.sb.mkdir(target, recursive=True)
        await self.sb.mkdir(target, recursive=True)
        assert await self.sb.exists(target)


class TestWriteBytesAtomic:
    def setup_method(self):
        self.tmpdir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.tmpdir)

    def test_replaces_existing_and_sets_mode(self):
        path = os.path.join(self.tmpdir, "tool")
        with open(path, "wb") as f:
            f.write(b"old")
        os.chmod(path, 0o600)
        write_bytes_atomic(path, b"new", 0o755)
        with open(path, "rb") as f:
            assert f.read() == b"new"
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o755

    def test_no_temp_files_left(self):
        write_bytes_atomic(os.path.join(self.tmpdir, "f"), b"x", 0o644)
        assert os.listdir(self.tmpdir) == ["f"]

    def test_missing_directory(self):
        with pytest.raises(FileNotFoundError):
            write_bytes_atomic(os.path.join(self.tmpdir, "nope", "f"), b"x", 0o644)
