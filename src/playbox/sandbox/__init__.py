from playbox.sandbox.backend import SandboxBackend, DirEntry, FileStat
from playbox.sandbox.local import LocalBackend, write_bytes_atomic

__all__ = [
    "SandboxBackend", "DirEntry", "FileStat",
    "LocalBackend", "write_bytes_atomic",
]
