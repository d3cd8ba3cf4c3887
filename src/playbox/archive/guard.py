"""Zip-slip guard: keep every archive entry inside its destination root."""

from __future__ import annotations

import os

from playbox.errors import PathTraversalError


def _root_prefix(dest_root: str) -> tuple[str, str]:
    root = os.path.normpath(dest_root)
    prefix = root if root.endswith(os.sep) else root + os.sep
    return root, prefix


def _inside(resolved: str, root: str, prefix: str) -> bool:
    if root == os.curdir:
        # normpath drops the leading "./", so compare against the parent instead
        return not (
            os.path.isabs(resolved)
            or resolved == os.pardir
            or resolved.startswith(os.pardir + os.sep)
        )
    return resolved == root or resolved.startswith(prefix)


def validate_zip_path(entry_name: str, dest_root: str) -> str:
    """Return the cleaned path of ``entry_name`` under ``dest_root``.

    Raises PathTraversalError when the cleaned path does not start with the
    root prefix. Absolute names and ``..`` segments that climb above the root
    both land here. The cleaned root itself (e.g. a ``./`` entry) is allowed.
    A root of ``.`` yields paths relative to the process working directory.
    No filesystem access happens.
    """
    root, prefix = _root_prefix(dest_root)
    resolved = os.path.normpath(os.path.join(prefix, entry_name))
    if _inside(resolved, root, prefix):
        return resolved
    raise PathTraversalError(entry_name, resolved)
