# === NAVMAP v1 ===
# {
#   "module": "Transcriptor.io_utils",
#   "purpose": "Write-temp-then-rename primitives for the registry and content artifacts",
#   "sections": [
#     {
#       "id": "atomic-write-bytes",
#       "name": "atomic_write_bytes",
#       "anchor": "function-atomic-write-bytes",
#       "kind": "function"
#     },
#     {
#       "id": "atomic-write-text",
#       "name": "atomic_write_text",
#       "anchor": "function-atomic-write-text",
#       "kind": "function"
#     },
#     {
#       "id": "atomic-write-json",
#       "name": "atomic_write_json",
#       "anchor": "function-atomic-write-json",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Atomic file write utilities.

**Responsibilities**
--------------------
- Write full content to a sibling temporary file, fsync it, and rename it
  onto the destination so readers only ever see the old or the new file
- Fall back to remove-and-replace on platforms that refuse to rename over
  an existing file
- Remove the temporary file whenever any step fails, then re-raise

**Design Notes**
----------------
- Temporary files live in the destination directory (``.<name>.*.tmp``) so
  the rename never crosses a filesystem boundary
- A crash between write and rename leaves only an orphaned ``.tmp`` sibling,
  which readers never open
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

__all__ = ["atomic_write_bytes", "atomic_write_text", "atomic_write_json"]

LOGGER = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def _fsync_directory(directory: str) -> None:
    flag = getattr(os, "O_DIRECTORY", None)
    if flag is None:
        return
    dir_fd = os.open(directory, flag)
    try:
        os.fsync(dir_fd)
    finally:
        os.close(dir_fd)


def _replace(tmp_path: str, dest_path: str) -> None:
    try:
        os.replace(tmp_path, dest_path)
    except (PermissionError, FileExistsError):
        # Some platforms refuse to rename over an open or existing file.
        LOGGER.debug(f"In-place rename refused for {dest_path}, removing and replacing")
        if os.path.exists(dest_path):
            os.remove(dest_path)
        shutil.move(tmp_path, dest_path)


def atomic_write_bytes(dest_path: str | Path, payload: bytes) -> int:
    """Write ``payload`` to ``dest_path`` atomically.

    Args:
        dest_path: Destination file. Parent directories are created.
        payload: Complete file content.

    Returns:
        Number of bytes written.

    Raises:
        OSError: If any step fails. The temporary file is removed and the
            destination keeps its previous content.
    """
    dest = str(dest_path)
    dest_dir = os.path.dirname(dest) or "."
    os.makedirs(dest_dir, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=dest_dir,
        prefix=f".{os.path.basename(dest)}.",
        suffix=TEMP_SUFFIX,
    )
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())

        if not os.path.exists(tmp_path):
            raise FileNotFoundError(f"Temporary file vanished before rename: {tmp_path}")

        _replace(tmp_path, dest)
        _fsync_directory(dest_dir)
        return len(payload)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


def atomic_write_text(dest_path: str | Path, text: str, encoding: str = "utf-8") -> int:
    return atomic_write_bytes(dest_path, text.encode(encoding))


def atomic_write_json(dest_path: str | Path, data: Any) -> int:
    """Serialize ``data`` as 2-space indented UTF-8 JSON and write it atomically."""
    text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    return atomic_write_text(dest_path, text)
