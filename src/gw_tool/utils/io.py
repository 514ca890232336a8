"""Atomic file writes for the config file."""

import os
import tempfile
from pathlib import Path


def atomic_write_text(path: str | Path, data: str) -> None:
    """
    Replace PATH with DATA so readers see either the old or the new file.

    The temp file lives next to the target so os.replace() stays on one
    filesystem. It is removed if anything fails before the replace.
    """
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, dest)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
