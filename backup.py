from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class BackupResult:
    path: Path | None = None
    error: OSError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def make_backup(source: Path, backup_dir: Path) -> BackupResult:
    """Copy ``source`` into a new uniquely named file in ``backup_dir``.

    Files are named ``<source name>-<random suffix>``; match log lines with
    file creation times to find a specific backup. Failures are returned,
    not raised.
    """
    try:
        fd, name = tempfile.mkstemp(prefix=f"{source.name}-", dir=backup_dir)
    except OSError as exc:
        return BackupResult(error=exc)

    target = Path(name)
    try:
        with os.fdopen(fd, "wb") as dst, source.open("rb") as src:
            shutil.copyfileobj(src, dst)
            dst.flush()
            os.fsync(dst.fileno())
    except OSError as exc:
        with contextlib.suppress(OSError):
            target.unlink(missing_ok=True)
        return BackupResult(error=exc)
    return BackupResult(path=target)
