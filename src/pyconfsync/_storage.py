"""Persisted configuration file I/O."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from pyconfsync.exceptions import ConfSyncPersistenceError

_logger = logging.getLogger(__name__)


def load_text(path: str | os.PathLike[str]) -> str | None:
    """Read the persisted file as UTF-8, or ``None`` when it does not exist."""
    file_path = Path(path)
    if not file_path.exists():
        return None
    try:
        return file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfSyncPersistenceError(f"Failed to read {file_path}: {exc}", path=str(file_path)) from exc


def backup_file(path: str | os.PathLike[str], backup_path: str | os.PathLike[str]) -> bool:
    """Copy the existing file verbatim over the single backup slot."""
    source = Path(path)
    if not source.exists():
        return False
    try:
        shutil.copyfile(source, backup_path)
    except OSError as exc:
        raise ConfSyncPersistenceError(f"Failed to back up {source}: {exc}", path=str(source)) from exc
    _logger.info("Backup written: %s", backup_path)
    return True


def write_text(
    path: str | os.PathLike[str],
    text: str,
    *,
    backup_path: str | os.PathLike[str] | None = None,
) -> None:
    """Write *text* to *path*, backing up the previous contents first."""
    target = Path(path)
    if backup_path is not None:
        backup_file(target, backup_path)

    directory = target.parent if str(target.parent) else Path(".")
    try:
        directory.mkdir(parents=True, exist_ok=True)
        tmp_fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{target.name}.", suffix=".tmp")
    except OSError as exc:
        raise ConfSyncPersistenceError(f"Failed to write {target}: {exc}", path=str(target)) from exc
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8", newline="\n") as fp:
            fp.write(text)
        os.replace(tmp_path, target)
    except OSError as exc:
        raise ConfSyncPersistenceError(f"Failed to write {target}: {exc}", path=str(target)) from exc
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
    _logger.info("Configuration file saved: %s", target)
