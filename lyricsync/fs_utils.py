from __future__ import annotations

import errno
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

FAILED_SUFFIX = ".failed"
TEMP_PREFIX = ".lyricsync-"


def is_writable(path: Path) -> bool:
    return os.access(path, os.W_OK) and os.access(path.parent, os.W_OK)


@contextmanager
def atomic_rewrite(path: Path) -> Iterator[Path]:
    """Yield a scratch copy of ``path`` that replaces the original on success.

    The copy lives in the same directory so the final ``os.replace`` stays on
    one filesystem. If the body raises, the copy is removed and ``path`` is
    left exactly as it was. A symlinked ``path`` is resolved first so the
    link is kept and the file it points to is the one replaced.
    """
    path = path.resolve()
    fd, tmp_name = tempfile.mkstemp(
        prefix=TEMP_PREFIX, suffix=path.suffix, dir=str(path.parent)
    )
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        shutil.copy2(path, tmp_path)
        yield tmp_path
        _fsync(tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:  # pragma: no cover
            logger.warning("Could not remove temporary file %s: %s", tmp_path, exc)
        raise


def _fsync(path: Path) -> None:
    with open(path, "rb+") as handle:
        handle.flush()
        os.fsync(handle.fileno())


def failed_marker_path(lrc_path: Path) -> Path:
    return lrc_path.with_name(lrc_path.name + FAILED_SUFFIX)


def mark_failed(lrc_path: Path) -> Path:
    """Rename ``<name>.lrc`` to ``<name>.lrc.failed``, replacing a stale marker."""
    target = failed_marker_path(lrc_path)
    safe_rename(lrc_path, target)
    return target


def safe_rename(src: Path, dst: Path) -> None:
    try:
        os.replace(src, dst)
        return
    except OSError as exc:
        if exc.errno != errno.ENAMETOOLONG:
            raise
    src_dir_fd = os.open(src.parent, os.O_RDONLY)
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst_dir_fd = os.open(dst.parent, os.O_RDONLY)
        try:
            os.replace(src.name, dst.name, src_dir_fd=src_dir_fd, dst_dir_fd=dst_dir_fd)
        finally:
            os.close(dst_dir_fd)
    finally:
        os.close(src_dir_fd)
