from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional


class ErrorKind(str, Enum):
    UNSUPPORTED_FORMAT = "unsupported_format"
    TAG_READ = "tag_read"
    PERMISSION = "permission"
    CORRUPT = "corrupt"
    IO = "io"
    LRC_READ = "lrc_read"
    CONFIG = "config"
    UNEXPECTED = "unexpected"


class LyricSyncError(Exception):
    """Base class for errors raised while embedding lyrics."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.message} ({self.path})"


class UnsupportedFormatError(LyricSyncError):
    kind = ErrorKind.UNSUPPORTED_FORMAT


class TagReadError(LyricSyncError):
    """The metadata container exists but cannot be parsed."""

    kind = ErrorKind.TAG_READ


class WriteError(LyricSyncError):
    """Raised by a tag writer; the original file is left untouched."""

    kind = ErrorKind.IO


class PermissionWriteError(WriteError):
    kind = ErrorKind.PERMISSION


class CorruptContainerError(WriteError):
    kind = ErrorKind.CORRUPT


class IoWriteError(WriteError):
    kind = ErrorKind.IO


class LrcReadError(LyricSyncError):
    kind = ErrorKind.LRC_READ


class ConfigError(LyricSyncError):
    kind = ErrorKind.CONFIG
