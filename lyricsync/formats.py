from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Union


class AudioFormat(str, Enum):
    FLAC = "flac"
    MP3 = "mp3"
    M4A = "m4a"
    UNSUPPORTED = "unsupported"


EXTENSION_FORMATS = {
    ".flac": AudioFormat.FLAC,
    ".mp3": AudioFormat.MP3,
    ".m4a": AudioFormat.M4A,
    ".mp4": AudioFormat.M4A,
}

SUPPORTED_EXTS = set(EXTENSION_FORMATS)


def detect_format(path: Union[str, Path]) -> AudioFormat:
    """Classify a file by its extension only; the file is never opened."""
    suffix = Path(path).suffix.lower()
    return EXTENSION_FORMATS.get(suffix, AudioFormat.UNSUPPORTED)
