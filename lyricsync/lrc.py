from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .errors import LrcReadError
from .models import LyricPayload

logger = logging.getLogger(__name__)

LRC_SUFFIX = ".lrc"
UTF8_BOM = "\ufeff"


def lrc_path_for(audio_path: Path) -> Path:
    """The sidecar lyric file shares the audio file's stem: ``song.flac`` -> ``song.lrc``."""
    return audio_path.with_name(f"{audio_path.stem}{LRC_SUFFIX}")


def load_payload(audio_path: Path) -> Optional[LyricPayload]:
    lrc_path = lrc_path_for(audio_path)
    if not lrc_path.is_file():
        return None
    try:
        # newline="" keeps the file's line endings untouched.
        with lrc_path.open("r", encoding="utf-8", newline="") as handle:
            text = handle.read()
    except UnicodeDecodeError as exc:
        raise LrcReadError(f"LRC file is not valid UTF-8: {exc.reason}", lrc_path) from exc
    except OSError as exc:
        raise LrcReadError(f"Cannot read LRC file: {exc}", lrc_path) from exc
    if text.startswith(UTF8_BOM):
        text = text[len(UTF8_BOM):]
    logger.debug("Loaded %d characters of lyrics from %s", len(text), lrc_path)
    return LyricPayload(text=text, lrc_path=lrc_path)
