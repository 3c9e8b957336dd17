from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from mutagen import MutagenError
from mutagen.flac import FLAC
from mutagen.id3 import ID3, ID3NoHeaderError, USLT
from mutagen.mp4 import MP4

from .errors import (
    CorruptContainerError,
    ErrorKind,
    IoWriteError,
    LyricSyncError,
    PermissionWriteError,
    TagReadError,
    UnsupportedFormatError,
    WriteError,
)
from .formats import AudioFormat, detect_format
from .fs_utils import atomic_rewrite, is_writable
from .models import TagState

logger = logging.getLogger(__name__)

VORBIS_LYRICS_KEY = "LYRICS"
VORBIS_UNSYNCED_KEY = "UNSYNCEDLYRICS"
ID3_LYRICS_FRAME = "USLT"
ID3_SYNCED_FRAME = "SYLT"
MP4_LYRICS_ATOM = "\xa9lyr"
DEFAULT_LANGUAGE = "eng"


class TagReader:
    """Reads the lyric field of a file without modifying it."""

    def read_lyrics(self, path: Path, fmt: Optional[AudioFormat] = None) -> TagState:
        fmt = fmt or detect_format(path)
        handlers: Dict[AudioFormat, Callable[[Path], TagState]] = {
            AudioFormat.FLAC: self._read_flac,
            AudioFormat.MP3: self._read_mp3,
            AudioFormat.M4A: self._read_mp4,
        }
        handler = handlers.get(fmt)
        if handler is None:
            return TagState.unreadable(
                UnsupportedFormatError(f"No tag reader for {path.suffix or 'file'}", path)
            )
        try:
            return handler(path)
        except MutagenError as exc:
            logger.debug("Failed to parse %s metadata in %s: %s", fmt.value, path, exc)
            error = TagReadError(f"Cannot parse {fmt.value} metadata: {exc}", path)
            error.__cause__ = exc
            return TagState.unreadable(error)
        except OSError as exc:
            error = TagReadError(f"Cannot open file: {exc}", path)
            error.__cause__ = exc
            return TagState.unreadable(error)

    def _read_flac(self, path: Path) -> TagState:
        audio = FLAC(path)
        if audio.tags is None:
            return TagState.absent()
        for key in (VORBIS_LYRICS_KEY, VORBIS_UNSYNCED_KEY):
            text = _first_text(audio.tags.get(key))
            if text:
                return TagState.present(text, key)
        return TagState.absent()

    def _read_mp3(self, path: Path) -> TagState:
        try:
            tags = ID3(path)
        except ID3NoHeaderError:
            return TagState.absent()
        frame = _primary_lyrics_frame(tags)
        if frame is not None:
            return TagState.present(frame.text, ID3_LYRICS_FRAME)
        for frame in tags.getall(ID3_SYNCED_FRAME):
            text = "\n".join(line for line, _time in frame.text)
            if text:
                return TagState.present(text, ID3_SYNCED_FRAME)
        return TagState.absent()

    def _read_mp4(self, path: Path) -> TagState:
        audio = MP4(path)
        if audio.tags is None:
            return TagState.absent()
        text = _first_text(audio.tags.get(MP4_LYRICS_ATOM))
        if text:
            return TagState.present(text, MP4_LYRICS_ATOM)
        return TagState.absent()


class LyricsWriter:
    """Base strategy: edits a scratch copy and swaps it in atomically."""

    format: AudioFormat = AudioFormat.UNSUPPORTED
    container = ""

    def write_lyrics(self, path: Path, text: str) -> None:
        if not path.exists():
            raise IoWriteError("File disappeared before writing", path)
        # Symlinked libraries: rewrite the file the link points to.
        target = path.resolve()
        if not is_writable(target):
            raise PermissionWriteError("File is not writable", path)
        try:
            with atomic_rewrite(target) as scratch:
                self._write(scratch, text)
        except WriteError:
            raise
        except PermissionError as exc:
            raise PermissionWriteError(f"Permission denied: {exc}", path) from exc
        except OSError as exc:
            raise IoWriteError(f"I/O error while writing: {exc}", path) from exc
        except MutagenError as exc:
            raise _classify_mutagen_error(exc, path) from exc
        logger.debug("Wrote %s lyrics to %s", self.container, path)

    def _write(self, path: Path, text: str) -> None:
        raise NotImplementedError


class FlacLyricsWriter(LyricsWriter):
    format = AudioFormat.FLAC
    container = VORBIS_LYRICS_KEY

    def _write(self, path: Path, text: str) -> None:
        audio = FLAC(path)
        if audio.tags is None:
            audio.add_tags()
        audio.tags[VORBIS_LYRICS_KEY] = [text]
        audio.save()


class Mp3LyricsWriter(LyricsWriter):
    format = AudioFormat.MP3
    container = ID3_LYRICS_FRAME

    def __init__(self, language: str = DEFAULT_LANGUAGE) -> None:
        self.language = language

    def _write(self, path: Path, text: str) -> None:
        try:
            tags = ID3(path)
        except ID3NoHeaderError:
            tags = ID3()
        existing = _primary_lyrics_frame(tags)
        if existing is None:
            existing = next(iter(tags.getall(ID3_LYRICS_FRAME)), None)
        lang = existing.lang if existing is not None else self.language
        desc = existing.desc if existing is not None else ""
        tags.delall(ID3_LYRICS_FRAME)
        tags.add(USLT(encoding=3, lang=lang, desc=desc, text=text))
        # ID3v2.3 tags stay 2.3 so players that only read 2.3 keep working.
        if tags.version[:2] == (2, 3):
            tags.update_to_v23()
            tags.save(path, v2_version=3)
        else:
            tags.save(path)


class Mp4LyricsWriter(LyricsWriter):
    format = AudioFormat.M4A
    container = MP4_LYRICS_ATOM

    def _write(self, path: Path, text: str) -> None:
        audio = MP4(path)
        if audio.tags is None:
            audio.add_tags()
        audio.tags[MP4_LYRICS_ATOM] = [text]
        audio.save()


class TagWriter:
    """Dispatches lyric writes to the strategy registered for each format."""

    def __init__(self, mp3_language: str = DEFAULT_LANGUAGE) -> None:
        self.strategies: Dict[AudioFormat, LyricsWriter] = {
            AudioFormat.FLAC: FlacLyricsWriter(),
            AudioFormat.MP3: Mp3LyricsWriter(language=mp3_language),
            AudioFormat.M4A: Mp4LyricsWriter(),
        }

    def write_lyrics(
        self, path: Path, text: str, fmt: Optional[AudioFormat] = None
    ) -> None:
        fmt = fmt or detect_format(path)
        strategy = self.strategies.get(fmt)
        if strategy is None:
            raise UnsupportedFormatError(
                f"No tag writer for {path.suffix or 'file'}", path
            )
        strategy.write_lyrics(path, text)


def _primary_lyrics_frame(tags: ID3) -> Optional[USLT]:
    """First ``USLT`` frame with text, in mutagen's frame order.

    mutagen orders frames by hash key (``USLT:<desc>:<lang>``), not by their
    position in the file. The reader reports this frame and the writer reuses
    its language and description, so both always agree.
    """
    for frame in tags.getall(ID3_LYRICS_FRAME):
        if frame.text:
            return frame
    return None


def predicted_write_kind(error: LyricSyncError) -> ErrorKind:
    """The error kind a write would report for a file whose tags failed to read."""
    cause = error.__cause__
    if isinstance(error, TagReadError) and isinstance(cause, MutagenError):
        return _classify_mutagen_error(cause, error.path).kind
    if isinstance(cause, PermissionError):
        return ErrorKind.PERMISSION
    if isinstance(cause, OSError):
        return ErrorKind.IO
    return error.kind


def _first_text(values: Optional[Iterable[object]]) -> Optional[str]:
    if not values:
        return None
    first = next(iter(values))
    if isinstance(first, bytes):
        return first.decode("utf-8", errors="replace")
    return str(first)


def _classify_mutagen_error(exc: MutagenError, path: Path) -> WriteError:
    cause = _find_os_error(exc)
    if isinstance(cause, PermissionError):
        return PermissionWriteError(f"Permission denied: {cause}", path)
    if cause is not None:
        return IoWriteError(f"I/O error while writing: {cause}", path)
    return CorruptContainerError(f"Container cannot be edited safely: {exc}", path)


def _find_os_error(exc: BaseException) -> Optional[OSError]:
    # mutagen wraps file errors as MutagenError(original) or chains them.
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, OSError):
            return current
        if current.args and isinstance(current.args[0], OSError):
            return current.args[0]
        current = current.__cause__ or current.__context__
    return None
