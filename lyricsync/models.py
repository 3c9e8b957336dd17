from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from .errors import ErrorKind, LyricSyncError
from .formats import AudioFormat, detect_format


class Presence(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    UNREADABLE = "unreadable"


class EmbedStatus(str, Enum):
    EMBEDDED = "embedded"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(str, Enum):
    UNSUPPORTED_FORMAT = "unsupported_format"
    ALREADY_HAS_LYRICS = "already_has_lyrics"
    NO_LRC_FILE = "no_lrc_file"


@dataclass(frozen=True, slots=True)
class EmbedPolicy:
    skip_if_present: bool = False
    dry_run: bool = False
    delete_lrc_on_success: bool = False


@dataclass(frozen=True, slots=True)
class LyricPayload:
    text: str
    lrc_path: Path


@dataclass(frozen=True, slots=True)
class TagState:
    presence: Presence
    text: Optional[str] = None
    container: Optional[str] = None
    error: Optional[LyricSyncError] = None

    @classmethod
    def present(cls, text: str, container: str) -> "TagState":
        return cls(Presence.PRESENT, text=text, container=container)

    @classmethod
    def absent(cls) -> "TagState":
        return cls(Presence.ABSENT)

    @classmethod
    def unreadable(cls, error: LyricSyncError) -> "TagState":
        return cls(Presence.UNREADABLE, error=error)

    @property
    def is_present(self) -> bool:
        return self.presence is Presence.PRESENT


@dataclass(slots=True)
class AudioFile:
    path: Path
    format: AudioFormat = AudioFormat.UNSUPPORTED
    # Filled in by the embedder the first time the tag state is needed.
    tag_state: Optional[TagState] = None

    @classmethod
    def from_path(cls, path: Path) -> "AudioFile":
        resolved = Path(path).expanduser().absolute()
        return cls(path=resolved, format=detect_format(resolved))

    @property
    def has_lyrics(self) -> Optional[bool]:
        if self.tag_state is None:
            return None
        return self.tag_state.is_present


@dataclass(frozen=True, slots=True)
class EmbedResult:
    path: Path
    status: EmbedStatus
    reason: Optional[SkipReason] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    lrc_path: Optional[Path] = None
    simulated: bool = False

    @classmethod
    def embedded(
        cls, path: Path, lrc_path: Optional[Path] = None, *, simulated: bool = False
    ) -> "EmbedResult":
        return cls(path, EmbedStatus.EMBEDDED, lrc_path=lrc_path, simulated=simulated)

    @classmethod
    def skipped(
        cls, path: Path, reason: SkipReason, lrc_path: Optional[Path] = None
    ) -> "EmbedResult":
        return cls(path, EmbedStatus.SKIPPED, reason=reason, lrc_path=lrc_path)

    @classmethod
    def failed(
        cls,
        path: Path,
        kind: ErrorKind,
        message: str,
        lrc_path: Optional[Path] = None,
        *,
        simulated: bool = False,
    ) -> "EmbedResult":
        return cls(
            path,
            EmbedStatus.FAILED,
            error_kind=kind,
            message=message,
            lrc_path=lrc_path,
            simulated=simulated,
        )

    @property
    def ok(self) -> bool:
        return self.status is not EmbedStatus.FAILED

    def to_record(self) -> Dict[str, object]:
        return {
            "path": str(self.path),
            "status": self.status.value,
            "reason": self.reason.value if self.reason else None,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
            "lrc_path": str(self.lrc_path) if self.lrc_path else None,
            "simulated": self.simulated,
        }
