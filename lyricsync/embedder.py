from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from .errors import ErrorKind, WriteError
from .formats import AudioFormat
from .fs_utils import mark_failed
from .models import (
    AudioFile,
    EmbedPolicy,
    EmbedResult,
    LyricPayload,
    Presence,
    SkipReason,
    TagState,
)
from .stats import DryRunRecorder
from .tagging import TagReader, TagWriter, predicted_write_kind

logger = logging.getLogger(__name__)


class LyricsEmbedder:
    """Embeds one lyric payload into one audio file.

    ``process`` is the only entry point. It never raises for per-file
    problems: every outcome is returned as an :class:`EmbedResult`, so one
    broken file cannot stop a run. Distinct files may be processed from
    several threads at once; the embedder itself holds no per-file state.
    """

    def __init__(
        self,
        reader: Optional[TagReader] = None,
        writer: Optional[TagWriter] = None,
        *,
        dry_run_recorder: Optional[DryRunRecorder] = None,
    ) -> None:
        self.reader = reader or TagReader()
        self.writer = writer or TagWriter()
        self.dry_run_recorder = dry_run_recorder

    def process(
        self,
        audio: Union[AudioFile, Path],
        payload: Optional[LyricPayload],
        policy: EmbedPolicy,
    ) -> EmbedResult:
        audio_file = audio if isinstance(audio, AudioFile) else AudioFile.from_path(audio)
        path = audio_file.path
        lrc_path = payload.lrc_path if payload else None

        if audio_file.format is AudioFormat.UNSUPPORTED:
            logger.debug("Skipping unsupported extension %s", path)
            return EmbedResult.skipped(path, SkipReason.UNSUPPORTED_FORMAT, lrc_path)

        if payload is None:
            return EmbedResult.skipped(path, SkipReason.NO_LRC_FILE)

        state: Optional[TagState] = None
        if policy.skip_if_present or policy.dry_run:
            state = self._tag_state(audio_file)
            if state.presence is Presence.UNREADABLE:
                error = state.error
                kind = error.kind if error is not None else ErrorKind.TAG_READ
                if error is not None and not policy.skip_if_present:
                    # Without the skip check a real run reaches the writer instead.
                    kind = predicted_write_kind(error)
                result = EmbedResult.failed(
                    path,
                    kind,
                    str(error) if error is not None else "Unreadable metadata",
                    lrc_path,
                    simulated=policy.dry_run,
                )
                self._record_preview(policy, result, audio_file, state)
                return result

        if policy.skip_if_present and state is not None and state.is_present:
            logger.debug("%s already carries lyrics in %s", path, state.container)
            result = EmbedResult.skipped(path, SkipReason.ALREADY_HAS_LYRICS, lrc_path)
            self._record_preview(policy, result, audio_file, state)
            return result

        if policy.dry_run:
            result = EmbedResult.embedded(path, lrc_path, simulated=True)
            self._record_preview(policy, result, audio_file, state)
            return result

        try:
            self.writer.write_lyrics(path, payload.text, audio_file.format)
        except WriteError as exc:
            logger.debug("Write failed for %s: %s", path, exc)
            self._mark_lrc_failed(payload.lrc_path)
            return EmbedResult.failed(path, exc.kind, str(exc), lrc_path)

        audio_file.tag_state = TagState.present(
            payload.text, self.writer.strategies[audio_file.format].container
        )
        if policy.delete_lrc_on_success:
            self._delete_lrc(payload.lrc_path)
        return EmbedResult.embedded(path, lrc_path)

    def _tag_state(self, audio_file: AudioFile) -> TagState:
        if audio_file.tag_state is None:
            audio_file.tag_state = self.reader.read_lyrics(audio_file.path, audio_file.format)
        return audio_file.tag_state

    def _record_preview(
        self,
        policy: EmbedPolicy,
        result: EmbedResult,
        audio_file: AudioFile,
        state: Optional[TagState],
    ) -> None:
        if not policy.dry_run or self.dry_run_recorder is None:
            return
        self.dry_run_recorder.record(result, audio_file.format, state)

    @staticmethod
    def _mark_lrc_failed(lrc_path: Path) -> None:
        try:
            target = mark_failed(lrc_path)
        except OSError as exc:
            logger.warning("Could not rename failed LRC file %s: %s", lrc_path, exc)
            return
        logger.debug("Renamed %s to %s", lrc_path, target.name)

    @staticmethod
    def _delete_lrc(lrc_path: Path) -> None:
        try:
            lrc_path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Could not delete LRC file %s: %s", lrc_path, exc)
            return
        logger.debug("Deleted %s", lrc_path)
