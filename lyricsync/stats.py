from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import Optional

from .formats import AudioFormat
from .models import EmbedResult, EmbedStatus, TagState


@dataclass
class RunStats:
    """Aggregates per-file results for one run. Safe to update from worker threads."""

    total_audio_files: int = 0
    embedded: int = 0
    skipped: int = 0
    failed_files: list[EmbedResult] = field(default_factory=list)
    skip_reasons: Counter = field(default_factory=Counter)
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def record(self, result: EmbedResult) -> None:
        with self._lock:
            self.total_audio_files += 1
            if result.status is EmbedStatus.EMBEDDED:
                self.embedded += 1
            elif result.status is EmbedStatus.SKIPPED:
                self.skipped += 1
                if result.reason is not None:
                    self.skip_reasons[result.reason.value] += 1
            else:
                self.failed_files.append(result)

    @property
    def failed(self) -> int:
        return len(self.failed_files)

    @property
    def success_rate(self) -> float:
        if not self.total_audio_files:
            return 0.0
        return self.embedded / self.total_audio_files * 100.0

    @property
    def exit_code(self) -> int:
        return 1 if self.failed_files else 0

    def summary_lines(self, *, dry_run: bool = False) -> list[str]:
        verb = "Would embed" if dry_run else "Embedded"
        lines = [
            "Summary:",
            f"Total audio files: {self.total_audio_files}",
            f"{verb} lyrics in {self.embedded} audio files",
            f"Skipped: {self.skipped}",
            f"Failed: {self.failed}",
            f"Success rate: {self.success_rate:.2f}%",
        ]
        if self.skip_reasons:
            reasons = ", ".join(
                f"{reason}={count}" for reason, count in sorted(self.skip_reasons.items())
            )
            lines.append(f"Skip reasons: {reasons}")
        if self.failed_files:
            lines.append("")
            lines.append("Failed to embed LRC for the following files:")
            for result in sorted(self.failed_files, key=lambda r: str(r.path)):
                kind = result.error_kind.value if result.error_kind else "unknown"
                lines.append(f"  {result.path} [{kind}]")
        return lines


class DryRunRecorder:
    """Writes the planned outcome of each previewed file as JSON Lines."""

    def __init__(self, output_path: Path) -> None:
        self.output_path = output_path
        self._lock = Lock()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text("", encoding="utf-8")

    def record(
        self,
        result: EmbedResult,
        fmt: AudioFormat,
        state: Optional[TagState] = None,
    ) -> None:
        payload = result.to_record()
        payload["format"] = fmt.value
        if state is not None:
            payload["existing_lyrics"] = state.presence.value
            payload["existing_container"] = state.container
        line = json.dumps(payload, sort_keys=True, ensure_ascii=False)
        with self._lock:
            with self.output_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
