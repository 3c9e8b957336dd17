from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from threading import Lock
from typing import Callable, Optional

from .embedder import LyricsEmbedder
from .errors import ErrorKind, LrcReadError
from .lrc import load_payload
from .models import AudioFile, EmbedPolicy, EmbedResult, EmbedStatus, SkipReason
from .scanner import LibraryScanner
from .stats import RunStats

logger = logging.getLogger(__name__)

ResultCallback = Callable[[EmbedResult], None]


class EmbedRunner:
    """Feeds scanned audio files to a pool of workers running the embedder.

    Workers pull paths from an ``asyncio.Queue`` and run each file in the
    default thread pool. Interrupting a run stops dispatching new files; the
    files already handed to a thread finish their atomic write.
    """

    def __init__(
        self,
        embedder: LyricsEmbedder,
        scanner: LibraryScanner,
        policy: EmbedPolicy,
        *,
        concurrency: int = 4,
        stats: Optional[RunStats] = None,
        on_result: Optional[ResultCallback] = None,
    ) -> None:
        self.embedder = embedder
        self.scanner = scanner
        self.policy = policy
        self.concurrency = max(1, concurrency)
        self.stats = stats or RunStats()
        self.on_result = on_result
        self._seen: set[Path] = set()
        self._seen_lock = Lock()

    def run_sync(self, root: Path, *, recursive: Optional[bool] = None) -> RunStats:
        return asyncio.run(self.run(root, recursive=recursive))

    async def run(self, root: Path, *, recursive: Optional[bool] = None) -> RunStats:
        logger.debug("Scanning %s (recursive=%s)", root, recursive)
        queue: asyncio.Queue[Path] = asyncio.Queue(maxsize=self.concurrency * 2)
        workers = self._start_workers(queue)
        try:
            for path in self.scanner.iter_audio_files(root, recursive=recursive):
                await queue.put(path)
            await queue.join()
        finally:
            await self._stop_workers(workers)
        return self.stats

    def _start_workers(self, queue: asyncio.Queue[Path]) -> list[asyncio.Task[None]]:
        return [
            asyncio.create_task(self._worker(i, queue)) for i in range(self.concurrency)
        ]

    async def _stop_workers(self, workers: list[asyncio.Task[None]]) -> None:
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(self, worker_id: int, queue: asyncio.Queue[Path]) -> None:
        loop = asyncio.get_running_loop()
        while True:
            path = await queue.get()
            try:
                await loop.run_in_executor(None, self.process_path, path)
            except Exception:  # pragma: no cover - logged and ignored
                logger.exception("Worker %s failed to process %s", worker_id, path)
            finally:
                queue.task_done()

    def process_path(self, path: Path) -> Optional[EmbedResult]:
        """Process one audio file; returns ``None`` if it was already handled this run."""
        audio_file = AudioFile.from_path(path)
        key = audio_file.path.resolve()
        with self._seen_lock:
            if key in self._seen:
                logger.debug("Already processed %s during this run", path)
                return None
            self._seen.add(key)
        try:
            payload = load_payload(audio_file.path)
        except LrcReadError as exc:
            result = EmbedResult.failed(audio_file.path, exc.kind, str(exc), exc.path)
        else:
            try:
                result = self.embedder.process(audio_file, payload, self.policy)
            except Exception as exc:
                logger.exception("Unexpected error while embedding %s", path)
                result = EmbedResult.failed(
                    audio_file.path,
                    ErrorKind.UNEXPECTED,
                    str(exc) or type(exc).__name__,
                    payload.lrc_path if payload else None,
                )
        self.stats.record(result)
        _log_result(result)
        if self.on_result:
            self.on_result(result)
        return result


def _log_result(result: EmbedResult) -> None:
    if result.status is EmbedStatus.EMBEDDED:
        prefix = "Would embed" if result.simulated else "Embedded"
        logger.info("%s: %s", prefix, result.path)
    elif result.status is EmbedStatus.SKIPPED:
        reason = result.reason.value if result.reason else "unknown"
        log = logger.debug if result.reason is SkipReason.NO_LRC_FILE else logger.info
        log("Skipped (%s): %s", reason, result.path)
    else:
        kind = result.error_kind.value if result.error_kind else "unknown"
        logger.warning("Failed (%s): %s: %s", kind, result.path, result.message)
