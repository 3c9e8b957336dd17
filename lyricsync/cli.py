from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .config import Settings, load_settings
from .embedder import LyricsEmbedder
from .errors import ConfigError
from .models import EmbedPolicy
from .runner import EmbedRunner
from .scanner import LibraryScanner
from .stats import DryRunRecorder, RunStats
from .tagging import TagReader, TagWriter

LOGO = r"""
██      ██    ██ ██████  ██  ██████     ███████ ██    ██ ███    ██  ██████
██       ██  ██  ██   ██ ██ ██          ██       ██  ██  ████   ██ ██
██        ████   ██████  ██ ██          ███████   ████   ██ ██  ██ ██
██         ██    ██   ██ ██ ██               ██    ██    ██  ██ ██ ██
███████    ██    ██   ██ ██  ██████     ███████    ██    ██   ████  ██████
"""


LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"

C_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",  # Cyan
    logging.INFO: "\033[37m",  # Light gray
    logging.WARNING: "\033[33m",  # Yellow
    logging.ERROR: "\033[31m",  # Red
    logging.CRITICAL: "\033[35m",  # Magenta
}

EXIT_USAGE = 2


class ShortPathFormatter(logging.Formatter):
    def __init__(self, fmt: str, roots: list[Path]) -> None:
        super().__init__(fmt)
        self.roots = [str(root) for root in roots if root]

    def _shorten(self, message: str) -> str:
        for root in self.roots:
            if not root:
                continue
            if not message:
                break
            message = message.replace(f"{root}/", "")
            message = message.replace(root, "")
        return message

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return self._shorten(message)


class ColorFormatter(ShortPathFormatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if not color:
            return message
        return f"{color}{message}{C_RESET}"


class WarningBufferHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.records: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
        except Exception:  # pragma: no cover
            msg = record.getMessage()
        self.records.append(msg)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lyricsync",
        description="Embed LRC lyrics into audio files (FLAC, MP3, M4A)",
    )
    parser.add_argument(
        "-d",
        "--directory",
        type=Path,
        required=True,
        help="Directory containing audio and LRC files",
    )
    parser.add_argument(
        "-s",
        "--skip",
        action="store_true",
        default=None,
        help="Skip files that already have embedded lyrics",
    )
    parser.add_argument(
        "-r",
        "--reduce",
        action="store_true",
        default=None,
        help="Delete LRC files after successful embedding",
    )
    parser.add_argument(
        "-R",
        "--recursive",
        action="store_true",
        default=None,
        help="Process subdirectories recursively",
    )
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        default=None,
        help="Report what would be embedded without modifying any file",
    )
    parser.add_argument(
        "--dry-run-output",
        type=Path,
        help="Record the planned outcome of each file to this file (JSON Lines); implies --dry-run",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        help="Number of files processed in parallel",
    )
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--log-level", default=None, help="Python logging level")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def configure_logging(
    level_name: str, roots: list[Path], warn_log_path: Optional[Path]
) -> WarningBufferHandler:
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    color_handler = logging.StreamHandler()
    color_handler.setFormatter(ColorFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(color_handler)

    warn_buffer = WarningBufferHandler()
    warn_buffer.setFormatter(ShortPathFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(warn_buffer)

    if warn_log_path is not None:
        file_handler = logging.FileHandler(warn_log_path, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.WARNING)
        file_handler.setFormatter(ShortPathFormatter(LOG_FORMAT, roots))
        root_logger.addHandler(file_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    return warn_buffer


def resolve_policy(args: argparse.Namespace, settings: Settings) -> EmbedPolicy:
    dry_run = args.dry_run if args.dry_run is not None else settings.embed.dry_run
    if args.dry_run_output is not None:
        dry_run = True
    return EmbedPolicy(
        skip_if_present=args.skip if args.skip is not None else settings.embed.skip_existing,
        dry_run=dry_run,
        delete_lrc_on_success=(
            args.reduce if args.reduce is not None else settings.embed.reduce_lrc
        ),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        print(f"lyricsync: {exc}", file=sys.stderr)
        return EXIT_USAGE

    directory: Path = args.directory.expanduser()
    if not directory.is_dir():
        print(f"lyricsync: not a directory: {directory}", file=sys.stderr)
        return EXIT_USAGE
    directory = directory.resolve()

    print(LOGO)
    warn_log_path = settings.logging.warning_log
    warn_buffer = configure_logging(
        args.log_level or settings.logging.level, [directory], warn_log_path
    )

    policy = resolve_policy(args, settings)
    recursive = args.recursive if args.recursive is not None else settings.library.recursive
    concurrency = args.workers or settings.runner.worker_concurrency
    recorder = DryRunRecorder(args.dry_run_output) if args.dry_run_output else None

    embedder = LyricsEmbedder(
        TagReader(),
        TagWriter(mp3_language=settings.embed.mp3_language),
        dry_run_recorder=recorder,
    )
    runner = EmbedRunner(
        embedder,
        LibraryScanner(settings.library),
        policy,
        concurrency=concurrency,
    )
    interrupted = False
    try:
        stats = runner.run_sync(directory, recursive=recursive)
    except KeyboardInterrupt:
        interrupted = True
        stats = runner.stats

    print_summary(stats, dry_run=policy.dry_run, interrupted=interrupted)
    if warn_buffer.records:
        print("\n\033[33mWarnings/Errors summary:\033[0m")
        for line in warn_buffer.records:
            print(f" - {line}")
        if warn_log_path is not None:
            print(f"\nFull warning log: {warn_log_path}")
    if interrupted:
        return 130
    return stats.exit_code


def print_summary(stats: RunStats, *, dry_run: bool = False, interrupted: bool = False) -> None:
    print()
    if interrupted:
        print("Interrupted: remaining files were not processed.")
    for line in stats.summary_lines(dry_run=dry_run):
        print(line)


def run() -> None:
    raise SystemExit(main())
