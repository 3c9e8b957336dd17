from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterator
from pathlib import Path

from .config import LibrarySettings
from .fs_utils import TEMP_PREFIX


class LibraryScanner:
    """Walks a directory and yields audio files that may have a sidecar LRC."""

    def __init__(self, settings: LibrarySettings) -> None:
        self.settings = settings
        self._exts = {ext.lower() for ext in self.settings.include_extensions}

    def iter_audio_files(self, root: Path, *, recursive: bool | None = None) -> Iterator[Path]:
        if recursive is None:
            recursive = self.settings.recursive
        if not root.exists() or not root.is_dir():
            return
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            directory = Path(dirpath)
            for name in sorted(filenames):
                file_path = directory / name
                if not file_path.is_file():
                    continue
                if not self._should_include(file_path):
                    continue
                yield file_path
            if not recursive:
                break

    def _should_include(self, path: Path) -> bool:
        if path.name.startswith(TEMP_PREFIX):
            return False
        if path.suffix.lower() not in self._exts:
            return False
        rel = str(path)
        for pattern in self.settings.exclude_patterns:
            if fnmatch.fnmatch(rel, pattern) or fnmatch.fnmatch(path.name, pattern):
                return False
        return True
