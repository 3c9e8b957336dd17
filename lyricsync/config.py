from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError
from .formats import SUPPORTED_EXTS


class LibrarySettings(BaseModel):
    include_extensions: List[str] = Field(default_factory=lambda: [".flac", ".mp3", ".m4a"])
    exclude_patterns: List[str] = Field(default_factory=list)
    recursive: bool = False

    @field_validator("include_extensions", mode="before")
    @classmethod
    def _normalize_exts(cls, values: List[str]) -> List[str]:
        normalized = []
        for value in values:
            ext = str(value).strip().lower()
            if not ext.startswith("."):
                ext = f".{ext}"
            if ext not in SUPPORTED_EXTS:
                raise ValueError(f"unsupported extension {ext!r}")
            normalized.append(ext)
        return normalized


class EmbedSettings(BaseModel):
    skip_existing: bool = False
    reduce_lrc: bool = False
    dry_run: bool = False
    mp3_language: str = "eng"

    @field_validator("mp3_language")
    @classmethod
    def _check_language(cls, value: str) -> str:
        if len(value) != 3 or not value.isascii() or not value.isalpha():
            raise ValueError("mp3_language must be a three letter ISO 639-2 code")
        return value.lower()


class RunnerSettings(BaseModel):
    worker_concurrency: int = Field(default=4, ge=1, le=64)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    warning_log: Optional[Path] = Path("lyricsync-warnings.log")

    @field_validator("warning_log", mode="before")
    @classmethod
    def _expand_log(cls, value: Optional[str | Path]) -> Optional[Path]:
        if value is None or value == "":
            return None
        return Path(value).expanduser()


class Settings(BaseModel):
    library: LibrarySettings = LibrarySettings()
    embed: EmbedSettings = EmbedSettings()
    runner: RunnerSettings = RunnerSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def load(cls, path: Path) -> "Settings":
        try:
            with path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh)
        except OSError as exc:
            raise ConfigError(f"Cannot read config: {exc}", path) from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML: {exc}", path) from exc
        try:
            return cls.model_validate(raw or {})
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}", path) from exc


def find_config(explicit_path: Optional[Path]) -> Optional[Path]:
    if explicit_path:
        return explicit_path
    cwd = Path.cwd()
    for candidate in (cwd / "config.yaml", cwd / "config.yml"):
        if candidate.exists():
            return candidate
    return None


def load_settings(explicit_path: Optional[Path] = None) -> Settings:
    path = find_config(explicit_path)
    if path is None:
        return Settings()
    return Settings.load(path)
