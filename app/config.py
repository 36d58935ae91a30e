"""
app/config.py

Environment-driven settings for the survey analysis service.

Values come from the process environment, with `.env` and `.env.local`
at the project root as fallbacks. Each settings group is read once and
cached; malformed numbers fall back to the default.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import TypeVar

_ALLOWED_LLM_ADAPTERS = {"openai", "mock"}
_ENV_FILES = (".env", ".env.local")

_Number = TypeVar("_Number", int, float)


def load_env_files() -> None:
    """
    Copy KEY=VALUE lines from the project env files into ``os.environ``.

    Variables already present in the process win; comments and lines
    without ``=`` are skipped.
    """

    root = Path(__file__).resolve().parents[1]
    for name in _ENV_FILES:
        path = root / name
        if not path.is_file():
            continue

        for entry in path.read_text(encoding="utf-8").splitlines():
            entry = entry.strip()
            if not entry or entry.startswith("#") or "=" not in entry:
                continue
            key, _, value = entry.partition("=")
            key = key.strip()
            if key and key not in os.environ:
                os.environ[key] = value.strip().strip("'\"")


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _env_number(name: str, default: _Number, cast: Callable[[str], _Number]) -> _Number:
    _load_env_once()
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


def _env_text(name: str) -> str | None:
    """
    Stripped value of *name*, or None when unset or blank.
    """

    _load_env_once()
    value = (os.getenv(name) or "").strip()
    return value or None


@dataclass(frozen=True)
class AnalysisSettings:
    """
    Runtime settings for the sequential classification queue.

    ``min_interval_seconds`` keeps outbound analyzer calls under a
    60-calls-per-minute quota.
    """

    min_interval_seconds: float = 1.1
    log_preview_chars: int = 60


@dataclass(frozen=True)
class LLMSettings:
    """
    Analyzer adapter selection and OpenAI client settings.
    """

    adapter: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: str | None = None
    base_url: str | None = None
    max_tokens: int = 1024


@dataclass(frozen=True)
class ExportSettings:
    """
    CSV export settings.
    """

    filename: str = "survey_analysis.csv"


@lru_cache(maxsize=1)
def get_analysis_settings() -> AnalysisSettings:
    """
    Return cached classification queue settings from environment variables.
    """

    return AnalysisSettings(
        min_interval_seconds=max(0.0, _env_number("ANALYSIS_MIN_INTERVAL_SECONDS", 1.1, float)),
        log_preview_chars=max(10, _env_number("ANALYSIS_LOG_PREVIEW_CHARS", 60, int)),
    )


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    """
    Return cached analyzer settings from environment variables.

    Raises RuntimeError if LLM_ADAPTER names an unknown adapter.
    """

    adapter = (_env_text("LLM_ADAPTER") or "openai").lower()
    if adapter not in _ALLOWED_LLM_ADAPTERS:
        raise RuntimeError(
            f"LLM_ADAPTER '{adapter}' is not valid. "
            f"Allowed values: {sorted(_ALLOWED_LLM_ADAPTERS)}."
        )
    return LLMSettings(
        adapter=adapter,
        model=_env_text("LLM_MODEL") or "gpt-4o-mini",
        api_key=_env_text("LLM_API_KEY") or _env_text("OPENAI_API_KEY"),
        base_url=_env_text("LLM_BASE_URL"),
        max_tokens=max(64, _env_number("LLM_MAX_TOKENS", 1024, int)),
    )


@lru_cache(maxsize=1)
def get_export_settings() -> ExportSettings:
    """
    Return cached CSV export settings.
    """

    return ExportSettings(
        filename=_env_text("EXPORT_FILENAME") or "survey_analysis.csv",
    )
