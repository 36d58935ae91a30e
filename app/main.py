"""
app/main.py

FastAPI entry point: environment checks, logging and router wiring.
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from app.config import get_llm_settings, load_env_files

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _validate_env() -> None:
    """
    Check analyzer and pacing variables before the app starts.

    Every problem is collected first and reported in a single RuntimeError.
    No API key is needed when LLM_ADAPTER=mock.
    """

    load_env_files()
    problems: list[str] = []

    adapter = os.getenv("LLM_ADAPTER", "openai").strip().lower()
    if adapter not in {"openai", "mock"}:
        problems.append(f"LLM_ADAPTER='{adapter}' must be one of: mock, openai.")

    if adapter != "mock":
        keys = (os.getenv("LLM_API_KEY", ""), os.getenv("OPENAI_API_KEY", ""))
        if not any(key.strip() for key in keys):
            problems.append("Set LLM_API_KEY or OPENAI_API_KEY to a non-empty value.")

    interval = os.getenv("ANALYSIS_MIN_INTERVAL_SECONDS")
    if interval is not None:
        try:
            valid = float(interval) >= 0
        except ValueError:
            valid = False
        if not valid:
            problems.append(
                f"ANALYSIS_MIN_INTERVAL_SECONDS='{interval}' must be a non-negative number."
            )

    if problems:
        raise RuntimeError(
            "Invalid environment for survey-insights:\n"
            + "\n".join(f"  - {problem}" for problem in problems)
        )


def _configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=_LOG_FORMAT)


def create_app() -> FastAPI:
    _validate_env()
    _configure_logging()

    application = FastAPI(title="Survey Insights API", version="1.0.0")

    from app.api.routers import insights_router, workspaces_router

    application.include_router(workspaces_router)
    application.include_router(insights_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok", "analyzer": get_llm_settings().adapter}

    return application


app = create_app()
