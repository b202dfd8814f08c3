"""Unified logging utilities for orderrecon.

This module centralizes logging setup and timing helpers so every command can emit:
  - system-readable logs (system.log)
  - user-readable logs (user_readable.log)
  - an append-only event log table (``Log`` sheet) with one line per
    completed operation

Design constraints:
  - No imports of pipeline modules to avoid circular dependencies.
  - Graceful degradation: if file handlers fail, keep console logging.
"""
from __future__ import annotations

import csv
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

from .common.config_validator import AppConfig


SYSTEM_FMT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
HUMAN_FMT = "%(message)s"

USER_LOGGER_NAME = "orderrecon.user"
EVENT_LOG_HEADERS = ["Timestamp", "Source", "Message", "Count"]


def _ensure_logs_dir(config: AppConfig) -> Path:
    logs_dir = Path(config.paths.logs_dir).expanduser().resolve()
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def _safe_add_file_handler(logger: logging.Logger, path: Path, fmt: str, level: int) -> None:
    try:
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(fmt))
        logger.addHandler(fh)
    except OSError as exc:  # pragma: no cover - FS issues
        logger.warning("[WARNING] Failed to attach file handler %s (%s)", str(path), exc)


def get_logger(name: str, config: AppConfig) -> logging.Logger:
    """Return a system logger with console + file handlers.

    - File: system.log (machine-friendly format)
    - Console: same format
    - Level: from ``logging.level`` (INFO by default)
    """
    logs_dir = _ensure_logs_dir(config)
    level = getattr(logging, config.logging.level, logging.INFO)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    # Reset handlers to avoid duplication across repeated initializations
    logger.handlers = []

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(SYSTEM_FMT))
    logger.addHandler(sh)

    _safe_add_file_handler(logger, logs_dir / "system.log", SYSTEM_FMT, level)
    return logger


def get_user_logger(config: AppConfig) -> logging.Logger:
    """Return a user-friendly logger that writes to user_readable.log and console.

    It does not propagate, so messages are not repeated by the system logger.
    """
    logs_dir = _ensure_logs_dir(config)
    logger = logging.getLogger(USER_LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.handlers = []
    logger.propagate = False

    sh = logging.StreamHandler()
    sh.setLevel(logging.INFO)
    sh.setFormatter(logging.Formatter(HUMAN_FMT))
    logger.addHandler(sh)

    _safe_add_file_handler(logger, logs_dir / "user_readable.log", HUMAN_FMT, logging.INFO)
    return logger


def start_phase_timer(phase_name: str) -> float:
    """Start a timer for a given command/phase and return the perf counter."""
    return time.perf_counter()


def end_phase_timer(phase_name: str, start_time: float, timing_dict: Dict[str, float], user_logger: logging.Logger) -> float:
    """End timer, record to ``timing_dict`` and log to user logger."""
    elapsed = time.perf_counter() - float(start_time)
    timing_dict[phase_name] = float(elapsed)
    user_logger.info(f"{phase_name} finished in {elapsed:.2f} seconds")
    return elapsed


def log_system_event(logger: logging.Logger, message: str):
    logger.info("[SYSTEM] %s", message)


def log_error(logger: logging.Logger, message: str):
    logger.error("[ERROR] %s", message)


class EventLog:
    """Append-only progress sink; one CSV row per event, never read back by the build."""

    def __init__(self, path: str | Path, now: Optional[Callable[[], datetime]] = None) -> None:
        self.path = Path(path)
        self._now = now or (lambda: datetime.now(timezone.utc))

    def append(self, source: str, message: str, count: Optional[int] = None) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        is_new = not self.path.exists() or self.path.stat().st_size == 0
        with self.path.open("a", encoding="utf-8", newline="") as fh:
            writer = csv.writer(fh)
            if is_new:
                writer.writerow(EVENT_LOG_HEADERS)
            writer.writerow([self._now().isoformat(), source, message, "" if count is None else int(count)])


def get_event_log(config: AppConfig) -> EventLog:
    return EventLog(Path(config.paths.workbook_dir) / f"{config.sheets.event_log}.csv")
