from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional


class _ThirdPartyNoiseFilter(logging.Filter):
    """
    Keep taskflow logs at the configured level, but only let other
    libraries (uvicorn access lines, sqlalchemy, passlib) through at WARNING+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "taskflow" or record.name.startswith("taskflow."):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(level: str | int = "INFO", log_file: Optional[str | Path] = None) -> None:
    """
    Configure root logging with a stderr handler and, when ``log_file`` is
    given, a file handler receiving the same records.

    Call this once at startup, before the first request is served.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setFormatter(fmt)
    ch.addFilter(_ThirdPartyNoiseFilter())
    root.addHandler(ch)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_path), encoding="utf-8")
        fh.setFormatter(fmt)
        fh.addFilter(_ThirdPartyNoiseFilter())
        root.addHandler(fh)

    logging.captureWarnings(True)
