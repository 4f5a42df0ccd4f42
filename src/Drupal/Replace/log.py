"""
Logging for the replacer.

Console output on stderr at LOG_LEVEL (from the environment or .env, default
INFO) and, if a path is given, a log file that keeps the audit trail of a run:
which field and which table was done when. Keep that file; it is what tells you
how far an interrupted run got. stdout only carries the report.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def log_level() -> str:
    load_dotenv()
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    if level not in VALID_LOG_LEVELS:
        level = "INFO"
    return level


def init_log(*, path: Optional[str] = None, level: Optional[str] = None) -> None:
    """
    Configures the "Drupal" logger. Safe to call more than once; old handlers are
    removed first. The file handler always logs at INFO or below so the audit lines
    end up in the file even if the console is quieter.
    """
    level = level or log_level()
    root = logging.getLogger("Drupal")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()  # stderr; stdout is for the report
    console.setLevel(getattr(logging, level, logging.INFO))
    console.setFormatter(logging.Formatter(FORMAT))
    root.addHandler(console)
    file_level = min(console.level, logging.INFO)

    if path is not None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(FORMAT))
        root.addHandler(fh)

    root.setLevel(file_level if path is not None else console.level)
