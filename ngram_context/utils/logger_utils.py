# logger_utils.py - for logging messages and performance metrics, timestamps etc

import logging
import os
import time
from typing import Optional

# Root logger of the package, modules use logging.getLogger(__name__) below it
LOGGER_NAME = "ngram_context"
_log = logging.getLogger(LOGGER_NAME)
_log.addHandler(logging.NullHandler())

# NGRAM_CONTEXT_ENV=development turns on noisy per-item diagnostics
ENV_VAR = "NGRAM_CONTEXT_ENV"

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)-7s | %(name)s | %(message)s"


def is_development() -> bool:
    return os.environ.get(ENV_VAR, "").lower() in ("development", "dev")


def configure_logging(level: int = logging.INFO, path: Optional[str] = None) -> logging.Logger:
    """
    Attach a console handler (and a file handler when path is given) to the package logger.
    Calling it twice does not duplicate handlers.
    """
    _log.setLevel(level)
    formatter = logging.Formatter(DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    if not any(getattr(h, "_ngram_context", False) for h in _log.handlers):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        console._ngram_context = True  # type: ignore[attr-defined]
        _log.addHandler(console)
    if path:
        dirname = os.path.dirname(path)
        if dirname:
            os.makedirs(dirname, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setFormatter(formatter)
        fh._ngram_context = True  # type: ignore[attr-defined]
        _log.addHandler(fh)
    return _log


class Log:
    """Lightweight facade for writing messages and tracking metrics."""

    @staticmethod
    def write(msg: str, level: int = logging.INFO) -> None:
        """Log a bracket-tagged message, e.g. "[NgramModel] learned 12 n-grams"."""
        _log.log(level, msg)

    @staticmethod
    def metric(tag: str, value, unit: str = "") -> None:
        """
        Record a metric (like timing, counts, or performance stats).
        Example: "vector_generation done: 0.123s"
        """
        _log.info("%s: %s%s", tag, value, unit)

    @staticmethod
    def time_block(label: str) -> "_Timer":
        """
        Helper for measuring execution time of a code block.
        To use:
            with Log.time_block("vector_generation"):
                do_some_work()
        """
        return _Timer(label)


class _Timer:
    """Context manager used internally to measure time for a code block."""

    def __init__(self, label: str):
        self.label = label
        self.start = time.perf_counter()
        self.elapsed = 0.0

    def __enter__(self) -> "_Timer":
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.elapsed = round(time.perf_counter() - self.start, 3)
        Log.metric(f"{self.label} done", self.elapsed, "s")
