"""Utility functions for cohort-biomass runs.

General-purpose helpers: logging setup, hashing, timing.
"""

from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from typing import Generator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure root logging for scripts (no-op if handlers already exist)."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


def config_hash(yaml_text: str) -> str:
    """SHA-256 of a YAML config string (for output tagging)."""
    return hashlib.sha256(yaml_text.encode('utf-8')).hexdigest()


@contextmanager
def timer(label: str = "") -> Generator[None, None, None]:
    """Simple context-manager timer. Logs elapsed time on exit."""
    start = time.perf_counter()
    yield
    elapsed = time.perf_counter() - start
    logger.info("[%s] %.3fs", label or "elapsed", elapsed)
