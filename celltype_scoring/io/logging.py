"""Logging utilities for celltype-scoring.

File logging for CLI runs and the YAML run summary written next to the
result tables.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Tuple, Union

import yaml

PathLike = Union[str, Path]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_file_logging(
    log_path: PathLike,
    level: int = logging.INFO,
    logger_name: str = "celltype_scoring",
) -> Tuple[logging.Logger, Path]:
    """Send a logger's records to a timestamped file.

    annotate.log becomes annotate_20251209_080530.log so repeated runs
    never overwrite each other. File handlers from an earlier call are
    replaced.

    Returns:
        Tuple of (logger, actual log path)
    """
    log_path = Path(log_path)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    actual_path = log_path.parent / f"{log_path.stem}_{timestamp}{log_path.suffix or '.log'}"
    actual_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in [h for h in logger.handlers if isinstance(h, logging.FileHandler)]:
        handler.close()
        logger.removeHandler(handler)

    handler = logging.FileHandler(actual_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    return logger, actual_path


def write_run_summary(
    path: PathLike,
    summary: Mapping[str, Any],
    logger: logging.Logger | None = None,
) -> Path:
    """Write an annotation run summary as a single YAML document.

    An existing file at path is replaced.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dict(summary), handle, sort_keys=False)
    if logger is not None:
        logger.info("Wrote run summary to %s", path)
    return path
