"""Logging utilities for Consensus-Refinery.

Provides a run log file for the CLI and provenance records: one YAML
document per clustering run and an appended JSON line per command.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Tuple, Union

import numpy as np
import yaml

PathLike = Union[str, Path]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_timestamped_log_path(log_path: PathLike) -> Path:
    """Insert a timestamp before the suffix.

    Example: run.log -> run_20260105_080530.log
    """
    log_path = Path(log_path)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return log_path.with_name(f"{log_path.stem}_{stamp}{log_path.suffix or '.log'}")


def get_logger(
    name: str,
    log_path: PathLike,
    level: int = logging.INFO,
    timestamped: bool = True,
) -> Tuple[logging.Logger, Path]:
    """Attach a file handler to the named logger.

    Handlers previously added by this function are replaced, so repeated
    CLI invocations in one process do not write twice. Records still
    propagate to the console handlers of the root logger.

    Parameters
    ----------
    name : str
        Logger name (usually "consensus_refinery")
    log_path : PathLike
        Log file; a timestamp is added unless ``timestamped`` is False
    level : int
        Level of the file handler
    timestamped : bool
        Keep earlier logs by writing to a new timestamped file

    Returns
    -------
    Tuple[logging.Logger, Path]
        Logger and the file actually written
    """
    path = get_timestamped_log_path(log_path) if timestamped else Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    for handler in [h for h in logger.handlers if getattr(h, "_run_log", False)]:
        logger.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(path, mode="a" if timestamped else "w", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._run_log = True
    logger.addHandler(handler)
    if logger.level == logging.NOTSET or logger.level > level:
        logger.setLevel(level)
    return logger, path


def to_serializable(value: Any) -> Any:
    """Convert numpy scalars/arrays (nested in dicts and lists) to Python types."""
    if isinstance(value, dict):
        return {str(k): to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_serializable(v) for v in value]
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


def log_json(log_path: PathLike, record: dict[str, Any]) -> None:
    """Append one record as a JSON line."""
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(to_serializable(record), default=str) + "\n")


def write_yaml(path: PathLike, record: dict[str, Any]) -> Path:
    """Write a single YAML document, replacing any existing file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(to_serializable(record), handle, sort_keys=False)
    return path
