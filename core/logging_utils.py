from __future__ import annotations

import logging
import os
import sys
from typing import Optional


_TRUTHY = {"1", "true", "yes", "on"}
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_FORMAT_RANKED = "%(asctime)s %(levelname)s [rank %(rank)d] [%(name)s] %(message)s"


def _is_truthy(value: Optional[str]) -> bool:
    return value is not None and str(value).strip().lower() in _TRUTHY


def _parse_level(value, default_level: int) -> int:
    if value is None:
        return default_level
    if isinstance(value, int):
        return value
    text = str(value).strip().upper()
    if not text:
        return default_level
    if text.isdigit():
        return int(text)
    resolved = logging.getLevelName(text)
    return resolved if isinstance(resolved, int) else default_level


class RankFilter(logging.Filter):
    """Stamp every record with the MPI rank that emitted it."""

    def __init__(self, rank: int) -> None:
        super().__init__()
        self.rank = int(rank)

    def filter(self, record: logging.LogRecord) -> bool:
        record.rank = self.rank
        return True


def is_root_rank(reduction=None) -> bool:
    """
    Return True on rank 0 of the given reduction/communicator.

    Without an argument, consult mpi4py only if it is already imported so that
    serial runs and tests never initialize MPI as a side effect.
    """
    if reduction is not None:
        rank = getattr(reduction, "rank", None)
        if rank is not None:
            return int(rank) == 0
        if hasattr(reduction, "Get_rank"):
            return int(reduction.Get_rank()) == 0

    if "mpi4py.MPI" in sys.modules:
        from mpi4py import MPI

        return int(MPI.COMM_WORLD.Get_rank()) == 0

    return True


def get_log_level_from_env(default: str | int = "INFO") -> int:
    """
    Resolve log level from env (TWOP2C_LOG_LEVEL, or TWOP2C_DEBUG for DEBUG).
    """
    default_level = _parse_level(default, logging.INFO)
    env_level = os.environ.get("TWOP2C_LOG_LEVEL")
    if env_level:
        return _parse_level(env_level, default_level)
    if _is_truthy(os.environ.get("TWOP2C_DEBUG")):
        return logging.DEBUG
    return default_level


def _set_console_level(root: logging.Logger, level: int) -> None:
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler):
            continue
        handler.setLevel(level)


def setup_logging(rank: int, *, level: int, size: int = 1, quiet_nonroot: bool = True) -> None:
    """
    Configure root logging once.

    With more than one rank every record carries its rank; non-root console
    handlers are raised to WARNING unless ``quiet_nonroot`` is False, so
    per-vertex phase switches on other ranks only show up at DEBUG runs that
    opt in.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=_FORMAT_RANKED if size > 1 else _FORMAT)
        if size > 1:
            for handler in root.handlers:
                handler.addFilter(RankFilter(rank))
    root.setLevel(level)

    if quiet_nonroot and rank != 0:
        _set_console_level(root, max(level, logging.WARNING))
    else:
        _set_console_level(root, level)
