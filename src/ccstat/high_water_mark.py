from dataclasses import dataclass, replace
from pathlib import Path

import structlog

from ccstat.config import Preferences

logger = structlog.get_logger()

HIGH_WATER_MARK_FILE_NAME = ".claude_status_max_tokens"


def high_water_mark_path() -> "Path":
    return Path.home() / HIGH_WATER_MARK_FILE_NAME


def load_high_water_mark(path: "Path") -> "int":
    """
    reads the highest block token total seen so far. A missing
    or unparseable file counts as 0.
    """
    try:
        content = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return 0
    except OSError as exc:
        logger.warning("high_water_mark_read_failed", path=str(path), error=str(exc))
        return 0

    try:
        return max(0, int(content))
    except ValueError:
        logger.warning("high_water_mark_invalid", path=str(path), content=content)
        return 0


def save_high_water_mark(path: "Path", value: "int") -> "None":
    """
    overwrites the cache file. It only raises a display limit,
    so a failed write is logged and dropped.
    """
    try:
        path.write_text(str(value), encoding="utf-8")
    except OSError as exc:
        logger.warning("high_water_mark_write_failed", path=str(path), error=str(exc))


@dataclass(frozen=True)
class MonitorState:
    """
    MonitorState is the mutable-over-time state of the refresh loop.
    Each cycle receives the current state and returns the next one.
    """

    preferences: "Preferences"
    high_water_mark: "int" = 0


def update_high_water_mark(
    state: "MonitorState",
    block_total: "int",
) -> "tuple[MonitorState, bool]":
    """
    returns the state with the high-water mark raised to block_total
    if it is higher, and whether anything changed.
    """
    if block_total <= state.high_water_mark:
        return state, False
    return replace(state, high_water_mark=block_total), True
