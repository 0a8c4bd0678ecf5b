import asyncio
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

import structlog
from rich.console import Console
from rich.live import Live

from ccstat.blocks import find_active_block, identify_session_blocks
from ccstat.config import Preferences, effective_token_limit
from ccstat.context import find_context_session
from ccstat.git import get_git_branch
from ccstat.high_water_mark import (
    MonitorState,
    save_high_water_mark,
    update_high_water_mark,
)
from ccstat.loader import default_log_roots, load_context_sessions, load_usage_records
from ccstat.metrics import MetricsUpdater
from ccstat.models import ContextSession, StatusSnapshot, UsageRecord
from ccstat.projection import calculate_burn_rate, project_usage
from ccstat.render import render_status

logger = structlog.get_logger()


def build_snapshot(
    records: "Sequence[UsageRecord]",
    sessions: "Sequence[ContextSession]",
    git_branch: "str",
    cwd: "str",
    preferences: "Preferences",
    now: "datetime",
) -> "StatusSnapshot":
    """
    runs the windowing, projection and context resolution for one
    cycle. Pure, all inputs are gathered by the caller.
    """
    blocks = identify_session_blocks(
        records, preferences.default_session_duration_hours, now=now
    )
    active_block = find_active_block(blocks)

    burn_rate = None
    projection = None
    if active_block is not None:
        burn_rate = calculate_burn_rate(active_block)
        projection = project_usage(active_block, now=now)

    return StatusSnapshot(
        now=now,
        cwd=cwd,
        git_branch=git_branch,
        active_block=active_block,
        burn_rate=burn_rate,
        projection=projection,
        context_session=find_context_session(sessions, cwd),
    )


class Monitor:
    """
    Monitor drives the refresh loop. Every cycle reloads the usage
    logs from scratch, recomputes the session blocks and redraws the
    status block in place. A failing cycle is logged and the next
    one retries after the usual delay.
    """

    def __init__(
        self,
        high_water_mark_path: "Path",
        metrics_updater: "MetricsUpdater",
        console: "Console | None" = None,
        refresh_interval_ms: "int" = 1000,
        log_roots: "Callable[[], list[Path]]" = default_log_roots,
    ) -> "None":
        self._high_water_mark_path = high_water_mark_path
        self._metrics = metrics_updater
        self._console = console or Console()
        self._interval = refresh_interval_ms / 1000
        self._log_roots = log_roots
        self._stop_event: "asyncio.Event" = asyncio.Event()

    def stop(self) -> "None":
        """
        signals the refresh loop to stop after the current cycle.
        """
        self._stop_event.set()

    async def run(self, state: "MonitorState") -> "MonitorState":
        """
        runs the refresh loop until stop() is called and returns
        the last state.
        """
        with Live(console=self._console, auto_refresh=False) as live:
            while not self._stop_event.is_set():
                cycle_start = time.monotonic()

                try:
                    state, snapshot = await self.refresh(state)
                    token_limit = effective_token_limit(
                        state.preferences, state.high_water_mark
                    )
                    live.update(
                        render_status(snapshot, state.preferences, token_limit),
                        refresh=True,
                    )
                except Exception:
                    logger.exception("refresh_cycle_error")
                    self._metrics.inc_refresh_error()
                else:
                    self._metrics.set_last_refresh_success(time.time())

                self._metrics.observe_refresh_duration(time.monotonic() - cycle_start)

                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self._interval
                    )
                except TimeoutError:
                    pass

        return state

    async def refresh(
        self,
        state: "MonitorState",
    ) -> "tuple[MonitorState, StatusSnapshot]":
        """
        performs one reload-and-recompute cycle and returns the next
        state along with the snapshot to display.
        """
        now = datetime.now(timezone.utc)
        cwd = os.getcwd()
        roots = self._log_roots()

        # the sub-steps are read-only and independent of each other
        records, sessions, git_branch = await asyncio.gather(
            asyncio.to_thread(load_usage_records, roots, now),
            asyncio.to_thread(load_context_sessions, roots, now),
            get_git_branch(cwd),
        )

        snapshot = build_snapshot(
            records, sessions, git_branch, cwd, state.preferences, now
        )
        self._metrics.update_snapshot(snapshot)

        block = snapshot.active_block
        if block is not None:
            self._log_block_details(snapshot, state)
            state, changed = update_high_water_mark(state, block.token_counts.total)
            if changed:
                logger.debug("high_water_mark_raised", value=state.high_water_mark)
                save_high_water_mark(self._high_water_mark_path, state.high_water_mark)

        self._metrics.set_high_water_mark(state.high_water_mark)
        return state, snapshot

    def _log_block_details(
        self,
        snapshot: "StatusSnapshot",
        state: "MonitorState",
    ) -> "None":
        block = snapshot.active_block
        if block is None:
            return

        counts = block.token_counts
        logger.debug(
            "active_block",
            block_id=block.id,
            input_tokens=counts.input_tokens,
            output_tokens=counts.output_tokens,
            cache_creation_tokens=counts.cache_creation_tokens,
            cache_read_tokens=counts.cache_read_tokens,
            total_tokens=counts.total,
            entries=len(block.entries),
            token_limit=effective_token_limit(state.preferences, state.high_water_mark),
            projected_tokens=(
                snapshot.projection.total_tokens if snapshot.projection else None
            ),
        )

        rate = snapshot.burn_rate
        if rate is not None:
            logger.debug(
                "burn_rate",
                tokens_per_minute=rate.tokens_per_minute,
                tokens_per_minute_for_indicator=rate.tokens_per_minute_for_indicator,
                cost_per_hour=rate.cost_per_hour,
            )
