import asyncio
import enum
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

import structlog

from tokenblocks.aggregator import aggregate, filter_recent_blocks, get_active_block, local_now
from tokenblocks.config import DEFAULT_REFRESH_INTERVAL, DEFAULT_WINDOW_HOURS
from tokenblocks.gaps import fill_gaps
from tokenblocks.metrics import MonitorMetrics
from tokenblocks.models import Block, Projection, UsageRecord
from tokenblocks.projection import project
from tokenblocks.source.base import RecordSource

logger = structlog.get_logger()

# records older than this cannot belong to the active block
_LOOKBACK = timedelta(hours=24)


class MonitorState(enum.Enum):
    WAITING = "waiting"
    ACTIVE = "active"


@dataclass(frozen=True)
class Snapshot:
    """
    Snapshot is everything one refresh computed, handed to the
    renderer and then thrown away.
    """

    state: "MonitorState"
    now: "datetime"
    blocks: "list[Block]"
    active_block: "Block | None" = None
    projection: "Projection | None" = None


def take_snapshot(
    records: "list[UsageRecord]",
    window_hours: "int",
    now: "datetime",
) -> "Snapshot":
    """
    runs aggregation, gap filling and projection over a fresh set
    of records.
    """
    blocks = fill_gaps(aggregate(records, window_hours, now=now), window_hours)
    recent = filter_recent_blocks(blocks, 1, now=now)
    active = get_active_block(recent)

    if active is None:
        return Snapshot(state=MonitorState.WAITING, now=now, blocks=recent)

    return Snapshot(
        state=MonitorState.ACTIVE,
        now=now,
        blocks=recent,
        active_block=active,
        projection=project(active, now=now),
    )


class LiveMonitor:
    """
    LiveMonitor drives the live dashboard. On every tick it pulls
    the last day of records from its source, recomputes blocks and
    the projection from scratch and hands the result to the render
    callback. Nothing carries over between ticks.

    stop() is cooperative: a tick in progress always completes and
    renders before the loop exits.
    """

    def __init__(
        self,
        source: "RecordSource",
        render: "Callable[[Snapshot], None]",
        metrics: "MonitorMetrics | None" = None,
        window_hours: "int" = DEFAULT_WINDOW_HOURS,
        refresh_interval_seconds: "int" = DEFAULT_REFRESH_INTERVAL,
        clock: "Callable[[], datetime]" = local_now,
    ) -> "None":
        self._source = source
        self._render = render
        self._metrics = metrics
        self._window_hours = window_hours
        self._interval = refresh_interval_seconds
        self._clock = clock
        self._stop_event: "asyncio.Event" = asyncio.Event()

    def stop(self) -> "None":
        """
        signals the loop to stop after the current tick.
        """
        self._stop_event.set()

    async def close(self) -> "None":
        await self._source.close()

    async def run(self) -> "None":
        """
        runs the refresh loop until stop() is called.
        """
        logger.info(
            "live_monitor_started",
            source=self._source.name,
            window_hours=self._window_hours,
            interval=self._interval,
        )

        while not self._stop_event.is_set():
            await self.tick()

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass

        logger.info("live_monitor_stopped")

    async def tick(self) -> "Snapshot | None":
        """
        performs one refresh cycle. Failures are logged and counted,
        they never end the loop.
        """
        cycle_start = time.monotonic()
        now = self._clock()
        logger.debug("refresh_cycle_start", now=now.isoformat())

        try:
            records = await self._source.fetch_records(now - _LOOKBACK, now)
            snapshot = take_snapshot(list(records), self._window_hours, now)
            self._render(snapshot)
        except Exception:
            logger.exception("refresh_error", source=self._source.name)
            if self._metrics is not None:
                self._metrics.inc_refresh_error()
            return None

        if self._metrics is not None:
            self._metrics.update_blocks(snapshot.blocks)
            self._metrics.update_active(snapshot.active_block, snapshot.projection)
            self._metrics.observe_refresh_duration(time.monotonic() - cycle_start)
            self._metrics.set_last_refresh_success(time.time())

        logger.debug(
            "refresh_cycle_end",
            state=snapshot.state.value,
            block_count=len(snapshot.blocks),
        )
        return snapshot
