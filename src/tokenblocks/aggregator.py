from datetime import datetime, time, timedelta, timezone
from typing import Iterable

import structlog

from tokenblocks.config import DEFAULT_WINDOW_HOURS
from tokenblocks.models import Block, UsageRecord

logger = structlog.get_logger()

# how recent the last record must be for the current window
# to be opened before its first record arrives
RECENT_ACTIVITY_THRESHOLD = timedelta(hours=1)


def local_now() -> "datetime":
    return datetime.now().astimezone()


def _localize(wall: "datetime", reference: "datetime") -> "datetime":
    """
    attaches the UTC offset in force at the naive wall-clock time
    wall, in the timezone of reference.

    Fixed offsets stamped by astimezone() stand for the local zone,
    so they are resolved again for the new wall time. Zones with
    their own rules, or foreign fixed offsets, are kept as they are.
    """
    tz = reference.tzinfo
    if isinstance(tz, timezone) and reference.utcoffset() == reference.astimezone().utcoffset():
        return wall.astimezone()
    return wall.replace(tzinfo=tz)


def floor_to_block_start(timestamp: "datetime", window_hours: "int") -> "datetime":
    """
    floors a timestamp to the hour, then to the closest multiple
    of window_hours counted from midnight of the same calendar day.
    Flooring happens on the wall clock, the offset is resolved for
    the floored time so windows stay aligned across DST changes.
    """
    block_start_hour = (timestamp.hour // window_hours) * window_hours
    wall = timestamp.replace(
        hour=block_start_hour, minute=0, second=0, microsecond=0, tzinfo=None
    )
    return _localize(wall, timestamp)


def block_end(start: "datetime", window_hours: "int") -> "datetime":
    """
    returns start + window_hours on the wall clock, cut at the next
    midnight. Window sizes that divide 24 never reach the cut; other
    sizes get a short last window for the day, e.g. [20:00, 24:00)
    for 5 hours.
    """
    wall = start.replace(tzinfo=None)
    next_midnight = datetime.combine(wall.date() + timedelta(days=1), time())
    return _localize(min(wall + timedelta(hours=window_hours), next_midnight), start)


def should_open_current_window(
    blocks: "Iterable[Block]",
    now: "datetime",
    threshold: "timedelta" = RECENT_ACTIVITY_THRESHOLD,
) -> "bool":
    """
    recency fallback policy: with no active block, the window
    containing now is still treated as open when the latest record
    seen is less than threshold old.
    """
    latest: "datetime | None" = None
    for block in blocks:
        if block.is_active:
            return False
        if block.actual_end is not None and (latest is None or block.actual_end > latest):
            latest = block.actual_end

    if latest is None:
        return False

    return now - latest < threshold


def aggregate(
    records: "Iterable[UsageRecord]",
    window_hours: "int" = DEFAULT_WINDOW_HOURS,
    now: "datetime | None" = None,
) -> "list[Block]":
    """
    groups usage records into midnight-aligned windows of
    window_hours and marks the window containing now as active.
    Returns the blocks sorted by start time, without gap blocks.
    """
    if now is None:
        now = local_now()

    by_start: "dict[datetime, Block]" = {}
    record_count = 0

    for record in sorted(records, key=lambda r: r.timestamp):
        start = floor_to_block_start(record.timestamp, window_hours)
        block = by_start.get(start)
        if block is None:
            block = Block(start=start, end=block_end(start, window_hours))
            by_start[start] = block

        block.add(record)
        record_count += 1

    # no data at all means no synthetic block either
    if not by_start:
        return []

    for block in by_start.values():
        block.is_active = block.contains(now)

    if should_open_current_window(by_start.values(), now):
        current_start = floor_to_block_start(now, window_hours)
        current = by_start.get(current_start)
        if current is None:
            current = Block(start=current_start, end=block_end(current_start, window_hours))
            by_start[current_start] = current
            logger.debug("current_window_opened", start=current_start.isoformat())

        current.is_active = True

    blocks = sorted(by_start.values(), key=lambda b: b.start)
    logger.debug(
        "blocks_aggregated",
        record_count=record_count,
        block_count=len(blocks),
        window_hours=window_hours,
    )
    return blocks


def get_active_block(blocks: "Iterable[Block]") -> "Block | None":
    """
    returns the active, non-gap block if there is one.
    """
    for block in blocks:
        if block.is_active and not block.is_gap:
            return block

    return None


def filter_recent_blocks(
    blocks: "list[Block]",
    days: "int",
    now: "datetime | None" = None,
) -> "list[Block]":
    """
    keeps blocks starting within the last days. A non-positive
    days value keeps everything.
    """
    if days <= 0:
        return blocks

    if now is None:
        now = local_now()

    cutoff = now - timedelta(days=days)
    return [block for block in blocks if block.start > cutoff]
