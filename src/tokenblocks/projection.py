from datetime import datetime, timedelta

from tokenblocks.aggregator import local_now
from tokenblocks.models import Block, Projection


def project(block: "Block", now: "datetime | None" = None) -> "Projection | None":
    """
    extrapolates the active block's totals to the full window
    assuming the burn rate so far stays constant. This is a rough
    estimate: bursts and slowdowns are not modelled.

    Returns None for blocks that are not active. With no elapsed
    time or no tokens yet, the projection has a zero burn rate and
    simply repeats the current totals.
    """
    if not block.is_active:
        return None

    if now is None:
        now = local_now()

    elapsed_minutes = (now - block.start).total_seconds() / 60
    time_remaining = max(block.end - now, timedelta(0))

    if elapsed_minutes <= 0 or block.total_tokens == 0:
        return Projection(
            projected_tokens=block.total_tokens,
            projected_cost=block.total_cost,
            burn_rate=0.0,
            time_remaining=time_remaining,
        )

    window_minutes = block.duration.total_seconds() / 60
    burn_rate = block.total_tokens / elapsed_minutes
    cost_rate = block.total_cost / elapsed_minutes

    return Projection(
        projected_tokens=int(burn_rate * window_minutes),
        projected_cost=cost_rate * window_minutes,
        burn_rate=burn_rate,
        time_remaining=time_remaining,
    )
