from datetime import timedelta

from tokenblocks.models import Block


def fill_gaps(blocks: "list[Block]", window_hours: "int") -> "list[Block]":
    """
    inserts gap blocks wherever a block ends before the next one
    starts. Gap blocks are window_hours long, the last one cut to
    end exactly where the next block starts. The input must be
    sorted by start.
    """
    if len(blocks) <= 1:
        return blocks

    window = timedelta(hours=window_hours)
    result: "list[Block]" = []

    for current, following in zip(blocks, blocks[1:]):
        result.append(current)

        gap_start = current.end
        while gap_start < following.start:
            gap_end = min(gap_start + window, following.start)
            result.append(
                Block(
                    start=gap_start,
                    end=gap_end,
                    actual_end=gap_end,
                    is_active=False,
                    is_gap=True,
                )
            )
            gap_start = gap_end

    result.append(blocks[-1])
    return result
