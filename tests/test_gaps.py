from datetime import datetime, timezone

from tokenblocks.aggregator import aggregate
from tokenblocks.gaps import fill_gaps
from tokenblocks.models import Block

UTC = timezone.utc
LATER = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def at(hour: "int", day: "int" = 2) -> "datetime":
    return datetime(2026, 3, day, hour, 0, tzinfo=UTC)


class TestFillGaps:
    def test_single_gap_between_blocks(self, make_record) -> "None":
        blocks = aggregate([make_record(9), make_record(16)], 5, now=LATER)

        filled = fill_gaps(blocks, 5)

        assert [(b.start, b.end) for b in filled] == [
            (at(5), at(10)),
            (at(10), at(15)),
            (at(15), at(20)),
        ]
        gap = filled[1]
        assert gap.is_gap is True
        assert gap.is_active is False
        assert gap.actual_end == gap.end
        assert gap.total_tokens == 0
        assert gap.total_cost == 0.0
        assert gap.request_count == 0
        assert gap.models == []

    def test_long_gap_is_split_into_windows(self) -> "None":
        blocks = [
            Block(start=at(0), end=at(5)),
            Block(start=at(0, day=3), end=at(5, day=3)),
        ]

        filled = fill_gaps(blocks, 5)

        gaps = [b for b in filled if b.is_gap]
        assert [(g.start, g.end) for g in gaps] == [
            (at(5), at(10)),
            (at(10), at(15)),
            (at(15), at(20)),
            # last gap cut to end where the next block starts
            (at(20), at(0, day=3)),
        ]

    def test_adjacent_blocks_get_no_gap(self) -> "None":
        blocks = [Block(start=at(5), end=at(10)), Block(start=at(10), end=at(15))]
        assert fill_gaps(blocks, 5) == blocks

    def test_short_sequences_are_returned_unchanged(self) -> "None":
        single = [Block(start=at(5), end=at(10))]
        assert fill_gaps([], 5) == []
        assert fill_gaps(single, 5) is single

    def test_coverage_is_contiguous(self, make_record) -> "None":
        records = [make_record(1), make_record(13), make_record(22), make_record(18, day=4)]
        blocks = aggregate(records, 5, now=LATER)

        filled = fill_gaps(blocks, 5)

        assert filled[0].start == blocks[0].start
        assert filled[-1].end == blocks[-1].end
        for current, following in zip(filled, filled[1:]):
            assert current.end == following.start

    def test_gap_after_short_midnight_window(self, make_record) -> "None":
        # [20:00, 24:00) on day 2, then [05:00, 10:00) on day 3
        blocks = aggregate([make_record(21), make_record(6, day=3)], 5, now=LATER)

        filled = fill_gaps(blocks, 5)

        assert [(b.start, b.end, b.is_gap) for b in filled] == [
            (at(20), at(0, day=3), False),
            (at(0, day=3), at(5, day=3), True),
            (at(5, day=3), at(10, day=3), False),
        ]

    def test_real_blocks_are_kept_in_order(self, make_record) -> "None":
        blocks = aggregate([make_record(1), make_record(22)], 5, now=LATER)

        filled = fill_gaps(blocks, 5)

        real = [b for b in filled if not b.is_gap]
        assert real == blocks
