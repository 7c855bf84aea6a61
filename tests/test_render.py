import io
from datetime import datetime, timezone

from tokenblocks.aggregator import aggregate
from tokenblocks.gaps import fill_gaps
from tokenblocks.monitor import take_snapshot
from tokenblocks.periods import aggregate_daily, aggregate_monthly
from tokenblocks.render import (
    RenderConfig,
    dashboard,
    format_currency,
    format_number,
    make_console,
    render_periods,
    render_report,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
CONFIG = RenderConfig(color=False, width=160)


def render_to_text(renderable: "object") -> "str":
    out = io.StringIO()
    make_console(CONFIG, file=out).print(renderable)
    return out.getvalue()


class TestFormatting:
    def test_format_number(self) -> "None":
        assert format_number(1234567) == "1,234,567"

    def test_format_currency(self) -> "None":
        assert format_currency(1234.5) == "$1,234.50"


class TestRenderReport:
    def test_table_lists_blocks_and_projection(self, make_record) -> "None":
        records = [make_record(1, model="o3"), make_record(11), make_record(11, 30)]
        blocks = fill_gaps(aggregate(records, 5, now=NOW), 5)
        out = io.StringIO()

        render_report(make_console(CONFIG, file=out), blocks, NOW, CONFIG)

        text = out.getvalue()
        assert "2026-03-02 00:00" in text
        assert "○ Gap" in text
        assert "● Active" in text
        assert "TOTAL" in text
        assert "Active Block Projection" in text
        assert "Burn rate" in text

    def test_empty_report(self) -> "None":
        out = io.StringIO()
        render_report(make_console(CONFIG, file=out), [], NOW, CONFIG)
        assert "No blocks found" in out.getvalue()

    def test_token_limit_warning(self, make_record) -> "None":
        config = RenderConfig(color=False, width=160, token_limit=100)
        blocks = aggregate([make_record(11)], 5, now=NOW)
        out = io.StringIO()

        render_report(make_console(config, file=out), blocks, NOW, config)

        assert "150 ⚠" in out.getvalue()


class TestRenderPeriods:
    def test_daily_table(self, make_record) -> "None":
        days = aggregate_daily([make_record(10, model="o3"), make_record(11, day=3)])
        out = io.StringIO()

        render_periods(make_console(CONFIG, file=out), days)

        text = out.getvalue()
        assert "Token Usage Report - Daily" in text
        assert "2026-03-02" in text
        assert "2026-03-03" in text
        assert "TOTAL" in text
        # footer total tokens
        assert "300" in text

    def test_monthly_table(self, make_record) -> "None":
        months = aggregate_monthly([make_record(10), make_record(10, day=3)])
        out = io.StringIO()

        render_periods(make_console(CONFIG, file=out), months)

        text = out.getvalue()
        assert "Token Usage Report - Monthly" in text
        assert "2026-03" in text
        assert "Days Active" in text

    def test_empty_periods(self) -> "None":
        out = io.StringIO()
        render_periods(make_console(CONFIG, file=out), [])
        assert "No usage data found" in out.getvalue()

class TestDashboard:
    def test_active_dashboard(self, make_record) -> "None":
        snapshot = take_snapshot([make_record(10, model="o3"), make_record(11)], 5, NOW)

        text = render_to_text(dashboard(snapshot, CONFIG))

        assert "SESSION" in text
        assert "USAGE" in text
        assert "PROJECTION" in text
        assert "Models: o3, gpt-4o" in text

    def test_waiting_dashboard(self) -> "None":
        snapshot = take_snapshot([], 5, NOW)

        text = render_to_text(dashboard(snapshot, CONFIG, refresh_interval=5))

        assert "WAITING FOR ACTIVITY" in text
        assert "Refreshing every 5s" in text

    def test_limit_status(self, make_record) -> "None":
        config = RenderConfig(color=False, width=160, token_limit=200)
        snapshot = take_snapshot([make_record(11)], 5, NOW)

        out = io.StringIO()
        make_console(config, file=out).print(dashboard(snapshot, config))

        # 150 of 200 tokens used
        assert "MODERATE" in out.getvalue()
