import asyncio
import json
import signal
from pathlib import Path

import structlog
from prometheus_client import start_http_server
from rich.live import Live

from tokenblocks.aggregator import aggregate, filter_recent_blocks, get_active_block, local_now
from tokenblocks.cli import parse_args
from tokenblocks.config import Config
from tokenblocks.gaps import fill_gaps
from tokenblocks.logging import setup_logging
from tokenblocks.metrics import MonitorMetrics
from tokenblocks.models import Block, DailyUsage, MonthlyUsage
from tokenblocks.monitor import LiveMonitor, Snapshot
from tokenblocks.periods import aggregate_daily, aggregate_monthly
from tokenblocks.render import (
    RenderConfig,
    dashboard,
    make_console,
    render_periods,
    render_report,
)
from tokenblocks.source.base import RecordSource
from tokenblocks.source.jsonl import JsonlRecordSource
from tokenblocks.source.openai import OpenAIUsageSource

logger = structlog.get_logger()

_NO_DATA_HINT = """\
No usage data found.

This could mean:
  • no usage was recorded in the selected period
  • the records path points to the wrong place

Try --records PATH or set TOKENBLOCKS_RECORDS / OPENAI_API_KEY."""


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':9186' or '0.0.0.0:9186'.
    """
    if addr.startswith(":"):
        return ("0.0.0.0", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


def build_source(config: "Config") -> "RecordSource":
    if config.records_path:
        logger.info("source_enabled", source="jsonl", path=config.records_path)
        return JsonlRecordSource(Path(config.records_path).expanduser())

    if config.openai_enabled:
        logger.info("source_enabled", source="openai")
        return OpenAIUsageSource(
            api_key=config.openai_api_key,
            org_id=config.openai_org_id,
        )

    raise SystemExit(
        "No usage source configured. Pass --records PATH, "
        "or set TOKENBLOCKS_RECORDS or OPENAI_API_KEY."
    )


def _print_json(items: "list[Block] | list[DailyUsage] | list[MonthlyUsage]") -> "None":
    print(json.dumps([item.to_dict() for item in items], indent=2))


async def run_report(source: "RecordSource", config: "Config") -> "None":
    now = local_now()
    start = config.report_start(now)
    logger.info(
        "generating_report",
        report=config.report,
        start=start.isoformat(),
        end=now.isoformat(),
        window_hours=config.window_hours,
        active_only=config.active_only,
        recent_only=config.recent_only,
    )

    try:
        records = await source.fetch_records(start, now)
    finally:
        await source.close()

    render_config = RenderConfig(
        color=config.color,
        width=config.width,
        token_limit=config.token_limit,
    )
    console = make_console(render_config)

    if not records:
        if config.output == "json":
            print("[]")
        else:
            console.print(_NO_DATA_HINT, style="yellow")
        return

    if config.report == "daily":
        days = aggregate_daily(records)
        if config.output == "json":
            _print_json(days)
        else:
            render_periods(console, days)
        return

    if config.report == "monthly":
        months = aggregate_monthly(records)
        if config.output == "json":
            _print_json(months)
        else:
            render_periods(console, months)
        return

    blocks = fill_gaps(aggregate(records, config.window_hours, now=now), config.window_hours)
    if config.recent_only:
        blocks = filter_recent_blocks(blocks, config.recent_days, now=now)
    if config.active_only:
        active = get_active_block(blocks)
        blocks = [active] if active is not None else []

    if config.output == "json":
        _print_json(blocks)
        return

    render_report(console, blocks, now, render_config)


async def run_live(source: "RecordSource", config: "Config") -> "None":
    render_config = RenderConfig(
        color=config.color,
        width=config.width,
        token_limit=config.token_limit,
    )
    console = make_console(render_config)

    metrics: "MonitorMetrics | None" = None
    if config.listen_address:
        metrics = MonitorMetrics()
        host, port = _parse_listen_address(config.listen_address)
        start_http_server(port, addr=host)
        logger.info("metrics_server_started", host=host, port=port)

    with Live(console=console, screen=True, auto_refresh=False) as live:

        def render(snapshot: "Snapshot") -> "None":
            live.update(
                dashboard(snapshot, render_config, config.refresh_interval),
                refresh=True,
            )

        monitor = LiveMonitor(
            source,
            render,
            metrics=metrics,
            window_hours=config.window_hours,
            refresh_interval_seconds=config.refresh_interval,
        )

        loop = asyncio.get_running_loop()
        # for SIGINT and SIGTERM, signal the monitor
        # to stop after the current refresh
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, monitor.stop)

        try:
            await monitor.run()
        finally:
            logger.info("shutting_down")
            await monitor.close()

    console.print("Live monitoring stopped.")


def main() -> "None":
    config = parse_args()
    setup_logging(config.log_level)
    source = build_source(config)

    if config.live:
        asyncio.run(run_live(source, config))
    else:
        asyncio.run(run_report(source, config))


if __name__ == "__main__":
    main()
