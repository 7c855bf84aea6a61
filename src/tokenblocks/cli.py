import argparse

from tokenblocks.config import (
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_REPORT_DAYS,
    DEFAULT_REPORT_MONTHS,
    DEFAULT_WINDOW_HOURS,
    MAX_REPORT_DAYS,
    MAX_REPORT_MONTHS,
    MAX_WINDOW_HOURS,
    MIN_WINDOW_HOURS,
    REPORTS,
    Config,
    clamp_refresh_interval,
)


def _token_limit(value: "str") -> "int | None":
    """
    parses --token-limit. "max" and non-positive numbers mean
    no limit.
    """
    if value in ("", "max"):
        return None
    try:
        limit = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid token limit: {value!r}")
    return limit if limit > 0 else None


def parse_args(argv: "list[str] | None" = None) -> "Config":
    parser = argparse.ArgumentParser(
        prog="tokenblocks",
        description="Token usage grouped into fixed billing windows, with live projections",
    )
    parser.add_argument(
        "--records",
        dest="records_path",
        default=None,
        help="JSONL file or directory of usage records (env: TOKENBLOCKS_RECORDS)",
    )
    parser.add_argument(
        "--report",
        default="blocks",
        choices=REPORTS,
        help="Report to show: billing blocks, or usage per day or month (default: blocks)",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=DEFAULT_REPORT_DAYS,
        help=f"Days covered by the daily report (default: {DEFAULT_REPORT_DAYS})",
    )
    parser.add_argument(
        "--months",
        type=int,
        default=DEFAULT_REPORT_MONTHS,
        help=f"Months covered by the monthly report (default: {DEFAULT_REPORT_MONTHS})",
    )
    parser.add_argument(
        "--window.hours",
        dest="window_hours",
        type=int,
        default=DEFAULT_WINDOW_HOURS,
        help=f"Block duration in hours (default: {DEFAULT_WINDOW_HOURS})",
    )
    parser.add_argument(
        "--live",
        action="store_true",
        help="Show a live dashboard of the active block",
    )
    parser.add_argument(
        "--refresh.interval",
        dest="refresh_interval",
        type=int,
        default=DEFAULT_REFRESH_INTERVAL,
        help="Live refresh interval in seconds, clamped to 1-60 (default: 1)",
    )
    parser.add_argument(
        "--token-limit",
        type=_token_limit,
        default=None,
        help="Token limit for warnings (number or 'max')",
    )
    parser.add_argument(
        "--active",
        dest="active_only",
        action="store_true",
        help="Show only the active block",
    )
    parser.add_argument(
        "--recent",
        dest="recent_only",
        action="store_true",
        help="Show only blocks from the last --recent-days days",
    )
    parser.add_argument(
        "--recent-days",
        type=int,
        default=3,
        help="Days to show with --recent (default: 3)",
    )
    parser.add_argument(
        "--output",
        default="table",
        choices=["table", "json"],
        help="Output format (default: table)",
    )
    parser.add_argument(
        "--no-color",
        dest="color",
        action="store_false",
        help="Disable colored output",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=None,
        help="Output width in columns (default: terminal width)",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: warning)",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default="",
        help="Expose live metrics on this address, e.g. ':9186' (default: disabled)",
    )

    args = parser.parse_args(argv)

    if not MIN_WINDOW_HOURS <= args.window_hours <= MAX_WINDOW_HOURS:
        parser.error(
            f"--window.hours must be between {MIN_WINDOW_HOURS} and {MAX_WINDOW_HOURS}"
        )

    if not 1 <= args.days <= MAX_REPORT_DAYS:
        parser.error(f"--days must be between 1 and {MAX_REPORT_DAYS}")
    if not 1 <= args.months <= MAX_REPORT_MONTHS:
        parser.error(f"--months must be between 1 and {MAX_REPORT_MONTHS}")
    if args.live and args.report != "blocks":
        parser.error("--live only applies to the blocks report")

    config = Config.from_env()
    if args.records_path is not None:
        config.records_path = args.records_path
    config.report = args.report
    config.days = args.days
    config.months = args.months
    config.window_hours = args.window_hours
    config.live = args.live
    config.refresh_interval = clamp_refresh_interval(args.refresh_interval)
    config.token_limit = args.token_limit
    config.active_only = args.active_only
    config.recent_only = args.recent_only
    config.recent_days = args.recent_days
    config.output = args.output
    config.color = args.color
    config.width = args.width
    config.log_level = args.log_level
    config.listen_address = args.listen_address
    return config
