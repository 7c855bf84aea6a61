import os
from dataclasses import dataclass
from datetime import datetime, timedelta

from tokenblocks.periods import months_before

DEFAULT_WINDOW_HOURS = 5
MIN_WINDOW_HOURS = 1
MAX_WINDOW_HOURS = 24

# live refresh interval bounds, in seconds
DEFAULT_REFRESH_INTERVAL = 1
MIN_REFRESH_INTERVAL = 1
MAX_REFRESH_INTERVAL = 60

# range of the daily and monthly reports
DEFAULT_REPORT_DAYS = 7
MAX_REPORT_DAYS = 365
DEFAULT_REPORT_MONTHS = 3
MAX_REPORT_MONTHS = 24

REPORTS = ("blocks", "daily", "monthly")


def clamp_refresh_interval(seconds: "int") -> "int":
    return max(MIN_REFRESH_INTERVAL, min(MAX_REFRESH_INTERVAL, seconds))


@dataclass
class Config:
    # JSONL file or directory of usage records
    records_path: "str" = ""
    openai_api_key: "str" = ""
    openai_org_id: "str" = ""

    window_hours: "int" = DEFAULT_WINDOW_HOURS
    # live refresh interval in seconds
    refresh_interval: "int" = DEFAULT_REFRESH_INTERVAL
    token_limit: "int | None" = None

    report: "str" = "blocks"
    days: "int" = DEFAULT_REPORT_DAYS
    months: "int" = DEFAULT_REPORT_MONTHS

    live: "bool" = False
    active_only: "bool" = False
    recent_only: "bool" = False
    recent_days: "int" = 3
    output: "str" = "table"

    color: "bool" = True
    width: "int | None" = None
    log_level: "str" = "warning"
    # metrics endpoint for live mode, format ":9186" or
    # "0.0.0.0:9186", empty to disable
    listen_address: "str" = ""

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            records_path=os.environ.get("TOKENBLOCKS_RECORDS", ""),
            openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
            openai_org_id=os.environ.get("OPENAI_ORG_ID", ""),
        )

    @property
    def openai_enabled(self) -> "bool":
        return bool(self.openai_api_key)

    @property
    def report_days(self) -> "int":
        """
        how many days of records a one-shot report needs.
        """
        if self.recent_only:
            return self.recent_days
        if self.active_only:
            return 1
        return 7

    def report_start(self, now: "datetime") -> "datetime":
        """
        start of the record range the selected report reads,
        ending at now.
        """
        if self.report == "daily":
            return now - timedelta(days=self.days)
        if self.report == "monthly":
            return months_before(now, self.months)
        return now - timedelta(days=self.report_days)
