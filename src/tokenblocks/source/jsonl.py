import asyncio
import json
from datetime import datetime
from pathlib import Path

import structlog

from tokenblocks.models import UsageRecord
from tokenblocks.pricing import estimate_cost

logger = structlog.get_logger()


def parse_record(data: "dict[str, object]") -> "UsageRecord":
    """
    builds a UsageRecord from one decoded JSON line. Token counts
    are read from a nested "usage" object when present, otherwise
    from the top level. Raises KeyError, TypeError or ValueError on
    malformed entries.
    """
    usage = data.get("usage")
    if not isinstance(usage, dict):
        usage = data

    prompt_tokens = int(usage.get("prompt_tokens", 0))
    completion_tokens = int(usage.get("completion_tokens", 0))
    total_tokens = int(usage.get("total_tokens", prompt_tokens + completion_tokens))
    model = str(data.get("model") or "unknown")

    # naive timestamps are taken as local time
    timestamp = datetime.fromisoformat(str(data["timestamp"])).astimezone()

    cost = data.get("cost")
    if cost is None:
        cost = estimate_cost(model, prompt_tokens, completion_tokens)

    return UsageRecord(
        timestamp=timestamp,
        model=model,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        cost=float(cost),
        session_id=str(data.get("session_id", "")),
        request_id=str(data.get("request_id", "")),
    )


class JsonlRecordSource:
    """
    JsonlRecordSource reads usage records from JSON Lines files.
    The path is either a single file or a directory searched
    recursively for *.jsonl files. Files are read again on every
    fetch so that a live monitor picks up appended lines.
    """

    def __init__(self, path: "Path") -> "None":
        self._path = path

    @property
    def name(self) -> "str":
        return "jsonl"

    async def close(self) -> "None":
        pass

    async def fetch_records(
        self,
        start_time: "datetime",
        end_time: "datetime",
    ) -> "list[UsageRecord]":
        return await asyncio.to_thread(self._read_records, start_time, end_time)

    def _files(self) -> "list[Path]":
        if self._path.is_dir():
            return sorted(self._path.rglob("*.jsonl"))
        if self._path.exists():
            return [self._path]

        logger.warning("jsonl_path_missing", path=str(self._path))
        return []

    def _read_records(
        self,
        start_time: "datetime",
        end_time: "datetime",
    ) -> "list[UsageRecord]":
        records: "list[UsageRecord]" = []

        for file in self._files():
            # lines are decoded one at a time so that a bad byte only
            # costs its own line
            with file.open("rb") as fh:
                for line_number, line in enumerate(fh, start=1):
                    line = line.strip()
                    if not line:
                        continue

                    try:
                        record = parse_record(json.loads(line))
                    except (AttributeError, KeyError, TypeError, ValueError) as exc:
                        logger.warning(
                            "jsonl_record_skipped",
                            file=str(file),
                            line=line_number,
                            error=str(exc),
                        )
                        continue

                    if start_time <= record.timestamp <= end_time:
                        records.append(record)

        logger.debug("jsonl_records_loaded", path=str(self._path), record_count=len(records))
        return records
