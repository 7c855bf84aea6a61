import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from tokenblocks.source.jsonl import JsonlRecordSource, parse_record

RANGE_START = datetime(2026, 3, 1, tzinfo=timezone.utc)
RANGE_END = datetime(2026, 3, 3, tzinfo=timezone.utc)


def write_lines(path: "Path", entries: "list[object]") -> "None":
    path.write_text(
        "\n".join(e if isinstance(e, str) else json.dumps(e) for e in entries) + "\n",
        encoding="utf-8",
    )


class TestParseRecord:
    def test_nested_usage(self) -> "None":
        record = parse_record(
            {
                "timestamp": "2026-03-02T10:30:00+00:00",
                "model": "o3",
                "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
                "cost": 0.25,
                "session_id": "s-1",
                "request_id": "r-1",
            }
        )
        assert record.timestamp == datetime(2026, 3, 2, 10, 30, tzinfo=timezone.utc)
        assert record.model == "o3"
        assert record.prompt_tokens == 10
        assert record.completion_tokens == 5
        assert record.total_tokens == 15
        assert record.cost == 0.25
        assert record.session_id == "s-1"
        assert record.request_id == "r-1"
        assert record.request_count == 1

    def test_flat_usage_and_derived_total(self) -> "None":
        record = parse_record(
            {
                "timestamp": "2026-03-02T10:30:00Z",
                "model": "o3",
                "prompt_tokens": 7,
                "completion_tokens": 3,
                "cost": 0.0,
            }
        )
        assert record.total_tokens == 10
        assert record.cost == 0.0

    def test_missing_cost_is_estimated(self) -> "None":
        record = parse_record(
            {
                "timestamp": "2026-03-02T10:30:00Z",
                "model": "gpt-4o",
                "usage": {"prompt_tokens": 1_000_000, "completion_tokens": 0},
            }
        )
        assert record.cost == pytest.approx(5.0)

    def test_missing_timestamp_raises(self) -> "None":
        with pytest.raises(KeyError):
            parse_record({"model": "o3"})


class TestJsonlRecordSource:
    @pytest.mark.asyncio
    async def test_reads_file_and_skips_malformed_lines(self, tmp_path: "Path") -> "None":
        path = tmp_path / "usage.jsonl"
        write_lines(
            path,
            [
                {"timestamp": "2026-03-02T10:00:00Z", "model": "o3", "prompt_tokens": 1},
                "not json",
                {"model": "o3"},
                {"timestamp": "yesterday", "model": "o3"},
                [1, 2, 3],
                "",
                {"timestamp": "2026-03-02T11:00:00Z", "model": "o3", "prompt_tokens": 2},
            ],
        )

        records = await JsonlRecordSource(path).fetch_records(RANGE_START, RANGE_END)

        assert [r.prompt_tokens for r in records] == [1, 2]

    @pytest.mark.asyncio
    async def test_filters_by_time_range(self, tmp_path: "Path") -> "None":
        path = tmp_path / "usage.jsonl"
        write_lines(
            path,
            [
                {"timestamp": "2026-02-20T10:00:00Z", "model": "o3"},
                {"timestamp": "2026-03-02T10:00:00Z", "model": "o3"},
                {"timestamp": "2026-03-05T10:00:00Z", "model": "o3"},
            ],
        )

        records = await JsonlRecordSource(path).fetch_records(RANGE_START, RANGE_END)

        assert len(records) == 1
        assert records[0].timestamp == datetime(2026, 3, 2, 10, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_reads_directory_recursively(self, tmp_path: "Path") -> "None":
        (tmp_path / "nested").mkdir()
        write_lines(tmp_path / "a.jsonl", [{"timestamp": "2026-03-02T10:00:00Z", "model": "o3"}])
        write_lines(
            tmp_path / "nested" / "b.jsonl",
            [{"timestamp": "2026-03-02T12:00:00Z", "model": "gpt-4o"}],
        )
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

        records = await JsonlRecordSource(tmp_path).fetch_records(RANGE_START, RANGE_END)

        assert sorted(r.model for r in records) == ["gpt-4o", "o3"]

    @pytest.mark.asyncio
    async def test_missing_path_returns_nothing(self, tmp_path: "Path") -> "None":
        source = JsonlRecordSource(tmp_path / "missing.jsonl")
        assert await source.fetch_records(RANGE_START, RANGE_END) == []

    @pytest.mark.asyncio
    async def test_undecodable_line_is_skipped(self, tmp_path: "Path") -> "None":
        path = tmp_path / "usage.jsonl"
        good = json.dumps({"timestamp": "2026-03-02T10:00:00Z", "model": "o3"}).encode()
        path.write_bytes(
            good + b"\n"
            + b"\xff\xfe garbage\n"
            # latin-1, not utf-8
            + b'{"model": "caf\xe9"}\n'
            + good + b"\n"
        )

        records = await JsonlRecordSource(path).fetch_records(RANGE_START, RANGE_END)

        assert len(records) == 2

    @pytest.mark.asyncio
    async def test_reads_non_ascii_utf8(self, tmp_path: "Path") -> "None":
        path = tmp_path / "usage.jsonl"
        entry = {"timestamp": "2026-03-02T10:00:00Z", "model": "o3", "session_id": "café"}
        path.write_text(json.dumps(entry, ensure_ascii=False) + "\n", encoding="utf-8")

        records = await JsonlRecordSource(path).fetch_records(RANGE_START, RANGE_END)

        assert records[0].session_id == "café"
