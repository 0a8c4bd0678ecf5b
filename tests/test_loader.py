import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import orjson

from ccstat.loader import (
    default_log_roots,
    load_context_sessions,
    load_usage_records,
    parse_usage_line,
)

NOW = datetime(2025, 9, 12, 15, tzinfo=timezone.utc)


def _line(
    minutes_ago: "float" = 10,
    message_id: "str | None" = "msg_1",
    request_id: "str | None" = "req_1",
    **usage: "int",
) -> "bytes":
    timestamp = NOW - timedelta(minutes=minutes_ago)
    message: "dict[str, object]" = {
        "model": "claude-sonnet-4",
        "usage": {"input_tokens": 10, "output_tokens": 5, **usage},
    }
    if message_id is not None:
        message["id"] = message_id
    data: "dict[str, object]" = {
        "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
        "sessionId": "sess-1",
        "message": message,
    }
    if request_id is not None:
        data["requestId"] = request_id
    return orjson.dumps(data)


def _write_log(root: "Path", project: "str", name: "str", lines: "list[bytes]") -> "Path":
    path = root / project / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\n".join(lines) + b"\n")
    os.utime(path, (NOW.timestamp(), NOW.timestamp()))
    return path


class TestParseUsageLine:
    def test_valid_line(self) -> "None":
        line = _line(cache_creation_input_tokens=7, cache_read_input_tokens=900)
        record = parse_usage_line(line, project="-home-user-proj")

        assert record is not None
        assert record.timestamp == NOW - timedelta(minutes=10)
        assert record.timestamp.tzinfo is not None
        assert record.input_tokens == 10
        assert record.output_tokens == 5
        assert record.cache_creation_tokens == 7
        assert record.cache_read_tokens == 900
        assert record.model == "claude-sonnet-4"
        assert record.message_id == "msg_1"
        assert record.request_id == "req_1"
        assert record.session_id == "sess-1"
        assert record.project == "-home-user-proj"
        assert record.cost_usd == 0.0

    def test_optional_cache_counts_default_to_zero(self) -> "None":
        record = parse_usage_line(_line())
        assert record is not None
        assert record.cache_creation_tokens == 0
        assert record.cache_read_tokens == 0

    def test_cost_is_read(self) -> "None":
        data = orjson.loads(_line())
        data["costUSD"] = 0.42
        record = parse_usage_line(orjson.dumps(data))
        assert record is not None
        assert record.cost_usd == 0.42

    def test_naive_timestamp_is_utc(self) -> "None":
        data = orjson.loads(_line())
        data["timestamp"] = "2025-09-12T14:50:00"
        record = parse_usage_line(orjson.dumps(data))
        assert record is not None
        assert record.timestamp == datetime(2025, 9, 12, 14, 50, tzinfo=timezone.utc)

    def test_offset_timestamp_is_converted(self) -> "None":
        data = orjson.loads(_line())
        data["timestamp"] = "2025-09-12T16:50:00+02:00"
        record = parse_usage_line(orjson.dumps(data))
        assert record is not None
        assert record.timestamp == datetime(2025, 9, 12, 14, 50, tzinfo=timezone.utc)

    def test_invalid_json(self) -> "None":
        assert parse_usage_line(b"{not json") is None

    def test_missing_usage(self) -> "None":
        data = {"timestamp": "2025-09-12T14:50:00Z", "message": {"role": "user"}}
        assert parse_usage_line(orjson.dumps(data)) is None

    def test_bad_timestamp(self) -> "None":
        data = orjson.loads(_line())
        data["timestamp"] = "yesterday"
        assert parse_usage_line(orjson.dumps(data)) is None

    def test_negative_tokens(self) -> "None":
        assert parse_usage_line(_line(input_tokens=-1)) is None

    def test_not_an_object(self) -> "None":
        assert parse_usage_line(b"[1, 2, 3]") is None


class TestLoadUsageRecords:
    def test_loads_and_deduplicates(self, tmp_path: "Path") -> "None":
        _write_log(tmp_path, "-home-user-a", "one.jsonl", [_line(30), _line(20, "msg_2")])
        # resumed conversation repeats msg_1/req_1
        _write_log(tmp_path, "-home-user-b", "two.jsonl", [_line(30)])

        records = load_usage_records([tmp_path], now=NOW)

        assert len(records) == 2
        assert {r.message_id for r in records} == {"msg_1", "msg_2"}

    def test_records_without_ids_are_kept(self, tmp_path: "Path") -> "None":
        _write_log(
            tmp_path,
            "-home-user-a",
            "one.jsonl",
            [_line(30, request_id=None), _line(30, request_id=None)],
        )
        assert len(load_usage_records([tmp_path], now=NOW)) == 2

    def test_skips_invalid_and_blank_lines(self, tmp_path: "Path") -> "None":
        _write_log(
            tmp_path,
            "-home-user-a",
            "one.jsonl",
            [b"", b"garbage", b'{"type": "summary"}', _line(5)],
        )
        records = load_usage_records([tmp_path], now=NOW)
        assert len(records) == 1

    def test_project_name_from_directory(self, tmp_path: "Path") -> "None":
        _write_log(tmp_path, "-home-user-a", "nested/sub/one.jsonl", [_line()])
        [record] = load_usage_records([tmp_path], now=NOW)
        assert record.project == "-home-user-a"

    def test_skips_old_files(self, tmp_path: "Path") -> "None":
        old = _write_log(tmp_path, "-home-user-a", "old.jsonl", [_line(60 * 30)])
        stale = (NOW - timedelta(hours=25)).timestamp()
        os.utime(old, (stale, stale))
        _write_log(tmp_path, "-home-user-a", "new.jsonl", [_line(5, "msg_9")])

        records = load_usage_records([tmp_path], now=NOW)

        assert [r.message_id for r in records] == ["msg_9"]

    def test_missing_root(self, tmp_path: "Path") -> "None":
        assert load_usage_records([tmp_path / "absent"], now=NOW) == []


class TestLoadContextSessions:
    def test_groups_by_project(self, tmp_path: "Path") -> "None":
        _write_log(
            tmp_path,
            "-home-user-a",
            "one.jsonl",
            [_line(30, cache_read_input_tokens=1000), _line(10, "m2", cache_read_input_tokens=3000)],
        )
        _write_log(tmp_path, "-home-user-b", "two.jsonl", [_line(5, "m3")])

        sessions = load_context_sessions([tmp_path], now=NOW)

        assert [s.session_id for s in sessions] == ["-home-user-a", "-home-user-b"]
        assert sessions[0].cache_read_tokens == 3000
        assert sessions[1].current_tokens == 10


class TestDefaultLogRoots:
    def test_home_locations(self, tmp_path: "Path", monkeypatch: "object") -> "None":
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.delenv("CLAUDE_CONFIG_DIR", raising=False)
        (tmp_path / ".claude" / "projects").mkdir(parents=True)

        assert default_log_roots() == [tmp_path / ".claude" / "projects"]

        (tmp_path / ".config" / "claude" / "projects").mkdir(parents=True)
        assert default_log_roots() == [
            tmp_path / ".config" / "claude" / "projects",
            tmp_path / ".claude" / "projects",
        ]

    def test_env_override(self, tmp_path: "Path", monkeypatch: "object") -> "None":
        first = tmp_path / "first"
        second = tmp_path / "second"
        (first / "projects").mkdir(parents=True)
        (second / "projects").mkdir(parents=True)
        monkeypatch.setenv("CLAUDE_CONFIG_DIR", f"{first}, {second},{tmp_path / 'none'}")

        assert default_log_roots() == [first / "projects", second / "projects"]
