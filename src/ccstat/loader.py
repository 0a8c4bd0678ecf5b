import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, Sequence

import orjson
import structlog
from pydantic import BaseModel, Field, NonNegativeInt, ValidationError

from ccstat.context import build_context_sessions
from ccstat.dedup import DeduplicationStore
from ccstat.models import ContextSession, UsageRecord

logger = structlog.get_logger()

CLAUDE_CONFIG_DIR_ENV = "CLAUDE_CONFIG_DIR"
PROJECTS_DIR_NAME = "projects"

# files untouched for longer than this cannot hold records
# belonging to an active block
RECENT_FILE_WINDOW = timedelta(hours=24)


class _Usage(BaseModel):
    input_tokens: NonNegativeInt
    output_tokens: NonNegativeInt
    cache_creation_input_tokens: NonNegativeInt | None = None
    cache_read_input_tokens: NonNegativeInt | None = None


class _Message(BaseModel):
    usage: _Usage
    model: str | None = None
    id: str | None = None


class UsageLine(BaseModel):
    """
    schema of a single usage log line. Keys not listed here
    are ignored.
    """

    timestamp: datetime
    message: _Message
    sessionId: str | None = None
    requestId: str | None = None
    costUSD: float | None = Field(default=None, ge=0)


def default_log_roots() -> "list[Path]":
    """
    returns the existing project-log directories. CLAUDE_CONFIG_DIR
    may list several comma separated data directories; otherwise the
    XDG location and the legacy ~/.claude location are checked.
    """
    configured = os.environ.get(CLAUDE_CONFIG_DIR_ENV, "").strip()
    if configured:
        bases = [
            Path(entry.strip()).expanduser()
            for entry in configured.split(",")
            if entry.strip()
        ]
    else:
        home = Path.home()
        xdg_config = os.environ.get("XDG_CONFIG_HOME") or str(home / ".config")
        bases = [Path(xdg_config) / "claude", home / ".claude"]

    return [
        base / PROJECTS_DIR_NAME
        for base in bases
        if (base / PROJECTS_DIR_NAME).is_dir()
    ]


def iter_recent_files(
    roots: "Sequence[Path]",
    cutoff: "datetime",
) -> "Iterator[tuple[str, Path]]":
    """
    yields (project name, file path) for every .jsonl file below
    each project directory that was modified at or after cutoff.
    """
    cutoff_ts = cutoff.timestamp()

    for root in roots:
        try:
            project_dirs = sorted(p for p in root.iterdir() if p.is_dir())
        except OSError as exc:
            logger.warning("log_root_unreadable", root=str(root), error=str(exc))
            continue

        for project_dir in project_dirs:
            for path in sorted(project_dir.rglob("*.jsonl")):
                try:
                    mtime = path.stat().st_mtime
                except OSError:
                    continue

                if mtime < cutoff_ts:
                    logger.debug("skipping_old_file", path=str(path))
                    continue

                yield project_dir.name, path


def parse_usage_line(line: "bytes | str", project: "str" = "unknown") -> "UsageRecord | None":
    """
    parses one log line into a UsageRecord. Returns None for
    lines that are not JSON or do not match the usage schema.
    """
    try:
        data = UsageLine.model_validate(orjson.loads(line))
    except (orjson.JSONDecodeError, ValidationError):
        return None

    timestamp = data.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    else:
        timestamp = timestamp.astimezone(timezone.utc)

    usage = data.message.usage
    return UsageRecord(
        timestamp=timestamp,
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        cache_creation_tokens=usage.cache_creation_input_tokens or 0,
        cache_read_tokens=usage.cache_read_input_tokens or 0,
        cost_usd=data.costUSD or 0.0,
        model=data.message.model,
        session_id=data.sessionId,
        message_id=data.message.id,
        request_id=data.requestId,
        project=project,
    )


def read_usage_file(path: "Path", project: "str") -> "Iterator[UsageRecord]":
    """
    stream-parses a usage log file. Invalid lines are skipped and
    an unreadable file yields nothing.
    """
    try:
        with open(path, "rb") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue

                record = parse_usage_line(line, project)
                if record is None:
                    logger.debug("invalid_usage_line", path=str(path), line=line_num)
                    continue

                yield record

    except OSError as exc:
        logger.warning("usage_file_unreadable", path=str(path), error=str(exc))


def load_usage_records(
    roots: "Sequence[Path]",
    now: "datetime | None" = None,
) -> "list[UsageRecord]":
    """
    loads deduplicated usage records from recently modified log files.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    dedup = DeduplicationStore()
    records: "list[UsageRecord]" = []
    duplicates = 0

    for project, path in iter_recent_files(roots, now - RECENT_FILE_WINDOW):
        for record in read_usage_file(path, project):
            if not dedup.is_new(record.message_id, record.request_id):
                duplicates += 1
                continue
            records.append(record)

    logger.debug("usage_records_loaded", count=len(records), duplicates=duplicates)
    return records


def load_context_sessions(
    roots: "Sequence[Path]",
    now: "datetime | None" = None,
) -> "list[ContextSession]":
    """
    loads per-project context summaries. Records are not
    deduplicated here since only the latest cache read matters.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    records: "list[UsageRecord]" = []
    for project, path in iter_recent_files(roots, now - RECENT_FILE_WINDOW):
        records.extend(read_usage_file(path, project))

    return build_context_sessions(records)
