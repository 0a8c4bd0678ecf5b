from datetime import datetime
from typing import Iterable, Sequence

from ccstat.models import ContextSession, UsageRecord


def build_context_sessions(
    records: "Iterable[UsageRecord]",
) -> "list[ContextSession]":
    """
    groups records by project and summarises each group.

    cache_read_tokens follows the record with the latest timestamp
    that carried a non-zero cache read count, with later records
    winning ties. input_tokens is a plain sum used as a fallback
    when no cache reads were seen. Groups with neither are dropped.
    """
    cache_read: "dict[str, int]" = {}
    input_tokens: "dict[str, int]" = {}
    latest: "dict[str, datetime]" = {}

    for record in records:
        project = record.project
        input_tokens[project] = input_tokens.get(project, 0) + record.input_tokens
        cache_read.setdefault(project, 0)

        if record.cache_read_tokens > 0 and (
            project not in latest or record.timestamp >= latest[project]
        ):
            cache_read[project] = record.cache_read_tokens
            latest[project] = record.timestamp

    return [
        ContextSession(
            session_id=project,
            cache_read_tokens=cache_read[project],
            input_tokens=input_tokens[project],
            most_recent_timestamp=latest.get(project),
        )
        for project in sorted(input_tokens)
        if cache_read[project] > 0 or input_tokens[project] > 0
    ]


def find_context_session(
    sessions: "Sequence[ContextSession]",
    current_path: "str",
) -> "ContextSession | None":
    """
    finds the session belonging to current_path or its closest
    ancestor. Session ids are directory paths with dots replaced
    by hyphens, so each candidate directory name is normalised the
    same way and matched as a substring.
    """
    parts = current_path.split("/")

    for i in range(len(parts), 0, -1):
        name = parts[i - 1]
        if not name:
            continue

        candidate = name.replace(".", "-")
        for session in sessions:
            if session.session_id and candidate in session.session_id:
                return session

    return None
