from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from ccstat.models import SessionBlock, TokenCounts, UsageRecord

DEFAULT_SESSION_DURATION_HOURS = 5


def floor_to_hour(timestamp: "datetime") -> "datetime":
    """
    floors a timestamp to the start of its UTC hour.
    """
    return timestamp.astimezone(timezone.utc).replace(
        minute=0, second=0, microsecond=0
    )


def format_block_id(start_time: "datetime") -> "str":
    """
    renders a block start instant as a millisecond precision
    UTC identifier, e.g. 2025-09-12T14:00:00.000Z
    """
    utc = start_time.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def identify_session_blocks(
    records: "Iterable[UsageRecord]",
    window_hours: "float" = DEFAULT_SESSION_DURATION_HOURS,
    now: "datetime | None" = None,
) -> "list[SessionBlock]":
    """
    partitions usage records into session blocks.

    A block opens at the floored hour of its first record. A record
    more than one window after the block start, or more than one
    window after the previous record, closes the block and opens a
    new one. A silence longer than a window between two records also
    emits a gap block covering the part of the silence past the
    window. Both comparisons are strict, so records exactly one
    window apart stay in the same block.
    """
    sorted_records = sorted(records, key=lambda r: r.timestamp)
    if not sorted_records:
        return []

    window = timedelta(hours=window_hours)
    if now is None:
        now = datetime.now(timezone.utc)

    blocks: "list[SessionBlock]" = []
    block_start = floor_to_hour(sorted_records[0].timestamp)
    block_entries: "list[UsageRecord]" = [sorted_records[0]]

    for record in sorted_records[1:]:
        last_time = block_entries[-1].timestamp
        since_block_start = record.timestamp - block_start
        since_last_record = record.timestamp - last_time

        if since_block_start <= window and since_last_record <= window:
            block_entries.append(record)
            continue

        blocks.append(_create_block(block_start, block_entries, now, window))

        if since_last_record > window:
            gap = _create_gap_block(last_time, record.timestamp, window)
            if gap is not None:
                blocks.append(gap)

        block_start = floor_to_hour(record.timestamp)
        block_entries = [record]

    blocks.append(_create_block(block_start, block_entries, now, window))
    return blocks


def find_active_block(blocks: "Sequence[SessionBlock]") -> "SessionBlock | None":
    for block in blocks:
        if block.is_active and not block.is_gap:
            return block
    return None


def _create_block(
    start_time: "datetime",
    entries: "Sequence[UsageRecord]",
    now: "datetime",
    window: "timedelta",
) -> "SessionBlock":
    end_time = start_time + window
    actual_end_time = entries[-1].timestamp if entries else start_time
    is_active = now - actual_end_time < window and now < end_time

    input_tokens = output_tokens = cache_creation = cache_read = 0
    cost_usd = 0.0
    # dict keeps first-seen order
    models: "dict[str, None]" = {}

    for entry in entries:
        input_tokens += entry.input_tokens
        output_tokens += entry.output_tokens
        cache_creation += entry.cache_creation_tokens
        cache_read += entry.cache_read_tokens
        cost_usd += entry.cost_usd
        if entry.model:
            models[entry.model] = None

    return SessionBlock(
        id=format_block_id(start_time),
        start_time=start_time,
        end_time=end_time,
        actual_end_time=actual_end_time,
        is_active=is_active,
        entries=tuple(entries),
        token_counts=TokenCounts(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_creation_tokens=cache_creation,
            cache_read_tokens=cache_read,
        ),
        cost_usd=cost_usd,
        models=tuple(models),
    )


def _create_gap_block(
    last_activity: "datetime",
    next_activity: "datetime",
    window: "timedelta",
) -> "SessionBlock | None":
    if next_activity - last_activity <= window:
        return None

    gap_start = last_activity + window
    return SessionBlock(
        id=f"gap-{format_block_id(gap_start)}",
        start_time=gap_start,
        end_time=next_activity,
        actual_end_time=gap_start,
        is_active=False,
        is_gap=True,
    )
