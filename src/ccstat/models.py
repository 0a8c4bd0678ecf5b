from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """
    UsageRecord represents a single assistant response
    read from a usage log line.
    """

    # always timezone-aware, UTC
    timestamp: "datetime"
    input_tokens: "int"
    output_tokens: "int"
    cache_creation_tokens: "int"
    cache_read_tokens: "int"
    cost_usd: "float" = 0.0
    model: "str | None" = None
    session_id: "str | None" = None
    message_id: "str | None" = None
    request_id: "str | None" = None
    # note - name of the project log directory, not the
    # working directory it was recorded from
    project: "str" = "unknown"

    @property
    def total_tokens(self) -> "int":
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )


@dataclass(frozen=True, slots=True)
class TokenCounts:
    input_tokens: "int" = 0
    output_tokens: "int" = 0
    cache_creation_tokens: "int" = 0
    cache_read_tokens: "int" = 0

    @property
    def total(self) -> "int":
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )

    @property
    def non_cache(self) -> "int":
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True, slots=True)
class SessionBlock:
    """
    SessionBlock is one billing window worth of usage records,
    or a synthetic gap marker when is_gap is set.
    """

    id: "str"
    # floored to the UTC hour for regular blocks
    start_time: "datetime"
    end_time: "datetime"
    # timestamp of the last entry, start_time for gap blocks
    actual_end_time: "datetime"
    is_active: "bool"
    is_gap: "bool" = False
    entries: "tuple[UsageRecord, ...]" = ()
    token_counts: "TokenCounts" = TokenCounts()
    cost_usd: "float" = 0.0
    models: "tuple[str, ...]" = ()


@dataclass(frozen=True, slots=True)
class BurnRate:
    tokens_per_minute: "float"
    # input + output only, drives the Normal/Moderate/High indicator
    tokens_per_minute_for_indicator: "float"
    cost_per_hour: "float"


@dataclass(frozen=True, slots=True)
class ProjectedUsage:
    total_tokens: "float"
    total_cost: "float"
    remaining_minutes: "float"


@dataclass(frozen=True, slots=True)
class ContextSession:
    """
    ContextSession summarises the records of one project
    log directory for the context window display.
    """

    session_id: "str"
    # most recent non-zero cache read count, not a sum
    cache_read_tokens: "int"
    input_tokens: "int"
    most_recent_timestamp: "datetime | None" = None

    @property
    def current_tokens(self) -> "int":
        return self.cache_read_tokens or self.input_tokens


@dataclass(frozen=True, slots=True)
class StatusSnapshot:
    """
    StatusSnapshot holds everything one refresh cycle displays.
    Missing values render as placeholders.
    """

    now: "datetime"
    cwd: "str"
    git_branch: "str" = ""
    active_block: "SessionBlock | None" = None
    burn_rate: "BurnRate | None" = None
    projection: "ProjectedUsage | None" = None
    context_session: "ContextSession | None" = None
