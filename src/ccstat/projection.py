from datetime import datetime, timezone

from ccstat.models import BurnRate, ProjectedUsage, SessionBlock


def calculate_burn_rate(block: "SessionBlock") -> "BurnRate | None":
    """
    averages token and cost consumption over the span between
    the block's first and last entry. Returns None for gap blocks,
    empty blocks and blocks whose entries share one instant.
    """
    if block.is_gap or not block.entries:
        return None

    elapsed = block.entries[-1].timestamp - block.entries[0].timestamp
    elapsed_minutes = elapsed.total_seconds() / 60
    if elapsed_minutes <= 0:
        return None

    return BurnRate(
        tokens_per_minute=block.token_counts.total / elapsed_minutes,
        tokens_per_minute_for_indicator=block.token_counts.non_cache
        / elapsed_minutes,
        cost_per_hour=block.cost_usd / elapsed_minutes * 60,
    )


def project_usage(
    block: "SessionBlock",
    now: "datetime | None" = None,
) -> "ProjectedUsage | None":
    """
    extrapolates the block's burn rate linearly up to its end time.
    Only active, non-gap blocks with a burn rate are projected.
    """
    if not block.is_active or block.is_gap:
        return None

    burn_rate = calculate_burn_rate(block)
    if burn_rate is None:
        return None

    if now is None:
        now = datetime.now(timezone.utc)

    remaining_minutes = max(0.0, (block.end_time - now).total_seconds() / 60)

    return ProjectedUsage(
        total_tokens=block.token_counts.total
        + burn_rate.tokens_per_minute * remaining_minutes,
        total_cost=block.cost_usd + burn_rate.cost_per_hour / 60 * remaining_minutes,
        remaining_minutes=remaining_minutes,
    )
