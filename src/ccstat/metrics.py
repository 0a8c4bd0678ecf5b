from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from ccstat.models import StatusSnapshot

TOKEN_KINDS = ("input", "output", "cache_creation", "cache_read")


class MetricsUpdater:
    """
    mirrors each refresh cycle's results into Prometheus metrics.
    Nothing is exported unless the HTTP endpoint is started.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._refresh_duration: "Histogram" = Histogram(
            "ccstat_refresh_duration_seconds",
            "Duration of refresh cycles",
            registry=registry,
        )
        self._refresh_errors: "Counter" = Counter(
            "ccstat_refresh_errors_total",
            "Total number of failed refresh cycles",
            registry=registry,
        )
        self._last_refresh_success: "Gauge" = Gauge(
            "ccstat_last_refresh_success_timestamp_seconds",
            "Unix timestamp of the last successful refresh cycle",
            registry=registry,
        )
        self._block_tokens: "Gauge" = Gauge(
            "ccstat_active_block_tokens",
            "Tokens used in the active session block",
            ["kind"],
            registry=registry,
        )
        self._block_cost: "Gauge" = Gauge(
            "ccstat_active_block_cost_usd",
            "Cost in USD of the active session block",
            registry=registry,
        )
        self._burn_rate: "Gauge" = Gauge(
            "ccstat_burn_rate_tokens_per_minute",
            "Average token burn rate of the active session block",
            registry=registry,
        )
        self._projected_tokens: "Gauge" = Gauge(
            "ccstat_projected_tokens",
            "Projected token total at the end of the active session block",
            registry=registry,
        )
        self._context_tokens: "Gauge" = Gauge(
            "ccstat_context_tokens",
            "Context tokens of the session matching the working directory",
            registry=registry,
        )
        self._high_water_mark: "Gauge" = Gauge(
            "ccstat_high_water_mark_tokens",
            "Highest token total observed in a single session block",
            registry=registry,
        )

    def update_snapshot(self, snapshot: "StatusSnapshot") -> "None":
        """
        sets the block gauges from the snapshot. Absent values
        reset their gauges to 0.
        """
        block = snapshot.active_block
        counts = block.token_counts if block else None
        values = (
            (
                counts.input_tokens,
                counts.output_tokens,
                counts.cache_creation_tokens,
                counts.cache_read_tokens,
            )
            if counts
            else (0, 0, 0, 0)
        )
        for kind, value in zip(TOKEN_KINDS, values):
            self._block_tokens.labels(kind=kind).set(value)

        self._block_cost.set(block.cost_usd if block else 0.0)
        self._burn_rate.set(
            snapshot.burn_rate.tokens_per_minute if snapshot.burn_rate else 0.0
        )
        self._projected_tokens.set(
            snapshot.projection.total_tokens if snapshot.projection else 0.0
        )
        self._context_tokens.set(
            snapshot.context_session.current_tokens
            if snapshot.context_session
            else 0
        )

    def set_high_water_mark(self, value: "int") -> "None":
        self._high_water_mark.set(value)

    def observe_refresh_duration(self, duration_seconds: "float") -> "None":
        self._refresh_duration.observe(duration_seconds)

    def inc_refresh_error(self) -> "None":
        self._refresh_errors.inc()

    def set_last_refresh_success(self, timestamp: "float") -> "None":
        self._last_refresh_success.set(timestamp)
