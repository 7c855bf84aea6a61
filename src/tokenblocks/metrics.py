from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from tokenblocks.models import Block, Projection


class MonitorMetrics:
    """
    exposes the live monitor's view of the current block as
    Prometheus gauges, along with refresh health metrics.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._blocks: "Gauge" = Gauge(
            "tokenblocks_blocks",
            "Number of blocks in the last refresh, by kind",
            ["kind"],
            registry=registry,
        )
        self._active_tokens: "Gauge" = Gauge(
            "tokenblocks_active_block_tokens",
            "Tokens used in the active block",
            registry=registry,
        )
        self._active_cost: "Gauge" = Gauge(
            "tokenblocks_active_block_cost_usd",
            "Cost in USD of the active block",
            registry=registry,
        )
        self._projected_tokens: "Gauge" = Gauge(
            "tokenblocks_projected_tokens",
            "Projected tokens at the end of the active block",
            registry=registry,
        )
        self._projected_cost: "Gauge" = Gauge(
            "tokenblocks_projected_cost_usd",
            "Projected cost in USD at the end of the active block",
            registry=registry,
        )
        self._burn_rate: "Gauge" = Gauge(
            "tokenblocks_burn_rate_tokens_per_minute",
            "Token burn rate of the active block",
            registry=registry,
        )
        self._refresh_duration: "Histogram" = Histogram(
            "tokenblocks_refresh_duration_seconds",
            "Duration of live refresh cycles",
            registry=registry,
        )
        self._refresh_errors: "Counter" = Counter(
            "tokenblocks_refresh_errors_total",
            "Total number of failed live refresh cycles",
            registry=registry,
        )
        self._last_refresh_success: "Gauge" = Gauge(
            "tokenblocks_last_refresh_success_timestamp_seconds",
            "Unix timestamp of the last successful refresh",
            registry=registry,
        )

    def update_blocks(self, blocks: "list[Block]") -> "None":
        gaps = sum(1 for block in blocks if block.is_gap)
        self._blocks.labels(kind="usage").set(len(blocks) - gaps)
        self._blocks.labels(kind="gap").set(gaps)

    def update_active(
        self,
        block: "Block | None",
        projection: "Projection | None",
    ) -> "None":
        """
        sets the active block gauges. Everything drops to zero
        while no block is active.
        """
        self._active_tokens.set(block.total_tokens if block else 0)
        self._active_cost.set(block.total_cost if block else 0.0)
        self._projected_tokens.set(projection.projected_tokens if projection else 0)
        self._projected_cost.set(projection.projected_cost if projection else 0.0)
        self._burn_rate.set(projection.burn_rate if projection else 0.0)

    def observe_refresh_duration(self, duration_seconds: "float") -> "None":
        self._refresh_duration.observe(duration_seconds)

    def inc_refresh_error(self) -> "None":
        self._refresh_errors.inc()

    def set_last_refresh_success(self, timestamp: "float") -> "None":
        self._last_refresh_success.set(timestamp)
