"""Prometheus metrics for board observability.

Metrics Defined:
- dealflow_drops_total: Counter of completed drops by result
  (accepted/denied/noop)
- dealflow_mutations_total: Counter of remote mutations by result
  (committed/rolled_back)
- dealflow_terminal_actions_total: Counter of explicit actions
  (mark_terminal/reset)
- dealflow_mutation_duration_seconds: Histogram of remote call time

The MetricsEventEmitter updates these metrics from board events.

Source:
- src/dealflow/events/models.py (BoardEvent, EventType)
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from src.dealflow.events.emitter import EventEmitter
from src.dealflow.events.models import BoardEvent, EventType


logger = logging.getLogger(__name__)


# Remote mutation latency, 10 milliseconds up to 30 seconds
DEFAULT_DURATION_BUCKETS = (
    0.01,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
)


class BoardMetrics:
    """Container for all board Prometheus metrics.

    Supports custom registries so tests can create isolated instances.

    Metrics:
        drops_total: Counter of drops. Labels: pipeline, result
        mutations_total: Counter of remote mutations. Labels: pipeline, result
        terminal_actions_total: Counter of explicit actions.
            Labels: pipeline, action
        mutation_duration_seconds: Histogram of remote call time.
            Labels: pipeline

    Example:
        >>> metrics = BoardMetrics(registry=CollectorRegistry())
        >>> metrics.record_drop("campaigns", "accepted")
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or REGISTRY

        self.drops_total = Counter(
            "dealflow_drops_total",
            "Total number of completed drops on a board",
            labelnames=["pipeline", "result"],
            registry=self.registry,
        )

        self.mutations_total = Counter(
            "dealflow_mutations_total",
            "Total number of remote state mutations by outcome",
            labelnames=["pipeline", "result"],
            registry=self.registry,
        )

        self.terminal_actions_total = Counter(
            "dealflow_terminal_actions_total",
            "Total number of explicit mark-terminal and reset actions",
            labelnames=["pipeline", "action"],
            registry=self.registry,
        )

        self.mutation_duration_seconds = Histogram(
            "dealflow_mutation_duration_seconds",
            "Time spent waiting for remote state mutations in seconds",
            labelnames=["pipeline"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_drop(self, pipeline: str, result: str) -> None:
        self.drops_total.labels(pipeline=pipeline, result=result).inc()

    def record_mutation(
        self,
        pipeline: str,
        committed: bool,
        duration_seconds: Optional[float] = None,
    ) -> None:
        """Record the outcome of a remote mutation.

        Args:
            pipeline: The pipeline name.
            committed: Whether the remote store accepted the mutation.
            duration_seconds: Remote call time, if measured.
        """
        result = "committed" if committed else "rolled_back"
        self.mutations_total.labels(pipeline=pipeline, result=result).inc()
        if duration_seconds is not None:
            self.mutation_duration_seconds.labels(pipeline=pipeline).observe(
                duration_seconds
            )

    def record_terminal_action(self, pipeline: str, action: str) -> None:
        self.terminal_actions_total.labels(pipeline=pipeline, action=action).inc()


_default_metrics: Optional[BoardMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> BoardMetrics:
    """Get or create the board metrics instance.

    Args:
        registry: Optional Prometheus registry. If None, returns the
                  global metrics instance for the default registry.

    Returns:
        BoardMetrics: The metrics instance.
    """
    global _default_metrics

    if registry is not None:
        return BoardMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = BoardMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Render metrics in Prometheus text format."""
    return generate_latest(registry or REGISTRY)


class MetricsEventEmitter(EventEmitter):
    """Event emitter that updates Prometheus metrics.

    - DROP_ACCEPTED / DROP_DENIED: drops_total (accepted/denied, or noop
      when details carry noop=True)
    - MUTATION_COMMITTED / MUTATION_ROLLED_BACK: mutations_total and
      mutation_duration_seconds
    - TERMINAL_MARKED / DEAL_RESET: terminal_actions_total

    Attributes:
        metrics: The BoardMetrics instance to update.
    """

    def __init__(
        self,
        metrics: Optional[BoardMetrics] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        if metrics is not None:
            self._metrics = metrics
        else:
            self._metrics = get_metrics(registry)

    @property
    def metrics(self) -> BoardMetrics:
        return self._metrics

    async def emit(self, event: BoardEvent) -> None:
        try:
            if event.event_type == EventType.DROP_ACCEPTED:
                result = "noop" if event.details.get("noop") else "accepted"
                self._metrics.record_drop(event.pipeline, result)
            elif event.event_type == EventType.DROP_DENIED:
                self._metrics.record_drop(event.pipeline, "denied")
            elif event.event_type in (
                EventType.MUTATION_COMMITTED,
                EventType.MUTATION_ROLLED_BACK,
            ):
                duration = event.details.get("duration_seconds")
                self._metrics.record_mutation(
                    event.pipeline,
                    committed=event.event_type == EventType.MUTATION_COMMITTED,
                    duration_seconds=float(duration) if duration is not None else None,
                )
            elif event.event_type == EventType.TERMINAL_MARKED:
                self._metrics.record_terminal_action(event.pipeline, "mark_terminal")
            elif event.event_type == EventType.DEAL_RESET:
                self._metrics.record_terminal_action(event.pipeline, "reset")
        except Exception as e:
            logger.error(
                "Failed to update metrics for event %s: %s",
                event.event_type.value,
                str(e),
                extra={
                    "event_type": event.event_type.value,
                    "deal_id": event.deal_id,
                    "error": str(e),
                },
            )
