"""Board event emission, metrics and user notifications.

Event Emitters:
- EventEmitter: Abstract base class for event emission
- LoggingEventEmitter: Emits events as structured log entries
- CompositeEventEmitter: Emits to multiple sinks simultaneously
- MetricsEventEmitter: Emits events as Prometheus metrics
- NullEventEmitter: Discards events (for testing)

Notifications:
- NotificationCenter: Bounded queue of user-visible messages
"""

from src.dealflow.events.emitter import (
    CompositeEventEmitter,
    EventEmitter,
    EventSinkType,
    LoggingEventEmitter,
    NullEventEmitter,
    create_event_emitter,
)
from src.dealflow.events.metrics import (
    BoardMetrics,
    MetricsEventEmitter,
    generate_metrics_output,
    get_metrics,
)
from src.dealflow.events.models import BoardEvent, EventType
from src.dealflow.events.notifications import (
    Notification,
    NotificationCenter,
    NotificationLevel,
)

__all__ = [
    # Event models
    "BoardEvent",
    "EventType",
    # Event emitters
    "CompositeEventEmitter",
    "EventEmitter",
    "LoggingEventEmitter",
    "MetricsEventEmitter",
    "NullEventEmitter",
    # Metrics
    "BoardMetrics",
    "generate_metrics_output",
    "get_metrics",
    # Factory and configuration
    "EventSinkType",
    "create_event_emitter",
    # Notifications
    "Notification",
    "NotificationCenter",
    "NotificationLevel",
]
