"""Event emitter implementations for board observability.

- EventEmitter: Abstract base class for event emission
- LoggingEventEmitter: Emits events as structured log entries
- CompositeEventEmitter: Emits to multiple sinks simultaneously
- NullEventEmitter: Discards events
- create_event_emitter: Builds an emitter from configured sink types

Source:
- src/dealflow/events/models.py (BoardEvent, EventType)
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from src.dealflow.events.models import BoardEvent, EventType


logger = logging.getLogger(__name__)


class EventSinkType(str, Enum):
    """Types of event sinks supported by the engine.

    Attributes:
        LOGGING: Emit events as structured log entries.
        METRICS: Emit events as Prometheus metrics.
    """

    LOGGING = "logging"
    METRICS = "metrics"


class EventEmitter(ABC):
    """Abstract base class for board event emitters.

    Implementations should be non-blocking and fault-tolerant: emit()
    is awaited on the reconciler's path, and a failure must never undo
    or block a board update.
    """

    @abstractmethod
    async def emit(self, event: BoardEvent) -> None:
        """Emit a board event.

        Args:
            event: The board event to emit.
        """
        pass

    async def close(self) -> None:
        """Close the emitter and release resources."""
        pass


class LoggingEventEmitter(EventEmitter):
    """Event emitter that logs events using structured logging.

    Events are logged at different levels based on event type:

    - MUTATION_ROLLED_BACK: WARNING level
    - DRAG_STARTED, DRAG_CANCELLED, DROP_DENIED: DEBUG level
    - everything else: INFO level

    Example:
        >>> emitter = LoggingEventEmitter()
        >>> await emitter.emit(event)
        # Logs: INFO - Board event: drop_accepted for deal 7
    """

    def __init__(self, logger_name: Optional[str] = None):
        """Initialize the logging event emitter.

        Args:
            logger_name: Optional logger name. If not provided, uses
                         the module logger.
        """
        self._logger = (
            logging.getLogger(logger_name)
            if logger_name
            else logger
        )
        self._log_level_map = {
            EventType.DRAG_STARTED: logging.DEBUG,
            EventType.DRAG_CANCELLED: logging.DEBUG,
            EventType.DROP_DENIED: logging.DEBUG,
            EventType.DROP_ACCEPTED: logging.INFO,
            EventType.MUTATION_COMMITTED: logging.INFO,
            EventType.MUTATION_ROLLED_BACK: logging.WARNING,
            EventType.TERMINAL_MARKED: logging.INFO,
            EventType.DEAL_RESET: logging.INFO,
        }

    async def emit(self, event: BoardEvent) -> None:
        log_level = self._log_level_map.get(event.event_type, logging.INFO)

        self._logger.log(
            log_level,
            "Board event: %s for deal %s",
            event.event_type.value,
            event.deal_id,
            extra=event.to_log_dict(),
        )


class CompositeEventEmitter(EventEmitter):
    """Event emitter that delegates to multiple child emitters.

    Failures in one emitter do not affect others - each emitter is called
    independently and errors are logged but not propagated.

    Example:
        >>> composite = CompositeEventEmitter([LoggingEventEmitter(), MetricsEventEmitter()])
        >>> await composite.emit(event)  # Emits to both sinks
    """

    def __init__(self, emitters: Optional[List[EventEmitter]] = None):
        self._emitters: List[EventEmitter] = emitters or []

    def add_emitter(self, emitter: EventEmitter) -> None:
        self._emitters.append(emitter)

    def remove_emitter(self, emitter: EventEmitter) -> bool:
        """Remove a child emitter.

        Returns:
            True if the emitter was found and removed, False otherwise.
        """
        try:
            self._emitters.remove(emitter)
            return True
        except ValueError:
            return False

    @property
    def emitters(self) -> List[EventEmitter]:
        return list(self._emitters)

    async def emit(self, event: BoardEvent) -> None:
        for emitter in self._emitters:
            try:
                await emitter.emit(event)
            except Exception as e:
                logger.error(
                    "Failed to emit event to %s: %s",
                    type(emitter).__name__,
                    str(e),
                    extra={
                        "emitter_type": type(emitter).__name__,
                        "event_type": event.event_type.value,
                        "deal_id": event.deal_id,
                        "error": str(e),
                    },
                )

    async def close(self) -> None:
        for emitter in self._emitters:
            try:
                await emitter.close()
            except Exception as e:
                logger.error(
                    "Failed to close emitter %s: %s",
                    type(emitter).__name__,
                    str(e),
                )


class NullEventEmitter(EventEmitter):
    """Event emitter that discards all events."""

    async def emit(self, event: BoardEvent) -> None:
        pass


def create_event_emitter(
    sink_types: Optional[List[EventSinkType]] = None,
    logger_name: Optional[str] = None,
) -> EventEmitter:
    """Create an event emitter for the requested sinks.

    Args:
        sink_types: Event sink types to enable. If None or empty, a
                    LoggingEventEmitter is returned.
        logger_name: Optional logger name for the LoggingEventEmitter.

    Returns:
        A single emitter when one sink is requested, otherwise a
        CompositeEventEmitter delegating to all of them.

    Example:
        >>> emitter = create_event_emitter([EventSinkType.LOGGING, EventSinkType.METRICS])
        >>> isinstance(emitter, CompositeEventEmitter)
        True
    """
    if not sink_types:
        return LoggingEventEmitter(logger_name=logger_name)

    emitters: List[EventEmitter] = []

    for sink_type in sink_types:
        if sink_type == EventSinkType.LOGGING:
            emitters.append(LoggingEventEmitter(logger_name=logger_name))
        elif sink_type == EventSinkType.METRICS:
            # Imported here because metrics.py subclasses EventEmitter
            from src.dealflow.events.metrics import MetricsEventEmitter

            emitters.append(MetricsEventEmitter())
        else:
            logger.warning(
                "Unknown event sink type: %s, skipping",
                sink_type,
            )

    if not emitters:
        return LoggingEventEmitter(logger_name=logger_name)

    if len(emitters) == 1:
        return emitters[0]

    return CompositeEventEmitter(emitters)
