"""Board event models for observability.

This module defines the data models for board events:
- EventType: Enum of all event types emitted by the reconciler
- BoardEvent: Structured event with all required metadata

Events are emitted for monitoring and debugging. They are never consumed
by the engine itself, so a broken sink cannot affect board state.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field

from src.dealflow.board.models import DealId


class EventType(str, Enum):
    """Types of events emitted by the board reconciler.

    Event Categories:
        DRAG_STARTED: A drag gesture was opened on a deal.

        DRAG_CANCELLED: A gesture ended without a drop target.

        DROP_ACCEPTED: A drop passed validation and was applied locally.

        DROP_DENIED: A drop was refused by the transition rules and
            snapped back without a mutation.

        MUTATION_COMMITTED: The remote store confirmed a state change.

        MUTATION_ROLLED_BACK: The remote store rejected a state change and
            the local state was restored.

        TERMINAL_MARKED: A deal was explicitly marked won/lost.

        DEAL_RESET: A terminal deal was explicitly reopened.
    """

    DRAG_STARTED = "drag_started"
    DRAG_CANCELLED = "drag_cancelled"
    DROP_ACCEPTED = "drop_accepted"
    DROP_DENIED = "drop_denied"
    MUTATION_COMMITTED = "mutation_committed"
    MUTATION_ROLLED_BACK = "mutation_rolled_back"
    TERMINAL_MARKED = "terminal_marked"
    DEAL_RESET = "deal_reset"


class BoardEvent(BaseModel):
    """Structured event emitted by the board reconciler.

    Attributes:
        event_type: The category of event.
        deal_id: The deal the event concerns.
        pipeline: Name of the pipeline definition.
        timestamp: When the event occurred (UTC timezone).
        details: Additional context specific to the event type.

    Details Field Conventions:
        For DROP_* and MUTATION_* events:
            - from_state: State before the move
            - to_state: Requested state
            - duration_seconds: Remote call time (MUTATION_* only)
            - reason: Denial or rejection reason

        For TERMINAL_MARKED events:
            - terminal_state: The outcome recorded
            - reason: The user-supplied reason
    """

    event_type: EventType = Field(
        ...,
        description="The category of event being emitted",
    )

    deal_id: DealId = Field(
        ...,
        description="The deal the event concerns",
    )

    pipeline: str = Field(
        ...,
        min_length=1,
        description="Name of the pipeline definition",
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC timezone)",
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context specific to the event type",
    )

    def to_log_dict(self) -> Dict[str, Any]:
        """Convert event to a flat dictionary for structured logging.

        Example:
            >>> event = BoardEvent(
            ...     event_type=EventType.DROP_DENIED,
            ...     deal_id=7,
            ...     pipeline="opportunities",
            ... )
            >>> event.to_log_dict()["event_type"]
            'drop_denied'
        """
        return {
            "event_type": self.event_type.value,
            "deal_id": self.deal_id,
            "pipeline": self.pipeline,
            "timestamp": self.timestamp.isoformat(),
            **self.details,
        }
