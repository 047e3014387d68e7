"""Drag session models.

- DragPhase: Lifecycle phases of a drag gesture
- DragState: Read-only view of the session for rendering
- DropIntent: A completed gesture handed to the reconciler
- GestureResult: How a gesture ended
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from src.dealflow.board.models import DealId
from src.dealflow.drag.geometry import Point


class DragPhase(str, Enum):
    """Phases of a drag gesture.

    Phase Flow:
        idle → pending → dragging → (dropped | cancelled) → idle

    DROPPED and CANCELLED are reported by the gesture that ends; the
    session itself is back in IDLE as soon as the gesture is over.

    Attributes:
        IDLE: No gesture in progress.
        PENDING: Pointer pressed on a deal, activation distance not yet
            exceeded. Releasing now is a click, not a drag.
        DRAGGING: The deal is being moved; candidate target tracked.
        DROPPED: Released over a candidate target.
        CANCELLED: Released without a target, or explicitly cancelled.
    """

    IDLE = "idle"
    PENDING = "pending"
    DRAGGING = "dragging"
    DROPPED = "dropped"
    CANCELLED = "cancelled"


class DragState(BaseModel):
    """Snapshot of the drag session for the presentation layer."""

    model_config = ConfigDict(frozen=True)

    phase: DragPhase = DragPhase.IDLE
    active_id: Optional[DealId] = None
    origin_state: Optional[str] = None
    candidate_state: Optional[str] = None
    pointer: Optional[Point] = None

    @property
    def is_dragging(self) -> bool:
        return self.phase == DragPhase.DRAGGING


class DropIntent(BaseModel):
    """A deal released over a candidate state."""

    model_config = ConfigDict(frozen=True)

    deal_id: DealId
    from_state: str
    to_state: str


class GestureResult(BaseModel):
    """How a gesture ended: DROPPED with an intent, or CANCELLED."""

    model_config = ConfigDict(frozen=True)

    phase: DragPhase
    intent: Optional[DropIntent] = None
