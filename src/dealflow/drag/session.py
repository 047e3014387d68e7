"""Single-owner drag session.

The session tracks exactly one gesture at a time. It knows nothing about
transition rules or persistence: it turns pointer input into a
DropIntent, which the reconciler validates and applies.
"""

import logging
from typing import Dict, Optional

from src.dealflow.board.models import DealId
from src.dealflow.drag.geometry import Point, Rect, closest_corners
from src.dealflow.drag.models import DragPhase, DragState, DropIntent, GestureResult
from src.dealflow.errors import DragInProgressError, NoActiveDragError


logger = logging.getLogger(__name__)


class DragSession:
    """Drag gesture state machine.

    A press on a deal opens the session in PENDING. Once the pointer has
    moved more than `activation_distance` away from the press point the
    session becomes DRAGGING and every move re-runs collision detection
    to update the candidate target. Release or cancel always returns the
    session to IDLE.

    Only one gesture may be open: pressing while a gesture is PENDING or
    DRAGGING raises DragInProgressError.

    Attributes:
        activation_distance: Pointer travel, in pixels, that turns a press
            into a drag.

    Example:
        >>> session = DragSession(activation_distance=8)
        >>> session.press(7, "lead", Point(x=0, y=0))
        >>> session.move(Point(x=20, y=0), regions=column_rects)
        >>> result = session.release()
        >>> result.intent.to_state
        'confirmed'
    """

    def __init__(self, activation_distance: float = 8.0):
        if activation_distance < 0:
            raise ValueError("activation_distance cannot be negative")
        self.activation_distance = activation_distance
        self._clear()

    def _clear(self) -> None:
        self._phase = DragPhase.IDLE
        self._active_id: Optional[DealId] = None
        self._origin_state: Optional[str] = None
        self._candidate_state: Optional[str] = None
        self._press_point: Optional[Point] = None
        self._pointer: Optional[Point] = None
        self._item_rect: Optional[Rect] = None

    @property
    def phase(self) -> DragPhase:
        return self._phase

    @property
    def active_id(self) -> Optional[DealId]:
        return self._active_id

    @property
    def candidate_state(self) -> Optional[str]:
        return self._candidate_state

    @property
    def is_open(self) -> bool:
        """Whether a gesture is in progress (pending or dragging)."""
        return self._phase in (DragPhase.PENDING, DragPhase.DRAGGING)

    def snapshot(self) -> DragState:
        return DragState(
            phase=self._phase,
            active_id=self._active_id,
            origin_state=self._origin_state,
            candidate_state=self._candidate_state,
            pointer=self._pointer,
        )

    def press(
        self,
        deal_id: DealId,
        origin_state: str,
        pointer: Point,
        item_rect: Optional[Rect] = None,
    ) -> DragState:
        """Open a gesture on a deal.

        Args:
            deal_id: The deal under the pointer.
            origin_state: The deal's state when the gesture started.
            pointer: Pointer position at press time.
            item_rect: Bounding box of the deal's card at press time, used
                for collision detection while dragging.

        Returns:
            The new session state.

        Raises:
            DragInProgressError: If a gesture is already open.
        """
        self._ensure_closed(deal_id)

        self._active_id = deal_id
        self._origin_state = origin_state
        self._press_point = pointer
        self._pointer = pointer
        self._item_rect = item_rect
        self._phase = (
            DragPhase.DRAGGING if self.activation_distance == 0 else DragPhase.PENDING
        )

        logger.debug(
            "Drag gesture opened",
            extra={"deal_id": deal_id, "phase": self._phase.value},
        )
        return self.snapshot()

    def start(self, deal_id: DealId, origin_state: str) -> DragState:
        """Open a gesture that is active immediately (keyboard pick-up).

        Raises:
            DragInProgressError: If a gesture is already open.
        """
        self._ensure_closed(deal_id)
        self._active_id = deal_id
        self._origin_state = origin_state
        self._phase = DragPhase.DRAGGING
        logger.debug("Drag gesture started", extra={"deal_id": deal_id})
        return self.snapshot()

    def move(
        self,
        pointer: Point,
        regions: Optional[Dict[str, Rect]] = None,
    ) -> DragState:
        """Track pointer movement.

        Args:
            pointer: Current pointer position.
            regions: Bounding box per drop region (state id). When given
                and the gesture is dragging, the candidate target is
                recomputed with closest-corners detection.

        Returns:
            The updated session state.

        Raises:
            NoActiveDragError: If no gesture is open.
        """
        if not self.is_open:
            raise NoActiveDragError("move")

        self._pointer = pointer

        if self._phase == DragPhase.PENDING:
            origin = self._press_point or pointer
            if pointer.distance_to(origin) > self.activation_distance:
                self._phase = DragPhase.DRAGGING
                logger.debug(
                    "Drag activated",
                    extra={"deal_id": self._active_id},
                )

        if self._phase == DragPhase.DRAGGING and regions is not None:
            self._candidate_state = closest_corners(self._dragged_rect(pointer), regions)

        return self.snapshot()

    def hover(self, state: Optional[str]) -> DragState:
        """Set the candidate target directly (keyboard or explicit hover).

        Raises:
            NoActiveDragError: If no gesture is dragging.
        """
        if self._phase != DragPhase.DRAGGING:
            raise NoActiveDragError("hover")
        self._candidate_state = state
        return self.snapshot()

    def release(self) -> GestureResult:
        """End the gesture on pointer release.

        Returns:
            GestureResult in DROPPED phase with a DropIntent when the
            gesture was dragging over a candidate; CANCELLED otherwise
            (including a press released before activation).

        Raises:
            NoActiveDragError: If no gesture is open.
        """
        if not self.is_open:
            raise NoActiveDragError("release")

        if (
            self._phase == DragPhase.DRAGGING
            and self._candidate_state is not None
            and self._origin_state is not None
        ):
            result = GestureResult(
                phase=DragPhase.DROPPED,
                intent=DropIntent(
                    deal_id=self._active_id,
                    from_state=self._origin_state,
                    to_state=self._candidate_state,
                ),
            )
        else:
            result = GestureResult(phase=DragPhase.CANCELLED)

        self._clear()
        return result

    def cancel(self) -> GestureResult:
        """Abort the gesture (focus loss, escape key).

        Cancelling with no gesture open is a no-op, since cancellation
        signals may arrive after the gesture already ended.
        """
        if self.is_open:
            logger.debug("Drag gesture cancelled", extra={"deal_id": self._active_id})
        self._clear()
        return GestureResult(phase=DragPhase.CANCELLED)

    def _ensure_closed(self, requested_id: DealId) -> None:
        if self.is_open:
            raise DragInProgressError(self._active_id, requested_id)

    def _dragged_rect(self, pointer: Point) -> Rect:
        if self._item_rect is None or self._press_point is None:
            return Rect(left=pointer.x, top=pointer.y, width=0, height=0)
        return self._item_rect.translate(
            pointer.x - self._press_point.x,
            pointer.y - self._press_point.y,
        )
