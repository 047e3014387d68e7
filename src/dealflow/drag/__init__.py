"""Drag gesture tracking and drop-target detection."""

from src.dealflow.drag.geometry import Point, Rect, closest_corners, corner_distance
from src.dealflow.drag.models import DragPhase, DragState, DropIntent, GestureResult
from src.dealflow.drag.session import DragSession

__all__ = [
    # Geometry
    "Point",
    "Rect",
    "closest_corners",
    "corner_distance",
    # Session
    "DragPhase",
    "DragSession",
    "DragState",
    "DropIntent",
    "GestureResult",
]
