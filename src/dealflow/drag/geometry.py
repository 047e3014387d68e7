"""Pointer geometry and drop-target collision detection.

Collision detection uses the closest-corners heuristic: for every drop
region, the distances between the four corners of the dragged item's
bounding box and the matching four corners of the region are summed,
and the region with the smallest sum wins. This favours the column the
card visually sits in over the one the pointer merely brushes.
"""

import math
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Point(BaseModel):
    """A pointer position in board coordinates."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


class Rect(BaseModel):
    """An axis-aligned bounding box.

    Attributes:
        left: X coordinate of the left edge.
        top: Y coordinate of the top edge.
        width: Box width, non-negative.
        height: Box height, non-negative.
    """

    model_config = ConfigDict(frozen=True)

    left: float
    top: float
    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def corners(self) -> Tuple[Point, Point, Point, Point]:
        """Corners in top-left, top-right, bottom-left, bottom-right order."""
        return (
            Point(x=self.left, y=self.top),
            Point(x=self.right, y=self.top),
            Point(x=self.left, y=self.bottom),
            Point(x=self.right, y=self.bottom),
        )

    def translate(self, dx: float, dy: float) -> "Rect":
        return self.model_copy(update={"left": self.left + dx, "top": self.top + dy})

    def contains(self, point: Point) -> bool:
        return self.left <= point.x <= self.right and self.top <= point.y <= self.bottom


def corner_distance(active: Rect, region: Rect) -> float:
    """Sum of distances between matching corners of two boxes."""
    return sum(
        a.distance_to(b) for a, b in zip(active.corners(), region.corners())
    )


def closest_corners(active: Rect, regions: Dict[str, Rect]) -> Optional[str]:
    """Pick the drop region nearest to the dragged item.

    Args:
        active: Current bounding box of the dragged item.
        regions: Bounding box per drop region (state id), in display
            order. Ties resolve to the region listed first.

    Returns:
        The id of the closest region, or None if there are no regions.
    """
    best: Optional[str] = None
    best_distance = math.inf
    for region_id, rect in regions.items():
        distance = corner_distance(active, rect)
        if distance < best_distance:
            best = region_id
            best_distance = distance
    return best
