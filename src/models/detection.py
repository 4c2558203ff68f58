"""
Detection models for people-detector results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    An axis-aligned box in pixel coordinates, as (origin, size).

    Attributes:
        x: Left edge x coordinate.
        y: Top edge y coordinate.
        width: Box width in pixels.
        height: Box height in pixels.
    """
    x: int
    y: int
    width: int
    height: int

    @property
    def x2(self) -> int:
        return self.x + self.width

    @property
    def y2(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @classmethod
    def from_rect(cls, rect: Iterable) -> "BoundingBox":
        """Create from an OpenCV (x, y, w, h) rectangle."""
        x, y, w, h = (int(v) for v in rect)
        return cls(x=x, y=y, width=w, height=h)


@dataclass(frozen=True)
class DetectionResult:
    """
    Boxes found in one frame, in the order the detector returned them.

    The count of this result is the single number both logged and published
    for the frame it came from.
    """
    boxes: Tuple[BoundingBox, ...] = ()

    @property
    def count(self) -> int:
        return len(self.boxes)

    def __len__(self) -> int:
        return len(self.boxes)

    def __iter__(self) -> Iterator[BoundingBox]:
        return iter(self.boxes)

    @classmethod
    def from_rects(cls, rects: Iterable) -> "DetectionResult":
        """Build from the rectangle array returned by detectMultiScale."""
        if rects is None:
            return cls()
        return cls(boxes=tuple(BoundingBox.from_rect(r) for r in rects))
