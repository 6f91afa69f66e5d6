"""
Value objects shared by every stage of the pipeline.

All coordinates are millimeters. Whether a point lives in the design frame
(Gerber coordinates) or the machine frame is tracked by the caller; nothing
here converts between the two.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
from shapely.geometry import LineString, Point, Polygon, box
from shapely.ops import unary_union


class PadShape(str, Enum):
    CIRCLE = 'circle'
    RECT = 'rect'


class PadSource(str, Enum):
    STRUCTURAL = 'structural'
    TARGET = 'dispensing-target'
    FUSED = 'fused'


@dataclass(frozen=True)
class Point2D:
    x: float
    y: float

    def distance_to(self, other) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class Pad:
    x: float
    y: float
    width: float
    height: float
    shape: PadShape
    id: str
    source: PadSource
    needs_paste: Optional[bool] = None
    paste_order: Optional[int] = None
    match_distance: Optional[float] = None
    geometry_missing: bool = False

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Pad {self.id}: width and height must be positive")

    @property
    def area(self) -> float:
        if self.shape == PadShape.CIRCLE:
            return math.pi * (self.width / 2) ** 2
        return self.width * self.height

    def distance_to(self, other) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def moved_to(self, x: float, y: float) -> 'Pad':
        return replace(self, x=x, y=y)

    def as_shape(self):
        """Shapely footprint of the pad."""
        if self.shape == PadShape.CIRCLE:
            return Point(self.x, self.y).buffer(self.width / 2)
        w = self.width / 2
        h = self.height / 2
        return box(self.x - w, self.y - h, self.x + w, self.y + h)


@dataclass(frozen=True)
class BoardOutline:
    min_x: float
    min_y: float
    max_x: float
    max_y: float
    points: Tuple[Point2D, ...] = field(default_factory=tuple)

    @classmethod
    def from_points(cls, points: Sequence[Point2D]) -> Optional['BoardOutline']:
        if not points:
            return None
        coords = np.array([(p.x, p.y) for p in points])
        return cls(
            min_x=float(np.min(coords[:, 0])),
            min_y=float(np.min(coords[:, 1])),
            max_x=float(np.max(coords[:, 0])),
            max_y=float(np.max(coords[:, 1])),
            points=tuple(points),
        )

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center_x(self) -> float:
        return (self.min_x + self.max_x) / 2.0

    @property
    def center_y(self) -> float:
        return (self.min_y + self.max_y) / 2.0

    def as_shape(self):
        """Polygon through the outline points, or the bounding box when they don't form one."""
        coords = [p.as_tuple() for p in self.points]
        if len(coords) >= 3:
            poly = Polygon(coords)
            if poly.is_valid and poly.area > 0:
                return poly
        if self.width > 0 and self.height > 0:
            return box(self.min_x, self.min_y, self.max_x, self.max_y)
        return LineString(coords) if len(coords) >= 2 else Point(self.min_x, self.min_y)


@dataclass(frozen=True)
class FiducialCandidate:
    x: float
    y: float
    diameter: float
    confidence: float
    is_circular: bool = True
    hole_diameter: float = 0.0


@dataclass(frozen=True)
class ReferencePoint:
    x: float
    y: float
    id: str
    kind: str
    confidence: Optional[float] = None
    diameter: Optional[float] = None
    source_layer: Optional[str] = None

    def as_point(self) -> Point2D:
        return Point2D(self.x, self.y)


@dataclass(frozen=True)
class DrillHole:
    x: float
    y: float
    diameter: float
    tool: int


def bounds_of(points: Sequence) -> Optional[Tuple[float, float, float, float]]:
    """(min_x, min_y, max_x, max_y) of anything with .x/.y, or None when empty."""
    if not points:
        return None
    coords = np.array([(p.x, p.y) for p in points])
    return (float(np.min(coords[:, 0])), float(np.min(coords[:, 1])),
            float(np.max(coords[:, 0])), float(np.max(coords[:, 1])))


def pads_footprint(pads: List[Pad]):
    return unary_union([pad.as_shape() for pad in pads])
