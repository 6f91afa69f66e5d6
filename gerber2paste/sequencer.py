"""
Dispensing sequence planning.

Two modes, both greedy nearest-neighbor from a reference point:

- sequence_nearest(): flat XY distance only.
- SafePathPlanner: prefers pads reachable without crossing a component taller
  than the clearance height; when none is, it takes the nearest pad anyway and
  routes over everything at the safe height.

Every call recomputes the whole sequence from scratch. Ties go to the pad that
comes first in the input list.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .config import PlannerSettings
from .errors import check_cancel
from .geometry import Pad

logger = logging.getLogger(__name__)

LIFT = 'lift'
TRAVEL = 'travel'
LOWER = 'lower'

NORMAL_PATH = 'normal'
HIGH_CLEARANCE_PATH = 'high_clearance'


@dataclass(frozen=True)
class Point3D:
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class PathSegment:
    type: str
    start: Point3D
    end: Point3D

    @property
    def distance(self) -> float:
        return math.sqrt((self.end.x - self.start.x) ** 2 + (self.end.y - self.start.y) ** 2
                         + (self.end.z - self.start.z) ** 2)


@dataclass(frozen=True)
class SafePath:
    segments: Tuple[PathSegment, ...]
    safe_height: float
    path_type: str

    @property
    def total_distance(self) -> float:
        return sum(segment.distance for segment in self.segments)


@dataclass(frozen=True)
class DispensingSequenceEntry:
    pad: Pad
    sequence_order: int
    path_distance: float
    requires_high_clearance: bool = False
    safe_path: Optional[SafePath] = None


@dataclass(frozen=True)
class ComponentHeight:
    pad_id: str
    height: float


@dataclass(frozen=True)
class Obstacle:
    x: float
    y: float
    height: float
    radius: Optional[float] = None


@dataclass(frozen=True)
class PathAnalysis:
    distance: float
    max_height: float
    is_safe: bool
    requires_clearance: float


def _distance(p1, p2) -> float:
    return math.hypot(p2.x - p1.x, p2.y - p1.y)


def _nearest(current, unvisited: Sequence[Pad]) -> Tuple[int, float]:
    best_idx = 0
    best_distance = _distance(current, unvisited[0])
    for idx in range(1, len(unvisited)):
        distance = _distance(current, unvisited[idx])
        if distance < best_distance:
            best_distance = distance
            best_idx = idx
    return best_idx, best_distance


def sequence_nearest(reference_point, pads: Iterable[Pad],
                     should_cancel: Optional[Callable[[], bool]] = None) -> List[DispensingSequenceEntry]:
    """Greedy nearest-neighbor tour over the pads starting from reference_point."""
    unvisited = list(pads)
    sequence: List[DispensingSequenceEntry] = []
    current = reference_point

    while unvisited:
        check_cancel(should_cancel)
        idx, distance = _nearest(current, unvisited)
        pad = unvisited.pop(idx)
        sequence.append(DispensingSequenceEntry(pad=pad, sequence_order=len(sequence) + 1,
                                                path_distance=distance))
        current = pad

    return sequence


def total_path_distance(sequence: Iterable[DispensingSequenceEntry]) -> float:
    return sum(entry.path_distance for entry in sequence)


# =========================================================================================
class SafePathPlanner:
    """
    Collision-aware sequencing against a point-estimated height map.

    Heights come from ComponentHeight records (looked up through the pad list by
    pad id) and from positioned Obstacles. A component occupies a disc of
    settings.component_radius around its pad.
    """

    def __init__(self, settings: Optional[PlannerSettings] = None, pads: Sequence[Pad] = (),
                 heights: Iterable[ComponentHeight] = (), obstacles: Iterable[Obstacle] = ()):
        self.settings = settings or PlannerSettings()
        self._obstacles = self._build_height_map(pads, heights, obstacles)

    def _build_height_map(self, pads: Sequence[Pad], heights: Iterable[ComponentHeight],
                          obstacles: Iterable[Obstacle]) -> np.ndarray:
        """Rows of (x, y, height, radius)."""
        pads_by_id: Dict[str, Pad] = {pad.id: pad for pad in pads}
        height_by_id: Dict[str, float] = {}
        for component in heights:
            if component.height and component.pad_id:
                height_by_id[component.pad_id] = component.height

        rows = []
        for pad_id, height in height_by_id.items():
            pad = pads_by_id.get(pad_id)
            if pad is None:
                logger.debug("Component height for unknown pad %s ignored", pad_id)
                continue
            rows.append((pad.x, pad.y, height, self.settings.component_radius))
        for obstacle in obstacles:
            radius = self.settings.component_radius if obstacle.radius is None else obstacle.radius
            rows.append((obstacle.x, obstacle.y, obstacle.height, radius))

        return np.array(rows, dtype=float).reshape(-1, 4)

    @property
    def tallest_component(self) -> float:
        return float(self._obstacles[:, 2].max()) if len(self._obstacles) else 0.0

    @property
    def high_clearance_height(self) -> float:
        """Travel height for forced routes: at least safe_height and above every known obstacle."""
        return max(self.settings.safe_height, self.tallest_component + self.settings.clearance_height)

    def discretize_path(self, start, end) -> np.ndarray:
        distance = _distance(start, end)
        steps = max(1, math.ceil(distance / self.settings.path_step))
        t = np.linspace(0.0, 1.0, steps + 1)
        return np.column_stack([start.x + (end.x - start.x) * t, start.y + (end.y - start.y) * t])

    def heights_at(self, points: np.ndarray) -> np.ndarray:
        if not len(self._obstacles):
            return np.zeros(len(points))
        dx = points[:, 0, None] - self._obstacles[None, :, 0]
        dy = points[:, 1, None] - self._obstacles[None, :, 1]
        inside = np.hypot(dx, dy) <= self._obstacles[None, :, 3]
        return np.where(inside, self._obstacles[None, :, 2], 0.0).max(axis=1)

    def height_at(self, point) -> float:
        return float(self.heights_at(np.array([[point.x, point.y]]))[0])

    def analyze_path(self, start, end) -> PathAnalysis:
        max_height = float(self.heights_at(self.discretize_path(start, end)).max())
        return PathAnalysis(distance=_distance(start, end), max_height=max_height,
                            is_safe=max_height <= self.settings.clearance_height,
                            requires_clearance=max_height + self.settings.clearance_height)

    def generate_safe_path(self, start, end, force_high_clearance: bool = False) -> SafePath:
        if force_high_clearance:
            travel_z = self.high_clearance_height
        else:
            travel_z = max(self.settings.clearance_height, self.analyze_path(start, end).requires_clearance)

        dispense_z = self.settings.dispense_height
        lifted = Point3D(start.x, start.y, travel_z)
        above_target = Point3D(end.x, end.y, travel_z)
        segments = (
            PathSegment(LIFT, Point3D(start.x, start.y, dispense_z), lifted),
            PathSegment(TRAVEL, lifted, above_target),
            PathSegment(LOWER, above_target, Point3D(end.x, end.y, dispense_z)),
        )
        return SafePath(segments=segments, safe_height=travel_z,
                        path_type=HIGH_CLEARANCE_PATH if force_high_clearance else NORMAL_PATH)

    def find_nearest_safe_pad(self, current, unvisited: Sequence[Pad]) -> Optional[int]:
        best_idx = None
        best_distance = math.inf
        for idx, pad in enumerate(unvisited):
            analysis = self.analyze_path(current, pad)
            if analysis.is_safe and analysis.distance < best_distance:
                best_distance = analysis.distance
                best_idx = idx
        return best_idx

    def calculate_safe_sequence(self, reference_point, pads: Sequence[Pad],
                                should_cancel: Optional[Callable[[], bool]] = None) -> List[DispensingSequenceEntry]:
        if not pads:
            return []

        unvisited = list(pads)
        sequence: List[DispensingSequenceEntry] = []
        current = reference_point

        while unvisited:
            check_cancel(should_cancel)
            idx = self.find_nearest_safe_pad(current, unvisited)
            forced = idx is None
            if forced:
                idx, _ = _nearest(current, unvisited)

            pad = unvisited.pop(idx)
            path = self.generate_safe_path(current, pad, force_high_clearance=forced)
            if forced:
                logger.info("No safe path to pad %s, routing at %.2f mm", pad.id, path.safe_height)
            sequence.append(DispensingSequenceEntry(pad=pad, sequence_order=len(sequence) + 1,
                                                    path_distance=path.total_distance,
                                                    requires_high_clearance=forced, safe_path=path))
            current = pad

        return sequence


FLAT = 'flat'
SAFE = 'safe'


def plan_sequence(reference_point, pads: Sequence[Pad], mode: str = FLAT,
                  heights: Iterable[ComponentHeight] = (), obstacles: Iterable[Obstacle] = (),
                  settings: Optional[PlannerSettings] = None,
                  should_cancel: Optional[Callable[[], bool]] = None) -> List[DispensingSequenceEntry]:
    if mode == FLAT:
        return sequence_nearest(reference_point, pads, should_cancel)
    if mode == SAFE:
        planner = SafePathPlanner(settings, pads, heights, obstacles)
        return planner.calculate_safe_sequence(reference_point, pads, should_cancel)
    raise ValueError(f"Unknown sequencing mode: {mode}")
