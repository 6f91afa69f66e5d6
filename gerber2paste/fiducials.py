"""
Board origin and fiducial selection.

The origin is always the bottom-left corner of the outline. The frame is
SVG-like (Y grows downward), so "bottom" is max Y. Only that one origin is
reported.

Fiducials are found per layer, filtered down to the most plausible group of
same-sized flashes, then merged across layers.
"""

import logging
import math
from dataclasses import replace
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from . import config
from .gerber import extract
from .geometry import BoardOutline, FiducialCandidate, ReferencePoint, bounds_of
from .layers import COPPER, DRILL, OUTLINE, SOLDERMASK, Layer

logger = logging.getLogger(__name__)

OUTLINE_NAME_HINTS = ('outline', 'edge', 'gm1')
FIDUCIAL_LAYER_PRIORITY = ('fiducial', 'fid', 'fab', 'assembly', COPPER, SOLDERMASK, DRILL, OUTLINE)
FIDUCIAL_LAYER_TYPES = (COPPER, SOLDERMASK, DRILL, OUTLINE)
FIDUCIAL_NAME_HINTS = ('fiducial', 'fid', 'fab', 'assembly')
NO_PRIORITY = 999


# =========================================================================================
# Origin

def select_origin(outline: Optional[BoardOutline]) -> Optional[ReferencePoint]:
    if outline is None:
        return None
    return ReferencePoint(x=outline.min_x, y=outline.max_y, id='ORIGIN', kind='origin',
                          confidence=config.ORIGIN_CONFIDENCE)


def is_outline_layer(layer: Layer) -> bool:
    name = layer.filename.lower()
    return layer.type == OUTLINE or any(hint in name for hint in OUTLINE_NAME_HINTS)


def detect_board_origin(layers: Iterable[Layer]) -> Optional[ReferencePoint]:
    """Bottom-left corner of the first outline-like layer that has coordinates."""
    for layer in layers:
        if not is_outline_layer(layer):
            continue
        bounds = bounds_of(extract(layer.text).coordinates)
        if bounds is None:
            continue
        min_x, min_y, max_x, max_y = bounds
        logger.info("Board origin from %s: (%.3f, %.3f)", layer.filename, min_x, max_y)
        return ReferencePoint(x=min_x, y=max_y, id='ORIGIN', kind='origin',
                              confidence=config.ORIGIN_CONFIDENCE, source_layer=layer.filename)
    return None


# =========================================================================================
# Per-layer fiducial group filter

def _size_score(diameter: float) -> int:
    if 1.0 <= diameter <= 2.0:
        return 15
    if 0.8 <= diameter <= 3.0:
        return 10
    if 0.5 <= diameter <= 4.0:
        return 5
    return 1


def _count_score(count: int) -> int:
    if 2 <= count <= 4:
        return count * 3
    if 5 <= count <= 6:
        return count * 2
    if count > 6:
        return 6
    return 1


def distribution_score(candidates: Sequence[FiducialCandidate]) -> int:
    """Rewards groups that are spread across the board."""
    if len(candidates) < 2:
        return 0

    distances = [math.hypot(a.x - b.x, a.y - b.y) for a, b in combinations(candidates, 2)]
    min_distance = min(distances)
    max_distance = max(distances)
    avg_distance = sum(distances) / len(distances)

    score = 0
    if min_distance > 15:
        score += 8
    elif min_distance > 10:
        score += 5
    elif min_distance > 5:
        score += 2

    if max_distance > 30:
        score += 8
    elif max_distance > 20:
        score += 5
    elif max_distance > 10:
        score += 2

    if avg_distance > 20:
        score += 5
    elif avg_distance > 15:
        score += 3

    if len(candidates) in (3, 4):
        score += 3
    return score


def select_fiducial_group(candidates: Sequence[FiducialCandidate]) -> List[ReferencePoint]:
    """Picks the best same-diameter group of candidates and labels it F1..Fn."""
    if not candidates:
        return []

    groups: Dict[float, List[FiducialCandidate]] = {}
    for candidate in candidates:
        groups.setdefault(round(candidate.diameter, 2), []).append(candidate)

    best_group: List[FiducialCandidate] = []
    best_score = 0
    for diameter, group in groups.items():
        total = _size_score(diameter) + _count_score(len(group)) + distribution_score(group)
        if total > best_score:
            best_score = total
            best_group = group

    if len(best_group) < 2 or best_score <= config.FIDUCIAL_GROUP_MIN_SCORE:
        return []

    confidence = min(best_score / config.FIDUCIAL_GROUP_SCORE_NORM, 1.0)
    ordered = sorted(best_group, key=lambda c: c.y * 1000 + c.x)
    return [ReferencePoint(x=c.x, y=c.y, id=f"F{idx + 1}", kind='fiducial',
                           confidence=confidence, diameter=c.diameter)
            for idx, c in enumerate(ordered)]


def detect_fiducials(gerber_text: str) -> List[ReferencePoint]:
    return select_fiducial_group(extract(gerber_text).fiducial_candidates)


# =========================================================================================
# Multi-layer merge

def layer_priority(layer: Layer) -> int:
    """Lower is better: fiducial-named layers first, then by layer type."""
    name = layer.filename.lower()
    for idx, hint in enumerate(FIDUCIAL_LAYER_PRIORITY):
        if hint in name or hint == layer.type:
            return idx
    return NO_PRIORITY


def is_fiducial_layer(layer: Layer) -> bool:
    name = layer.filename.lower()
    return layer.type in FIDUCIAL_LAYER_TYPES or any(hint in name for hint in FIDUCIAL_NAME_HINTS)


def merge_fiducials(layer_fiducials: List[Tuple[str, int, List[ReferencePoint]]],
                    merge_distance: float = config.FIDUCIAL_MERGE_DISTANCE,
                    limit: int = config.MAX_FIDUCIALS) -> List[ReferencePoint]:
    """
    Merges (layer name, priority, fiducials) detections.

    Detections closer than merge_distance are the same fiducial. On conflict the
    more confident detection, or the one from a higher-priority layer, supplies the
    diameter and source layer; confidence only ever goes up.
    """
    if not layer_fiducials:
        return []

    ordered = sorted(layer_fiducials, key=lambda entry: entry[1])
    priorities = {name: priority for name, priority, _ in ordered}
    merged: List[ReferencePoint] = []

    for layer_name, priority, fiducials in ordered:
        for fid in fiducials:
            for idx, existing in enumerate(merged):
                if math.hypot(existing.x - fid.x, existing.y - fid.y) >= merge_distance:
                    continue
                existing_priority = priorities.get(existing.source_layer, NO_PRIORITY)
                if (fid.confidence or 0) > (existing.confidence or 0) or priority < existing_priority:
                    merged[idx] = replace(existing,
                                          confidence=max(existing.confidence or 0, fid.confidence or 0),
                                          diameter=fid.diameter, source_layer=layer_name)
                break
            else:
                merged.append(replace(fid, source_layer=layer_name))

    merged.sort(key=lambda f: f.confidence or 0, reverse=True)
    return [replace(fid, id=f"F{idx + 1}") for idx, fid in enumerate(merged[:limit])]


def analyze_fiducials_in_layers(layers: Iterable[Layer]) -> List[ReferencePoint]:
    relevant = sorted((layer for layer in layers if is_fiducial_layer(layer)),
                      key=layer_priority)

    detections = []
    for layer in relevant:
        fiducials = detect_fiducials(layer.text)
        if fiducials:
            logger.info("Found %d fiducial candidates in %s", len(fiducials), layer.filename)
            detections.append((layer.filename, layer_priority(layer), fiducials))

    result = merge_fiducials(detections)
    logger.info("Fiducial detection result: %d fiducials", len(result))
    return result
