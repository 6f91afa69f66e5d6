"""
Pad combination.

The copper layer knows where a pad really is, the solder paste layer knows which
pads get paste. combine() fuses the two: a matched pad keeps the copper position
and takes its dispense order from the paste layer.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, List

from . import config
from .gerber import extract_pads
from .geometry import Pad, PadSource
from .layers import COPPER, SOLDERPASTE, Layer, find_layer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CombinedPads:
    pads: List[Pad]
    matched_count: int
    total_structural: int
    total_target: int
    has_geometry: bool = True
    has_dispensing: bool = True


def combine(structural_pads: List[Pad], target_pads: List[Pad],
            threshold: float = config.PAD_MATCH_THRESHOLD) -> CombinedPads:
    if not structural_pads or not target_pads:
        passthrough = list(structural_pads or target_pads)
        return CombinedPads(pads=passthrough, matched_count=0,
                            total_structural=len(structural_pads), total_target=len(target_pads),
                            has_geometry=bool(structural_pads), has_dispensing=bool(target_pads))

    combined: List[Pad] = []
    claimed = set()

    for structural_idx, structural in enumerate(structural_pads):
        closest_idx = -1
        min_distance = math.inf

        for target_idx, target in enumerate(target_pads):
            if target_idx in claimed:
                continue
            distance = math.hypot(structural.x - target.x, structural.y - target.y)
            if distance < min_distance and distance <= threshold:
                min_distance = distance
                closest_idx = target_idx

        pad_id = f"C{structural_idx + 1}"
        if closest_idx >= 0:
            claimed.add(closest_idx)
            combined.append(replace(structural, id=pad_id, source=PadSource.FUSED, needs_paste=True,
                                    paste_order=closest_idx + 1, match_distance=min_distance))
        else:
            combined.append(replace(structural, id=pad_id, source=PadSource.STRUCTURAL, needs_paste=False))

    for target_idx, target in enumerate(target_pads):
        if target_idx not in claimed:
            combined.append(replace(target, id=f"P{target_idx + 1}", source=PadSource.TARGET,
                                    needs_paste=True, paste_order=target_idx + 1, geometry_missing=True))

    logger.info("Matched %d of %d copper pads with %d paste pads",
                len(claimed), len(structural_pads), len(target_pads))
    return CombinedPads(pads=combined, matched_count=len(claimed),
                        total_structural=len(structural_pads), total_target=len(target_pads))


def combine_pad_layers(layers: Iterable[Layer], side: str) -> CombinedPads:
    """Combines the copper and solder paste layers of one board side."""
    layers = list(layers)
    copper = find_layer(layers, COPPER, side)
    paste = find_layer(layers, SOLDERPASTE, side)

    copper_pads = extract_pads(copper.text, PadSource.STRUCTURAL, 'C') if copper else []
    paste_pads = extract_pads(paste.text, PadSource.TARGET, 'P') if paste else []
    return combine(copper_pads, paste_pads)


def pads_needing_paste(pads: Iterable[Pad]) -> List[Pad]:
    """Pads to dispense on; pads with unknown paste status are kept."""
    return [pad for pad in pads if pad.needs_paste is not False]
