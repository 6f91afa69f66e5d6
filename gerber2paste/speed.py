"""
Feed rates chosen by pad size.

Each pad falls in one area bin (micro, small, medium, large). Every bin carries
travel, approach, dispense and retract feeds in mm/min. The paste viscosity
scales them, and travel speeds up by as much as SPEED_AREA_BOOST for the
larger pads inside a bin.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, NamedTuple

from . import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeedProfile:
    key: str
    name: str
    min_area: float
    max_area: float
    travel: float
    approach: float
    dispense: float
    retract: float

    def contains(self, area: float) -> bool:
        return self.min_area <= area < self.max_area


class Feeds(NamedTuple):
    travel: float
    approach: float
    dispense: float
    retract: float


SPEED_PROFILES = (
    SpeedProfile('micro', "Micro Pads (< 0.5mm)", 0.0, 0.25, 3000, 600, 200, 1200),
    SpeedProfile('small', "Small Pads (0.5-1.5mm)", 0.25, 2.25, 4000, 800, 300, 1500),
    SpeedProfile('medium', "Medium Pads (1.5-4mm)", 2.25, 16.0, 5000, 1000, 400, 2000),
    SpeedProfile('large', "Large Pads (> 4mm)", 16.0, math.inf, 6000, 1200, 500, 2500),
)
DEFAULT_PROFILE = 'medium'

# travel, approach, dispense, retract
VISCOSITY_MULTIPLIERS = {
    'low': Feeds(1.2, 1.1, 1.3, 1.1),
    'medium': Feeds(1.0, 1.0, 1.0, 1.0),
    'high': Feeds(0.9, 0.8, 0.7, 0.9),
}


def pad_area(pad) -> float:
    """Bounding-box area of a pad; the bins are sized on width x height."""
    return pad.width * pad.height


class SpeedProfileManager:
    def __init__(self, viscosity: str = 'medium', profiles=SPEED_PROFILES):
        if viscosity not in VISCOSITY_MULTIPLIERS:
            raise ValueError(f"Unknown viscosity '{viscosity}', expected one of {sorted(VISCOSITY_MULTIPLIERS)}")
        self.viscosity = viscosity
        self.profiles = {p.key: p for p in profiles}

    def profile_for(self, pad) -> SpeedProfile:
        area = pad_area(pad)
        for profile in self.profiles.values():
            if profile.contains(area):
                return profile
        logger.debug("Pad %s area %.3f mm^2 outside every bin, using %s", pad.id, area, DEFAULT_PROFILE)
        return self.profiles[DEFAULT_PROFILE]

    def feeds_for(self, pad) -> Feeds:
        profile = self.profile_for(pad)
        multiplier = VISCOSITY_MULTIPLIERS[self.viscosity]

        span = profile.max_area - profile.min_area
        if math.isinf(span):
            area_ratio = 0.0
        else:
            area_ratio = min(max((pad_area(pad) - profile.min_area) / span, 0.0), 1.0)
        area_factor = 1.0 + area_ratio * config.SPEED_AREA_BOOST

        return Feeds(travel=round(profile.travel * multiplier.travel * area_factor),
                     approach=round(profile.approach * multiplier.approach),
                     dispense=round(profile.dispense * multiplier.dispense),
                     retract=round(profile.retract * multiplier.retract))

    def profile_stats(self, pads: Iterable) -> Dict[str, int]:
        """Pad count per profile key, only for bins that are used."""
        return dict(Counter(self.profile_for(pad).key for pad in pads))
