"""
G-code output for dispensing sequences and profiled moves.

Programs are built as lists of lines so they can be inspected before they are
written; write() puts them on disk.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from . import config
from .config import AxisLimits, PlannerSettings
from .motion import MotionProfile, profile_move
from .sequencer import LIFT, LOWER, DispensingSequenceEntry
from .speed import Feeds, SpeedProfileManager

logger = logging.getLogger(__name__)

MIN_FEED = 1.0


def _feed(value: float) -> float:
    return max(MIN_FEED, value)


class GcodeGenerator:
    def __init__(self, settings: Optional[PlannerSettings] = None,
                 travel_feed: float = config.TRAVEL_FEED_RATE,
                 approach_feed: float = config.APPROACH_FEED_RATE,
                 dwell_ms: float = config.DISPENSE_DWELL_MS,
                 ms_per_mm2: float = config.DISPENSE_MS_PER_MM2,
                 speed_profiles: Optional[SpeedProfileManager] = None):
        self.settings = settings or PlannerSettings()
        self.travel_feed = travel_feed
        self.approach_feed = approach_feed
        self.dwell_ms = dwell_ms
        self.ms_per_mm2 = ms_per_mm2
        self.speed_profiles = speed_profiles

    def _header(self, description: str) -> List[str]:
        return [
            "%",
            f"; GCODE FILE: {description}",
            "G21  ; Set units to mm",
            "G90  ; Absolute positioning",
            "G28  ; Homing",
            f"G0 Z{self.settings.safe_height:.2f} F{self.travel_feed:.0f} ; Move to safe height",
        ]

    def _footer(self) -> List[str]:
        return [
            "",
            "; --- FINALIZATION ---",
            f"{config.DISPENSE_OFF}  ; Dispenser off",
            f"G0 Z{self.settings.safe_height:.2f} F{self.travel_feed:.0f}",
            "M84 ; Disable Steppers",
            "M30 ; End of program",
            "%",
        ]

    def dwell_for(self, pad) -> int:
        """Dispense time in ms; grows with pad area when ms_per_mm2 is set."""
        return int(round(self.dwell_ms + self.ms_per_mm2 * pad.area))

    def feeds_for(self, pad) -> Feeds:
        """Per-pad feeds from the speed profiles, or the fixed feeds when none are set."""
        if self.speed_profiles is None:
            return Feeds(self.travel_feed, self.approach_feed, self.approach_feed, self.travel_feed)
        return self.speed_profiles.feeds_for(pad)

    def _approach(self, entry: DispensingSequenceEntry, feeds: Feeds) -> List[str]:
        pad = entry.pad
        if entry.safe_path is None:
            return [
                f"G0 Z{self.settings.safe_height:.2f} F{feeds.retract:.0f}",
                f"G0 X{pad.x:.3f} Y{pad.y:.3f} F{feeds.travel:.0f}",
                f"G1 Z{self.settings.dispense_height:.3f} F{feeds.approach:.0f}",
            ]

        lines = []
        for segment in entry.safe_path.segments:
            end = segment.end
            if segment.type == LIFT:
                lines.append(f"G0 Z{end.z:.2f} F{feeds.retract:.0f}")
            elif segment.type == LOWER:
                lines.append(f"G1 Z{end.z:.3f} F{feeds.approach:.0f}")
            else:
                lines.append(f"G0 X{end.x:.3f} Y{end.y:.3f} F{feeds.travel:.0f}")
        return lines

    def dispensing_program(self, sequence: Sequence[DispensingSequenceEntry],
                           description: str = "Solder Paste Dispensing") -> List[str]:
        lines = self._header(description)
        lines.append("")
        lines.append("; --- DISPENSING ---")

        for entry in sequence:
            pad = entry.pad
            note = " (high clearance)" if entry.requires_high_clearance else ""
            lines.append(f"; {entry.sequence_order}: pad {pad.id}{note}")
            feeds = self.feeds_for(pad)
            if self.speed_profiles is not None:
                lines.append(f"; Travel: {feeds.travel:.0f} mm/min, Approach: {feeds.approach:.0f} mm/min, "
                             f"Dispense: {feeds.dispense:.0f} mm/min, Retract: {feeds.retract:.0f} mm/min")
            lines.extend(self._approach(entry, feeds))
            lines.append(config.DISPENSE_ON)
            lines.append(f"G4 P{self.dwell_for(pad)}")
            lines.append(config.DISPENSE_OFF)

        lines.extend(self._footer())
        logger.info("Dispensing program: %d pads, %d lines", len(sequence), len(lines))
        return lines

    def linear_move_program(self, profile: MotionProfile) -> List[str]:
        """One G1 for the whole move at a derated line speed."""
        end = profile.end
        feed = _feed(config.LINE_FEED_DERATE * profile.v_line * 60.0)
        return [f"G1 X{end.x:.3f} Y{end.y:.3f} F{feed:.0f}"]

    def profile_feed_lines(self, profile: MotionProfile) -> List[str]:
        """
        One G1 per waypoint interval.

        The feed of each line is the mean of the instantaneous speeds at both ends
        of the interval, so the final decelerating step doesn't crawl at speed 0.
        """
        lines = []
        waypoints = profile.waypoints
        for prev, cur in zip(waypoints, waypoints[1:]):
            feed = _feed((prev.feed + cur.feed) / 2.0)
            lines.append(f"G1 X{cur.x:.3f} Y{cur.y:.3f} Z{cur.z:.3f} F{feed:.0f}")
        return lines

    def placement_program(self, a, b, z_safe: float, z_work: float,
                          limits: AxisLimits = AxisLimits()) -> List[str]:
        """Lift at a, profiled XY move to b at z_safe, lower to z_work."""
        z_feed = _feed(limits.vz * 60.0)
        profile = profile_move(a, b, limits)
        lines = [f"G0 Z{z_safe:.2f} F{z_feed:.0f}"]
        lines.extend(self.linear_move_program(profile))
        lines.append(f"G1 Z{z_work:.3f} F{z_feed:.0f}")
        return lines

    def write(self, filename: str, lines: Iterable[str]) -> None:
        with open(filename, "w") as f:
            for line in lines:
                f.write(line + "\n")
        logger.info("G-code generated in '%s'", filename)
