import pytest

from gerber2paste.config import AxisLimits
from gerber2paste.gcode import GcodeGenerator
from gerber2paste.geometry import Pad, PadShape, PadSource, Point2D
from gerber2paste.motion import profile_move
from gerber2paste.sequencer import Obstacle, SafePathPlanner, sequence_nearest
from gerber2paste.speed import SpeedProfileManager


def make_pad(pad_id, x, y, width=1.0, height=1.0):
    return Pad(x=x, y=y, width=width, height=height, shape=PadShape.RECT, id=pad_id, source=PadSource.FUSED)


PADS = [make_pad('A', 0, 0), make_pad('B', 10, 0), make_pad('C', 0, 12)]


# ============================================================================
# DISPENSING PROGRAM TESTS
# ============================================================================

class TestDispensingProgram:
    def test_header_and_footer(self):
        lines = GcodeGenerator().dispensing_program(sequence_nearest(Point2D(0, 0), PADS))
        assert lines[0] == "%"
        assert "G21  ; Set units to mm" in lines
        assert "G90  ; Absolute positioning" in lines
        assert lines[-1] == "%"
        assert "M30 ; End of program" in lines

    def test_one_dispense_per_pad(self):
        lines = GcodeGenerator().dispensing_program(sequence_nearest(Point2D(0, 0), PADS))
        assert lines.count("M106 S255") == 3
        assert lines.count("G4 P120") == 3
        assert "G0 X10.000 Y0.000 F3000" in lines

    def test_safe_path_segments(self):
        planner = SafePathPlanner(obstacles=[Obstacle(5, 0, 6.0)])
        sequence = planner.calculate_safe_sequence(Point2D(0, 0), PADS[:2])
        lines = GcodeGenerator().dispensing_program(sequence)
        assert "G0 Z8.00 F3000" in lines
        assert "G1 Z0.100 F1000" in lines
        assert any("(high clearance)" in line for line in lines)

    def test_area_proportional_dwell(self):
        generator = GcodeGenerator(dwell_ms=100, ms_per_mm2=10)
        assert generator.dwell_for(make_pad('A', 0, 0, width=2.0, height=1.0)) == 120

    def test_feeds_from_speed_profiles(self):
        generator = GcodeGenerator(speed_profiles=SpeedProfileManager())
        lines = generator.dispensing_program(sequence_nearest(Point2D(0, 0), PADS))
        assert "G0 X10.000 Y0.000 F4300" in lines
        assert "G1 Z0.100 F800" in lines
        assert "G0 Z5.00 F1500" in lines
        assert lines.count("; Travel: 4300 mm/min, Approach: 800 mm/min, Dispense: 300 mm/min, Retract: 1500 mm/min") == 3

    def test_feeds_follow_pad_size(self):
        generator = GcodeGenerator(speed_profiles=SpeedProfileManager())
        pads = [make_pad('A', 0, 0, width=0.4, height=0.4), make_pad('B', 10, 0, width=5.0, height=5.0)]
        lines = generator.dispensing_program(sequence_nearest(Point2D(0, 0), pads))
        assert "G0 X0.000 Y0.000 F3384" in lines
        assert "G0 X10.000 Y0.000 F6000" in lines
        assert "G1 Z0.100 F1200" in lines

    def test_fixed_feeds_without_profiles(self):
        feeds = GcodeGenerator(travel_feed=2000, approach_feed=500).feeds_for(PADS[0])
        assert (feeds.travel, feeds.approach, feeds.retract) == (2000, 500, 2000)


# ============================================================================
# MOVE PROGRAM TESTS
# ============================================================================

class TestMovePrograms:
    def test_linear_move_feed(self):
        profile = profile_move(Point2D(0, 0), Point2D(100, 0), AxisLimits(vx=50, ax=500))
        assert GcodeGenerator().linear_move_program(profile) == ["G1 X100.000 Y0.000 F2850"]

    def test_zero_length_move_keeps_positive_feed(self):
        profile = profile_move(Point2D(3, 3), Point2D(3, 3))
        assert GcodeGenerator().linear_move_program(profile) == ["G1 X3.000 Y3.000 F1"]

    def test_profile_feed_lines(self):
        profile = profile_move(Point2D(0, 0), Point2D(100, 0), AxisLimits(vx=50, ax=500))
        lines = GcodeGenerator().profile_feed_lines(profile)
        assert len(lines) == len(profile.waypoints) - 1
        assert lines[-1].startswith("G1 X100.000 Y0.000")
        assert "F3000" in lines[len(lines) // 2]

    def test_placement_program(self):
        lines = GcodeGenerator().placement_program(Point2D(0, 0), Point2D(20, 0), 10.0, 0.5)
        assert lines == ["G0 Z10.00 F600", "G1 X20.000 Y0.000 F5700", "G1 Z0.500 F600"]

    def test_write(self, tmp_path):
        out = tmp_path / "paste.gcode"
        GcodeGenerator().write(str(out), ["G21", "M30"])
        assert out.read_text() == "G21\nM30\n"

    def test_short_move_has_no_zero_length_lines(self):
        profile = profile_move(Point2D(0, 0), Point2D(0.01, 0))
        assert GcodeGenerator().profile_feed_lines(profile) == ["G1 X0.010 Y0.000 Z0.000 F1"]
