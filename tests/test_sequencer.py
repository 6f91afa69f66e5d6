import random

import numpy as np
import pytest

from gerber2paste.config import PlannerSettings
from gerber2paste.errors import OperationCancelled
from gerber2paste.geometry import Pad, PadShape, PadSource, Point2D
from gerber2paste.sequencer import (HIGH_CLEARANCE_PATH, LIFT, LOWER, NORMAL_PATH, SAFE, TRAVEL,
                                    ComponentHeight, Obstacle, SafePathPlanner, plan_sequence,
                                    sequence_nearest, total_path_distance)


def make_pad(pad_id, x, y):
    return Pad(x=x, y=y, width=1.0, height=1.0, shape=PadShape.RECT, id=pad_id, source=PadSource.FUSED)


def random_pads(count, seed=42):
    rng = random.Random(seed)
    return [make_pad(f"C{i + 1}", rng.uniform(0, 80), rng.uniform(0, 60)) for i in range(count)]


# ============================================================================
# FLAT MODE TESTS
# ============================================================================

class TestSequenceNearest:
    def test_tie_goes_to_first_pad(self):
        pads = [make_pad('A', 0, 0), make_pad('B', 10, 0), make_pad('C', 0, 10)]
        sequence = sequence_nearest(Point2D(0, 0), pads)
        assert [e.pad.id for e in sequence] == ['A', 'B', 'C']
        assert [e.sequence_order for e in sequence] == [1, 2, 3]
        assert sequence[1].path_distance == pytest.approx(10.0)

    def test_covers_every_pad_once(self):
        pads = random_pads(60)
        sequence = sequence_nearest(Point2D(0, 0), pads)
        assert len(sequence) == len(pads)
        assert sorted(e.pad.id for e in sequence) == sorted(p.id for p in pads)

    def test_greedy_choice(self):
        pads = [make_pad('far', 50, 0), make_pad('near', 1, 1), make_pad('mid', 10, 0)]
        sequence = sequence_nearest(Point2D(0, 0), pads)
        assert [e.pad.id for e in sequence] == ['near', 'mid', 'far']
        assert total_path_distance(sequence) == pytest.approx(2 ** 0.5 + (81 + 1) ** 0.5 + 40)

    def test_empty(self):
        assert sequence_nearest(Point2D(0, 0), []) == []

    def test_cancel(self):
        with pytest.raises(OperationCancelled):
            sequence_nearest(Point2D(0, 0), random_pads(5), should_cancel=lambda: True)

    def test_recomputes_from_scratch(self):
        pads = random_pads(20)
        first = sequence_nearest(Point2D(0, 0), pads)
        second = sequence_nearest(Point2D(0, 0), pads)
        assert first == second


# ============================================================================
# HEIGHT MAP TESTS
# ============================================================================

class TestHeightMap:
    def test_heights_at(self):
        planner = SafePathPlanner(obstacles=[Obstacle(0, 0, 3.0, radius=1.0)])
        heights = planner.heights_at(np.array([[0.0, 0.0], [0.5, 0.0], [2.0, 0.0]]))
        assert heights.tolist() == [3.0, 3.0, 0.0]

    def test_tallest_wins_on_overlap(self):
        planner = SafePathPlanner(obstacles=[Obstacle(0, 0, 3.0), Obstacle(1, 0, 7.0)])
        assert planner.height_at(Point2D(0.5, 0)) == 7.0

    def test_component_heights_resolved_by_pad_id(self):
        pads = [make_pad('A', 0, 0), make_pad('B', 10, 0)]
        planner = SafePathPlanner(pads=pads, heights=[ComponentHeight('B', 4.0), ComponentHeight('ZZ', 9.0)])
        assert planner.tallest_component == 4.0
        assert planner.height_at(Point2D(11, 0)) == 4.0
        assert planner.height_at(Point2D(0, 0)) == 0.0

    def test_discretize(self):
        planner = SafePathPlanner()
        points = planner.discretize_path(Point2D(0, 0), Point2D(10, 0))
        assert len(points) == 21
        assert points[-1].tolist() == [10.0, 0.0]

    def test_analyze_path(self):
        planner = SafePathPlanner(obstacles=[Obstacle(5, 0, 6.0)])
        blocked = planner.analyze_path(Point2D(0, 0), Point2D(10, 0))
        assert blocked.max_height == 6.0
        assert blocked.is_safe is False
        assert blocked.requires_clearance == 8.0
        clear = planner.analyze_path(Point2D(0, 0), Point2D(0, 10))
        assert clear.is_safe is True


# ============================================================================
# SAFE PATH TESTS
# ============================================================================

class TestSafePath:
    def test_normal_path_clears_low_component(self):
        planner = SafePathPlanner(obstacles=[Obstacle(5, 0, 1.5)])
        path = planner.generate_safe_path(Point2D(0, 0), Point2D(10, 0))
        assert path.path_type == NORMAL_PATH
        assert path.safe_height == pytest.approx(3.5)
        assert [s.type for s in path.segments] == [LIFT, TRAVEL, LOWER]
        assert path.segments[0].start.z == pytest.approx(0.1)
        assert path.segments[2].end.z == pytest.approx(0.1)
        assert path.total_distance == pytest.approx(3.4 + 10 + 3.4)

    def test_forced_path_clears_tallest(self):
        planner = SafePathPlanner(obstacles=[Obstacle(5, 0, 6.0)])
        path = planner.generate_safe_path(Point2D(0, 0), Point2D(10, 0), force_high_clearance=True)
        assert path.path_type == HIGH_CLEARANCE_PATH
        assert path.safe_height == pytest.approx(8.0)

    def test_forced_path_at_least_safe_height(self):
        planner = SafePathPlanner(PlannerSettings(safe_height=12.0), obstacles=[Obstacle(5, 0, 6.0)])
        path = planner.generate_safe_path(Point2D(0, 0), Point2D(10, 0), force_high_clearance=True)
        assert path.safe_height == pytest.approx(12.0)

    def test_safe_pad_preferred_over_nearer_blocked_pad(self):
        pads = [make_pad('A', 0, 0), make_pad('B', 10, 0), make_pad('C', 0, 12)]
        obstacles = [Obstacle(5, 0, 6.0)]
        sequence = SafePathPlanner(obstacles=obstacles).calculate_safe_sequence(Point2D(0, 0), pads)
        assert [e.pad.id for e in sequence] == ['A', 'C', 'B']
        assert not any(e.requires_high_clearance for e in sequence)

    def test_fallback_to_high_clearance(self):
        pads = [make_pad('A', 0, 0), make_pad('B', 10, 0)]
        planner = SafePathPlanner(obstacles=[Obstacle(5, 0, 6.0)])
        sequence = planner.calculate_safe_sequence(Point2D(0, 0), pads)
        assert [e.pad.id for e in sequence] == ['A', 'B']
        assert sequence[1].requires_high_clearance is True
        assert sequence[1].safe_path.path_type == HIGH_CLEARANCE_PATH
        assert sequence[1].path_distance == pytest.approx(sequence[1].safe_path.total_distance)

    def test_travel_always_above_obstacles(self):
        pads = random_pads(25, seed=7)
        obstacles = [Obstacle(20, 20, 4.0), Obstacle(50, 30, 9.0), Obstacle(70, 10, 2.5)]
        planner = SafePathPlanner(obstacles=obstacles)
        sequence = planner.calculate_safe_sequence(Point2D(0, 0), pads)
        assert sorted(e.pad.id for e in sequence) == sorted(p.id for p in pads)

        previous = Point2D(0, 0)
        for entry in sequence:
            crossed = planner.analyze_path(previous, entry.pad).max_height
            assert entry.safe_path.safe_height > crossed
            previous = entry.pad

    def test_forced_path_stays_above_clearance_until_descent(self):
        settings = PlannerSettings(clearance_height=3.0)
        rng = random.Random(11)
        obstacles = [Obstacle(rng.uniform(0, 80), rng.uniform(0, 60), rng.uniform(0.5, 10.0)) for _ in range(8)]
        planner = SafePathPlanner(settings, obstacles=obstacles)
        pads = random_pads(10, seed=3)
        for start, end in zip(pads, pads[1:]):
            path = planner.generate_safe_path(start, end, force_high_clearance=True)
            *above, descent = path.segments
            assert descent.type == LOWER
            assert descent.end.z == pytest.approx(settings.dispense_height)
            for segment in above:
                assert segment.end.z >= settings.clearance_height
            travel = [s for s in above if s.type == TRAVEL]
            assert travel
            assert all(s.start.z >= settings.clearance_height for s in travel)

    def test_cancel(self):
        planner = SafePathPlanner()
        with pytest.raises(OperationCancelled):
            planner.calculate_safe_sequence(Point2D(0, 0), random_pads(3), should_cancel=lambda: True)


class TestPlanSequence:
    def test_safe_mode_with_heights(self):
        pads = [make_pad('A', 0, 0), make_pad('B', 20, 0)]
        sequence = plan_sequence(Point2D(0, 0), pads, mode=SAFE, heights=[ComponentHeight('B', 5.0)])
        assert sequence[1].requires_high_clearance is True
        assert sequence[1].safe_path.safe_height == pytest.approx(7.0)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            plan_sequence(Point2D(0, 0), [], mode='zigzag')
