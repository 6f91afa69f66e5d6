import pytest

from gerber2paste.geometry import Pad, PadShape, PadSource
from gerber2paste.speed import SPEED_PROFILES, Feeds, SpeedProfileManager, pad_area


def make_pad(pad_id, width, height, shape=PadShape.RECT):
    return Pad(x=0, y=0, width=width, height=height, shape=shape, id=pad_id, source=PadSource.FUSED)


# ============================================================================
# PROFILE SELECTION TESTS
# ============================================================================

class TestProfileSelection:
    @pytest.mark.parametrize("width, height, key", [
        (0.4, 0.4, 'micro'),
        (0.5, 0.5, 'small'),
        (1.0, 1.0, 'small'),
        (2.0, 2.0, 'medium'),
        (4.0, 4.0, 'large'),
        (10.0, 6.0, 'large'),
    ])
    def test_bins_by_area(self, width, height, key):
        assert SpeedProfileManager().profile_for(make_pad('P1', width, height)).key == key

    def test_circle_binned_on_bounding_box(self):
        pad = make_pad('P1', 1.0, 1.0, PadShape.CIRCLE)
        assert pad_area(pad) == 1.0
        assert SpeedProfileManager().profile_for(pad).key == 'small'

    def test_bins_are_contiguous(self):
        for lower, upper in zip(SPEED_PROFILES, SPEED_PROFILES[1:]):
            assert lower.max_area == upper.min_area

    def test_unknown_viscosity(self):
        with pytest.raises(ValueError):
            SpeedProfileManager('runny')


# ============================================================================
# FEED TESTS
# ============================================================================

class TestFeeds:
    def test_medium_viscosity(self):
        feeds = SpeedProfileManager().feeds_for(make_pad('P1', 1.0, 1.0))
        assert feeds == Feeds(travel=4300, approach=800, dispense=300, retract=1500)

    def test_travel_grows_inside_bin(self):
        manager = SpeedProfileManager()
        assert manager.feeds_for(make_pad('P1', 0.5, 0.5)).travel == 4000
        assert manager.feeds_for(make_pad('P2', 0.4, 0.4)).travel == 3384
        assert manager.feeds_for(make_pad('P3', 2.0, 2.0)).travel == 5127

    def test_open_ended_bin_has_no_boost(self):
        assert SpeedProfileManager().feeds_for(make_pad('P1', 5.0, 5.0)).travel == 6000

    def test_high_viscosity_slows_down(self):
        feeds = SpeedProfileManager('high').feeds_for(make_pad('P1', 1.0, 1.0))
        assert feeds == Feeds(travel=3870, approach=640, dispense=210, retract=1350)

    def test_low_viscosity_speeds_up(self):
        feeds = SpeedProfileManager('low').feeds_for(make_pad('P1', 0.5, 0.5))
        assert feeds.dispense == 390
        assert feeds.travel == 4800


class TestProfileStats:
    def test_counts_per_bin(self):
        pads = [make_pad('A', 0.4, 0.4), make_pad('B', 1.0, 1.0), make_pad('C', 1.2, 1.0), make_pad('D', 5, 5)]
        assert SpeedProfileManager().profile_stats(pads) == {'micro': 1, 'small': 2, 'large': 1}

    def test_empty(self):
        assert SpeedProfileManager().profile_stats([]) == {}
