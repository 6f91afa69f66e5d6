import pytest

from gerber2paste.layers import (BOTTOM, COPPER, DRILL, OUTLINE, SOLDERPASTE, TOP, Layer, classify_filename,
                                 find_layer, identify_layers)


# ============================================================================
# CLASSIFIER TESTS
# ============================================================================

class TestClassifyFilename:
    @pytest.mark.parametrize("filename, expected", [
        ("board-F_Cu.gbr", (COPPER, TOP)),
        ("board-B_Cu.gbr", (COPPER, BOTTOM)),
        ("board-F_Paste.gbr", (SOLDERPASTE, TOP)),
        ("board-B_Paste.gbr", (SOLDERPASTE, BOTTOM)),
        ("board-Edge_Cuts.gbr", (OUTLINE, None)),
        ("board.gtl", (COPPER, TOP)),
        ("board.gtp", (SOLDERPASTE, TOP)),
        ("board.drl", (DRILL, None)),
    ])
    def test_known_names(self, filename, expected):
        assert classify_filename(filename) == expected

    def test_unknown(self):
        assert classify_filename("readme.txt") == (None, None)


# ============================================================================
# IDENTIFICATION TESTS
# ============================================================================

class TestIdentifyLayers:
    def test_drops_unknown_files(self):
        layers = identify_layers([("board-F_Cu.gbr", "a"), ("notes.txt", "b"), ("board-F_Paste.gbr", "c")])
        assert [layer.type for layer in layers] == [COPPER, SOLDERPASTE]
        assert layers[0].text == "a"

    def test_injected_classifier(self):
        layers = identify_layers([("anything", "x")], classify=lambda name: (OUTLINE, None))
        assert layers == [Layer(filename="anything", text="x", type=OUTLINE, side=None)]

    def test_find_layer_by_side(self):
        layers = identify_layers([("board-B_Cu.gbr", "bottom"), ("board-F_Cu.gbr", "top")])
        assert find_layer(layers, COPPER, TOP).text == "top"
        assert find_layer(layers, COPPER).text == "bottom"
        assert find_layer(layers, SOLDERPASTE) is None
