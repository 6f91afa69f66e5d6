# Layer identification from file names.
#
# The classifier is passed in by the caller; classify_filename is the default table
# for KiCad ("Board-F_Paste.gbr") and Protel (".gtp") style names.

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

COPPER = 'copper'
SOLDERPASTE = 'solderpaste'
SOLDERMASK = 'soldermask'
SILKSCREEN = 'silkscreen'
OUTLINE = 'outline'
DRILL = 'drill'
FABRICATION = 'fabrication'

TOP = 'top'
BOTTOM = 'bottom'

# (pattern, type, side); first match wins
LAYER_PATTERNS: List[Tuple[str, str, Optional[str]]] = [
    (r'F[_.\-]?Paste|\.gtp$|\.cream$', SOLDERPASTE, TOP),
    (r'B[_.\-]?Paste|\.gbp$', SOLDERPASTE, BOTTOM),
    (r'F[_.\-]?Cu|\.gtl$', COPPER, TOP),
    (r'B[_.\-]?Cu|\.gbl$', COPPER, BOTTOM),
    (r'F[_.\-]?Mask|\.gts$', SOLDERMASK, TOP),
    (r'B[_.\-]?Mask|\.gbs$', SOLDERMASK, BOTTOM),
    (r'F[_.\-]?Silk|\.gto$', SILKSCREEN, TOP),
    (r'B[_.\-]?Silk|\.gbo$', SILKSCREEN, BOTTOM),
    (r'Edge[_.\-]?Cuts|outline|\.gm1$|\.gko$', OUTLINE, None),
    (r'\.drl$|\.xln$|\.exc$', DRILL, None),
    (r'F[_.\-]?Fab|fiducial|assembly', FABRICATION, TOP),
    (r'B[_.\-]?Fab', FABRICATION, BOTTOM),
]


@dataclass(frozen=True)
class Layer:
    filename: str
    text: str
    type: str
    side: Optional[str] = None


def classify_filename(filename: str) -> Tuple[Optional[str], Optional[str]]:
    """(layer type, side) for a file name, (None, None) when it isn't recognised."""
    for pattern, layer_type, side in LAYER_PATTERNS:
        if re.search(pattern, filename, re.IGNORECASE):
            return layer_type, side
    return None, None


def identify_layers(files: Iterable[Tuple[str, str]],
                    classify: Callable[[str], Tuple[Optional[str], Optional[str]]] = classify_filename) -> List[Layer]:
    """Tags (filename, text) pairs with their layer type; unrecognised files are dropped."""
    layers = []
    for filename, text in files:
        layer_type, side = classify(filename)
        if layer_type:
            layers.append(Layer(filename=filename, text=text, type=layer_type, side=side))
    return layers


def find_layer(layers: Iterable[Layer], layer_type: str, side: Optional[str] = None) -> Optional[Layer]:
    for layer in layers:
        if layer.type == layer_type and (side is None or layer.side == side):
            return layer
    return None
