# Geometry extraction from RS-274X Gerber text (one layer per call) and Excellon drill text.
#
# Only the subset needed for paste dispensing is decoded: units, the %FS coordinate
# format, C/R/O/P apertures (plus the KiCad RoundRect macro), and the D01/D02/D03
# operations. Everything comes out in millimeters.

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

from . import config
from .errors import check_cancel
from .geometry import (BoardOutline, DrillHole, FiducialCandidate, Pad, PadShape, PadSource,
                       Point2D)

logger = logging.getLogger(__name__)

PARAM_BLOCK_RE = re.compile(r'%[^%]*%')
UNITS_RE = re.compile(r'MO(IN|MM)\*', re.IGNORECASE)
FORMAT_RE = re.compile(r'FS([LT])([AI])X(\d)(\d)Y(\d)(\d)\*', re.IGNORECASE)
APERTURE_RE = re.compile(r'ADD(\d+)([A-Za-z_][A-Za-z0-9_.$]*)(?:,([^*]*))?\*', re.IGNORECASE)
COMMENT_RE = re.compile(r'^G0?4', re.IGNORECASE)
D_CODE_RE = re.compile(r'D(\d+)$', re.IGNORECASE)
XY_RE = re.compile(r'([XY])([+\-]?\d+(?:\.\d+)?)', re.IGNORECASE)
OPERATION_RE = re.compile(
    r'(?:G0?[123])?'
    r'(?:X[+\-]?\d+(?:\.\d+)?)?(?:Y[+\-]?\d+(?:\.\d+)?)?'
    r'(?:I[+\-]?\d+(?:\.\d+)?)?(?:J[+\-]?\d+(?:\.\d+)?)?'
    r'(?:D0*[123])?',
    re.IGNORECASE)

MOVE = 'move'
DRAW = 'draw'
FLASH = 'flash'
_OPERATIONS = {1: DRAW, 2: MOVE, 3: FLASH}


@dataclass(frozen=True)
class Aperture:
    shape: PadShape
    width: float
    height: float
    hole_diameter: float = 0.0

    @property
    def diameter(self) -> float:
        return max(self.width, self.height)

    @property
    def is_square(self) -> bool:
        return abs(self.width - self.height) < config.FIDUCIAL_SQUARE_TOLERANCE


DEFAULT_APERTURE = Aperture(PadShape.CIRCLE, config.DEFAULT_PAD_SIZE, config.DEFAULT_PAD_SIZE)


@dataclass(frozen=True)
class CoordinateFormat:
    x_integer: int = config.DEFAULT_INTEGER_DIGITS
    x_decimal: int = config.DEFAULT_DECIMAL_DIGITS
    y_integer: int = config.DEFAULT_INTEGER_DIGITS
    y_decimal: int = config.DEFAULT_DECIMAL_DIGITS
    zero_suppression: str = config.DEFAULT_ZERO_SUPPRESSION


@dataclass(frozen=True)
class GerberHeader:
    units: str = 'mm'
    coordinate_format: CoordinateFormat = field(default_factory=CoordinateFormat)
    apertures: Dict[int, Aperture] = field(default_factory=dict)


class DrawEvent(NamedTuple):
    op: str
    x: float
    y: float
    aperture: Optional[Aperture]
    aperture_code: Optional[int]


class DecoderState(NamedTuple):
    """Running position and modal state threaded through the token fold."""
    x: float = 0.0
    y: float = 0.0
    operation: Optional[int] = None
    aperture_code: Optional[int] = None
    units: str = 'mm'


@dataclass(frozen=True)
class ExtractionResult:
    pads: List[Pad]
    outline: Optional[BoardOutline]
    fiducial_candidates: List[FiducialCandidate]
    strokes: List[List[Point2D]]
    coordinates: List[Point2D]
    header: GerberHeader

    @property
    def is_empty(self) -> bool:
        return not self.coordinates


# =========================================================================================
# Header (parameter blocks)

def decode_coordinate(value: str, integer_digits: int, decimal_digits: int, zero_suppression: str) -> float:
    """Decodes one fixed-point coordinate string such as '-012500'."""
    if '.' in value:
        return float(value)

    sign = 1.0
    if value.startswith('+'):
        value = value[1:]
    elif value.startswith('-'):
        sign = -1.0
        value = value[1:]
    if not value.isdigit():
        raise ValueError(f"Bad coordinate digits: {value!r}")

    total = integer_digits + decimal_digits
    if zero_suppression.upper() == 'L':
        digits = value.rjust(total, '0')
    else:
        digits = value.ljust(total, '0')
    return sign * float(f"{digits[:integer_digits]}.{digits[integer_digits:]}")


def _parse_aperture(kind: str, params: List[float], unit_mult: float) -> Optional[Aperture]:
    kind = kind.upper()
    sizes = [p * unit_mult for p in params]

    if kind == 'C' and sizes:
        hole = sizes[1] if len(sizes) > 1 else 0.0
        return Aperture(PadShape.CIRCLE, sizes[0], sizes[0], hole)
    if kind in ('R', 'O') and sizes:
        height = sizes[1] if len(sizes) > 1 else sizes[0]
        hole = sizes[2] if len(sizes) > 2 else 0.0
        return Aperture(PadShape.RECT, sizes[0], height, hole)
    if kind == 'P' and sizes:
        # Regular polygon: treat by its outer diameter
        return Aperture(PadShape.CIRCLE, sizes[0], sizes[0])
    if kind == 'ROUNDRECT' and len(sizes) >= 5:
        # KiCad macro: radius, then corner offsets; the rounding adds the radius on both sides
        width = abs(sizes[1]) + abs(sizes[3]) + 2 * sizes[0]
        height = abs(sizes[2]) + abs(sizes[4]) + 2 * sizes[0]
        return Aperture(PadShape.RECT, width, height)
    return None


def parse_header(gerber_text: str) -> GerberHeader:
    units = 'mm'
    fmt = CoordinateFormat()
    raw_apertures: List[Tuple[int, str, str]] = []

    for block in PARAM_BLOCK_RE.findall(gerber_text):
        units_match = UNITS_RE.search(block)
        if units_match:
            units = 'in' if units_match.group(1).upper() == 'IN' else 'mm'

        format_match = FORMAT_RE.search(block)
        if format_match:
            fmt = CoordinateFormat(
                x_integer=int(format_match.group(3)), x_decimal=int(format_match.group(4)),
                y_integer=int(format_match.group(5)), y_decimal=int(format_match.group(6)),
                zero_suppression=format_match.group(1).upper())

        aperture_match = APERTURE_RE.search(block)
        if aperture_match:
            raw_apertures.append((int(aperture_match.group(1)), aperture_match.group(2),
                                  aperture_match.group(3) or ''))

    # Aperture sizes are in file units, which may be declared after the AD blocks
    unit_mult = config.IN2MM if units == 'in' else 1.0
    apertures: Dict[int, Aperture] = {}
    for code, kind, param_text in raw_apertures:
        try:
            params = [float(p) for p in re.split(r'[X,]', param_text) if p.strip()]
        except ValueError:
            logger.debug("Skipping aperture D%d with bad parameters %r", code, param_text)
            continue
        aperture = _parse_aperture(kind, params, unit_mult)
        if aperture is None:
            logger.debug("Aperture D%d (%s) not supported", code, kind)
            continue
        if aperture.width <= 0 or aperture.height <= 0:
            logger.debug("Aperture D%d (%s) has no positive size, ignored", code, kind)
            continue
        apertures[code] = aperture

    return GerberHeader(units=units, coordinate_format=fmt, apertures=apertures)


def tokenize(gerber_text: str) -> List[str]:
    """Operation tokens with parameter blocks, whitespace and G04 comments removed."""
    ops_text = PARAM_BLOCK_RE.sub('', gerber_text)
    tokens = []
    for raw in ops_text.split('*'):
        token = re.sub(r'\s+', '', raw)
        if not token or COMMENT_RE.match(token):
            continue
        tokens.append(token)
    return tokens


# =========================================================================================
# Token fold

def step(state: DecoderState, token: str, header: GerberHeader) -> Tuple[DecoderState, Optional[DrawEvent]]:
    """
    Advances the decoder by one token.

    Returns the new state and the draw event the token produced, if any. A malformed
    token leaves the state untouched and produces nothing.
    """
    upper = token.upper()
    if upper in ('G70', 'G71'):
        return state._replace(units='in' if upper == 'G70' else 'mm'), None

    has_xy = 'X' in upper or 'Y' in upper
    d_match = D_CODE_RE.search(upper)
    if d_match and not has_xy:
        code = int(d_match.group(1))
        if code >= 10:
            return state._replace(aperture_code=code), None
        if code in _OPERATIONS:
            return state._replace(operation=code), None
        return state, None

    if not has_xy:
        return state, None

    # Only G01-G03, X, Y, I, J and D01-D03 fields may share a token
    if not OPERATION_RE.fullmatch(upper):
        logger.debug("Skipping malformed token %r", token)
        return state, None

    fmt = header.coordinate_format
    mult = config.IN2MM if state.units == 'in' else 1.0
    x, y = state.x, state.y
    try:
        for axis, value in XY_RE.findall(upper):
            if axis == 'X':
                x = decode_coordinate(value, fmt.x_integer, fmt.x_decimal, fmt.zero_suppression) * mult
            else:
                y = decode_coordinate(value, fmt.y_integer, fmt.y_decimal, fmt.zero_suppression) * mult
    except ValueError:
        logger.debug("Skipping token with bad coordinate %r", token)
        return state, None

    operation = state.operation
    if d_match:
        operation = int(d_match.group(1))

    op = _OPERATIONS.get(operation, MOVE)
    aperture = header.apertures.get(state.aperture_code) if state.aperture_code is not None else None
    event = DrawEvent(op, x, y, aperture, state.aperture_code)
    return state._replace(x=x, y=y, operation=operation), event


def decode(gerber_text: str, header: Optional[GerberHeader] = None,
           should_cancel: Optional[Callable[[], bool]] = None) -> Tuple[GerberHeader, List[DrawEvent]]:
    if header is None:
        header = parse_header(gerber_text)

    state = DecoderState(units=header.units)
    events = []
    for token in tokenize(gerber_text):
        check_cancel(should_cancel)
        state, event = step(state, token, header)
        if event is not None:
            events.append(event)
    return header, events


# =========================================================================================
# Fiducial candidate scoring

def score_fiducial(aperture: Aperture, diameter: float) -> float:
    score = 1.0
    if aperture.shape == PadShape.CIRCLE:
        score += 2
    if aperture.hole_diameter > 0:
        score += 3
    if config.FIDUCIAL_PREFERRED_MIN <= diameter <= config.FIDUCIAL_PREFERRED_MAX:
        score += 2
    return score


def _fiducial_candidates(events: Iterable[DrawEvent], min_diameter: float,
                         max_diameter: float) -> List[FiducialCandidate]:
    scored = []
    for event in events:
        if event.op != FLASH or event.aperture is None:
            continue
        aperture = event.aperture
        if aperture.shape == PadShape.RECT and not aperture.is_square:
            continue
        diameter = aperture.diameter if aperture.shape == PadShape.CIRCLE else aperture.width
        if not (min_diameter <= diameter <= max_diameter):
            continue
        score = score_fiducial(aperture, diameter)
        scored.append(FiducialCandidate(
            x=event.x, y=event.y, diameter=diameter,
            confidence=min(score / config.FIDUCIAL_MAX_SCORE, 1.0),
            is_circular=aperture.shape == PadShape.CIRCLE,
            hole_diameter=aperture.hole_diameter))

    # Stable sort keeps file order among equal scores; the best-scored copy survives dedup
    scored.sort(key=lambda c: c.confidence, reverse=True)
    return dedupe_candidates(scored, config.FIDUCIAL_DEDUP_DISTANCE)


def dedupe_candidates(candidates: List[FiducialCandidate], min_distance: float) -> List[FiducialCandidate]:
    kept: List[FiducialCandidate] = []
    for candidate in candidates:
        if any(((k.x - candidate.x) ** 2 + (k.y - candidate.y) ** 2) ** 0.5 < min_distance for k in kept):
            continue
        kept.append(candidate)
    return kept


# =========================================================================================
# Extraction entry points

def extract(gerber_text: str,
            source: PadSource = PadSource.STRUCTURAL,
            id_prefix: str = 'P',
            fiducial_window: Tuple[float, float] = (config.FIDUCIAL_MIN_DIAMETER, config.FIDUCIAL_MAX_DIAMETER),
            should_cancel: Optional[Callable[[], bool]] = None) -> ExtractionResult:
    """
    Decodes one Gerber layer into pads, outline and fiducial candidates (all mm).

    A file without coordinate tokens yields an empty result rather than an error.
    """
    header, events = decode(gerber_text, should_cancel=should_cancel)

    pads: List[Pad] = []
    strokes: List[List[Point2D]] = []
    outline_points: List[Point2D] = []
    coordinates: List[Point2D] = []
    last = Point2D(0.0, 0.0)

    for event in events:
        point = Point2D(event.x, event.y)
        coordinates.append(point)

        if event.op == FLASH:
            aperture = event.aperture
            if aperture is None:
                logger.debug("Flash at (%.3f, %.3f) without a known aperture, using default", event.x, event.y)
                aperture = DEFAULT_APERTURE
            pads.append(Pad(x=event.x, y=event.y, width=aperture.width, height=aperture.height,
                            shape=aperture.shape, id=f"{id_prefix}{len(pads) + 1}", source=source))
        elif event.op == MOVE:
            strokes.append([point])
            outline_points.append(point)
        else:
            if not strokes:
                strokes.append([last])
            strokes[-1].append(point)
            outline_points.append(point)
        last = point

    candidates = _fiducial_candidates(events, *fiducial_window)
    outline = BoardOutline.from_points(outline_points)

    logger.debug("Extracted %d pads, %d outline points, %d fiducial candidates",
                 len(pads), len(outline_points), len(candidates))
    return ExtractionResult(pads=pads, outline=outline, fiducial_candidates=candidates,
                            strokes=[s for s in strokes if len(s) > 1], coordinates=coordinates,
                            header=header)


def extract_pads(gerber_text: str, source: PadSource = PadSource.STRUCTURAL, id_prefix: str = 'P') -> List[Pad]:
    return extract(gerber_text, source=source, id_prefix=id_prefix).pads


def extract_board_outline(gerber_text: str) -> Optional[BoardOutline]:
    return extract(gerber_text).outline


def extract_coordinates(gerber_text: str) -> List[Point2D]:
    return extract(gerber_text).coordinates


# =========================================================================================
# Excellon drill files

def extract_drill_holes(drill_text: str) -> List[DrillHole]:
    tool_diameters: Dict[int, float] = {}
    holes: List[DrillHole] = []
    current_tool: Optional[int] = None
    units_mult = 1.0
    integer_digits, decimal_digits = 3, 3
    zero_suppression = 'L'

    for line in drill_text.splitlines():
        line = line.strip()
        if not line or line.startswith(';'):
            continue
        upper = line.upper()

        if upper.startswith('METRIC') or upper.startswith('INCH'):
            if upper.startswith('INCH'):
                units_mult = config.IN2MM
                integer_digits, decimal_digits = 2, 4
            else:
                units_mult = 1.0
                integer_digits, decimal_digits = 3, 3
            # LZ keeps leading zeros, so trailing ones are the suppressed ones
            if ',LZ' in upper:
                zero_suppression = 'T'
            elif ',TZ' in upper:
                zero_suppression = 'L'
            continue

        match_tool = re.match(r'^T(\d+)C([\d.]+)', upper)
        if match_tool:
            tool_diameters[int(match_tool.group(1))] = float(match_tool.group(2)) * units_mult
            continue

        match_tool_change = re.match(r'^T(\d+)$', upper)
        if match_tool_change:
            current_tool = int(match_tool_change.group(1))
            continue

        match_coord = re.match(r'^X([+\-]?[\d.]+)Y([+\-]?[\d.]+)', upper)
        if match_coord and current_tool in tool_diameters:
            try:
                x = decode_coordinate(match_coord.group(1), integer_digits, decimal_digits, zero_suppression)
                y = decode_coordinate(match_coord.group(2), integer_digits, decimal_digits, zero_suppression)
            except ValueError:
                logger.debug("Skipping malformed drill hit %r", line)
                continue
            holes.append(DrillHole(x * units_mult, y * units_mult, tool_diameters[current_tool], current_tool))

    return holes
