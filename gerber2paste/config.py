# Configuration parameters for gerber2paste.
#
# All lengths are millimeters, speeds mm/s and accelerations mm/s^2 unless
# the name says otherwise (feed rates for G-code are mm/min).

from dataclasses import dataclass

# --- UNITS & GERBER FORMAT ---

IN2MM = 25.4

# Default %FS format when a file does not declare one: X2.4 / Y2.4, leading zeros omitted
DEFAULT_INTEGER_DIGITS = 2
DEFAULT_DECIMAL_DIGITS = 4
DEFAULT_ZERO_SUPPRESSION = 'L'

# Tool used for a flash when the selected aperture can't be resolved
DEFAULT_PAD_SIZE = 1.0

# --- PAD COMBINATION ---

PAD_MATCH_THRESHOLD = 0.5

# --- FIDUCIALS & ORIGIN ---

FIDUCIAL_MIN_DIAMETER = 0.5
FIDUCIAL_MAX_DIAMETER = 5.0
FIDUCIAL_PREFERRED_MIN = 1.0
FIDUCIAL_PREFERRED_MAX = 3.0
FIDUCIAL_DEDUP_DISTANCE = 0.1
FIDUCIAL_MERGE_DISTANCE = 0.5
FIDUCIAL_SQUARE_TOLERANCE = 0.1
MAX_FIDUCIALS = 6
# Highest raw score a single flash can get (1 base + 2 circle + 3 hole + 2 preferred size)
FIDUCIAL_MAX_SCORE = 8.0
FIDUCIAL_GROUP_MIN_SCORE = 15
FIDUCIAL_GROUP_SCORE_NORM = 30.0

ORIGIN_CONFIDENCE = 0.9

# --- TRANSFORM FITTING ---

SINGULAR_TOLERANCE = 1e-12

# --- SAFE PATH PLANNING ---

SAFE_HEIGHT = 5.0
CLEARANCE_HEIGHT = 2.0
DISPENSE_HEIGHT = 0.1
COMPONENT_RADIUS = 2.0
PATH_STEP = 0.5

# --- MOTION PROFILE ---

MOTION_TIME_STEP = 0.01
MAX_VX = 100.0
MAX_VY = 100.0
MAX_AX = 1000.0
MAX_AY = 1000.0
MAX_VZ = 10.0
LINE_FEED_DERATE = 0.95

# --- G-CODE (mm/min) ---

TRAVEL_FEED_RATE = 3000
APPROACH_FEED_RATE = 1000
DISPENSE_ON = "M106 S255"
DISPENSE_OFF = "M107"
DISPENSE_DWELL_MS = 120
DISPENSE_MS_PER_MM2 = 0.0
# Extra travel speed for the largest pads of a speed profile bin (fraction)
SPEED_AREA_BOOST = 0.2


@dataclass(frozen=True)
class AxisLimits:
    vx: float = MAX_VX
    vy: float = MAX_VY
    ax: float = MAX_AX
    ay: float = MAX_AY
    vz: float = MAX_VZ

    def __post_init__(self):
        for name in ('vx', 'vy', 'ax', 'ay', 'vz'):
            if getattr(self, name) <= 0:
                raise ValueError(f"Axis limit '{name}' must be positive, got {getattr(self, name)}")


@dataclass(frozen=True)
class PlannerSettings:
    safe_height: float = SAFE_HEIGHT
    clearance_height: float = CLEARANCE_HEIGHT
    dispense_height: float = DISPENSE_HEIGHT
    component_radius: float = COMPONENT_RADIUS
    path_step: float = PATH_STEP

    def __post_init__(self):
        if self.path_step <= 0:
            raise ValueError("path_step must be positive")
        if self.component_radius < 0:
            raise ValueError("component_radius can't be negative")
        if min(self.safe_height, self.clearance_height, self.dispense_height) < 0:
            raise ValueError("Heights can't be negative")
