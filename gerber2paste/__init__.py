"""Solder paste dispensing planner: Gerber extraction, fiducial alignment, sequencing and motion profiles."""

from .config import AxisLimits, PlannerSettings
from .errors import Gerber2PasteError, OperationCancelled
from .fiducials import analyze_fiducials_in_layers, detect_board_origin, detect_fiducials, select_origin
from .geometry import BoardOutline, DrillHole, FiducialCandidate, Pad, PadShape, PadSource, Point2D, ReferencePoint
from .gerber import extract, extract_board_outline, extract_coordinates, extract_drill_holes, extract_pads
from .layers import Layer, classify_filename, identify_layers
from .motion import MotionProfile, Waypoint, profile_move
from .pads import CombinedPads, combine, combine_pad_layers
from .sequencer import (ComponentHeight, DispensingSequenceEntry, Obstacle, SafePathPlanner, plan_sequence,
                        sequence_nearest)
from .speed import Feeds, SpeedProfile, SpeedProfileManager
from .transform import FitError, FitResult, Transform, fit_affine, fit_similarity, invert, rms_error

__version__ = "0.1.0"
