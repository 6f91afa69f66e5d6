"""
Design-to-machine 2D transforms fitted from point correspondences.

    x' = a*x + b*y + tx
    y' = c*x + d*y + ty

Fitting and inversion never raise on bad input: they return a FitResult whose
error says why no transform could be produced (too few pairs, collinear or
coincident points, zero determinant).
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from . import config
from .errors import Gerber2PasteError
from .geometry import Pad, Point2D

logger = logging.getLogger(__name__)

SIMILARITY = 'similarity'
AFFINE = 'affine'


class FitError(str, Enum):
    INSUFFICIENT_POINTS = 'insufficient-points'
    MISMATCHED_POINTS = 'mismatched-points'
    DEGENERATE = 'degenerate'


@dataclass(frozen=True)
class Transform:
    kind: str
    a: float
    b: float
    c: float
    d: float
    tx: float
    ty: float
    scale: Optional[float] = None
    theta: Optional[float] = None

    @classmethod
    def identity(cls) -> 'Transform':
        return cls(SIMILARITY, 1.0, 0.0, 0.0, 1.0, 0.0, 0.0, scale=1.0, theta=0.0)

    @classmethod
    def from_similarity(cls, scale: float, rotation_deg: float, tx: float, ty: float) -> 'Transform':
        theta = math.radians(rotation_deg)
        cos, sin = math.cos(theta), math.sin(theta)
        return cls(SIMILARITY, scale * cos, -scale * sin, scale * sin, scale * cos, tx, ty,
                   scale=scale, theta=theta)

    @property
    def rotation_deg(self) -> float:
        theta = self.theta if self.theta is not None else math.atan2(self.c, self.a)
        return math.degrees(theta)

    @property
    def determinant(self) -> float:
        return self.a * self.d - self.b * self.c

    def is_degenerate(self, tol: float = config.SINGULAR_TOLERANCE) -> bool:
        return abs(self.determinant) < tol or not all(
            math.isfinite(v) for v in (self.a, self.b, self.c, self.d, self.tx, self.ty))

    def apply(self, point) -> Point2D:
        return Point2D(self.a * point.x + self.b * point.y + self.tx,
                       self.c * point.x + self.d * point.y + self.ty)

    def matrix(self) -> np.ndarray:
        return np.array([[self.a, self.b, self.tx],
                         [self.c, self.d, self.ty],
                         [0.0, 0.0, 1.0]])


@dataclass(frozen=True)
class FitResult:
    transform: Optional[Transform] = None
    error: Optional[FitError] = None
    message: str = ''

    @property
    def ok(self) -> bool:
        return self.transform is not None and self.error is None

    def unwrap(self) -> Transform:
        if not self.ok:
            raise Gerber2PasteError(self.message or f"No transform: {self.error}")
        return self.transform


def _failure(error: FitError, message: str) -> FitResult:
    logger.warning("Transform fit failed: %s", message)
    return FitResult(error=error, message=message)


def _as_array(points: Sequence) -> np.ndarray:
    return np.array([(p.x, p.y) for p in points], dtype=float).reshape(-1, 2)


def _check_pairs(design_pts: Sequence, machine_pts: Sequence, minimum: int) -> Optional[FitResult]:
    if len(design_pts) != len(machine_pts):
        return _failure(FitError.MISMATCHED_POINTS,
                        f"{len(design_pts)} design points but {len(machine_pts)} machine points")
    if len(design_pts) < minimum:
        return _failure(FitError.INSUFFICIENT_POINTS,
                        f"Need at least {minimum} point pairs, got {len(design_pts)}")
    return None


def apply_transform(transform: Optional[Transform], point) -> Point2D:
    if transform is None:
        return Point2D(point.x, point.y)
    return transform.apply(point)


def transform_pads(transform: Transform, pads: Sequence[Pad]) -> List[Pad]:
    """Pads moved into the transform's target frame (sizes untouched)."""
    moved = []
    for pad in pads:
        p = transform.apply(pad)
        moved.append(replace(pad, x=p.x, y=p.y))
    return moved


def fit_similarity(design_pts: Sequence, machine_pts: Sequence) -> FitResult:
    """
    Least-squares rotation + uniform scale + translation (2D Procrustes).

    Both point sets are centered on their centroids; the angle comes from the
    cross/dot sums of the centered coordinates and translation maps the design
    centroid exactly onto the machine centroid.
    """
    failure = _check_pairs(design_pts, machine_pts, 2)
    if failure:
        return failure

    design = _as_array(design_pts)
    machine = _as_array(machine_pts)
    design_centroid = design.mean(axis=0)
    machine_centroid = machine.mean(axis=0)
    d = design - design_centroid
    m = machine - machine_centroid

    dot = float(np.sum(d[:, 0] * m[:, 0] + d[:, 1] * m[:, 1]))
    cross = float(np.sum(d[:, 0] * m[:, 1] - d[:, 1] * m[:, 0]))
    spread = float(np.sum(d ** 2))
    if spread < config.SINGULAR_TOLERANCE:
        return _failure(FitError.DEGENERATE, "Design points are coincident")

    theta = math.atan2(cross, dot)
    scale = math.hypot(dot, cross) / spread
    if scale < config.SINGULAR_TOLERANCE:
        return _failure(FitError.DEGENERATE, "Machine points are coincident")

    cos, sin = math.cos(theta), math.sin(theta)
    a, b = scale * cos, -scale * sin
    c, dd = scale * sin, scale * cos
    tx = machine_centroid[0] - (a * design_centroid[0] + b * design_centroid[1])
    ty = machine_centroid[1] - (c * design_centroid[0] + dd * design_centroid[1])

    transform = Transform(SIMILARITY, a, b, c, dd, float(tx), float(ty), scale=scale, theta=theta)
    logger.debug("Similarity fit: scale=%.6f theta=%.6f rad tx=%.4f ty=%.4f", scale, theta, tx, ty)
    return FitResult(transform=transform)


def solve_gaussian(matrix: np.ndarray, rhs: np.ndarray, tol: float = config.SINGULAR_TOLERANCE) -> Optional[np.ndarray]:
    """Gauss-Jordan elimination with partial pivoting; None when the system is singular."""
    n = matrix.shape[0]
    aug = np.hstack([np.array(matrix, dtype=float), np.array(rhs, dtype=float).reshape(n, 1)])
    threshold = tol * max(1.0, float(np.max(np.abs(matrix))))

    for col in range(n):
        pivot = col + int(np.argmax(np.abs(aug[col:, col])))
        if abs(aug[pivot, col]) < threshold:
            return None
        if pivot != col:
            aug[[col, pivot]] = aug[[pivot, col]]
        aug[col] = aug[col] / aug[col, col]
        for row in range(n):
            if row != col:
                aug[row] -= aug[row, col] * aug[col]
    return aug[:, n]


def fit_affine(design_pts: Sequence, machine_pts: Sequence) -> FitResult:
    """Independent least-squares regressions for x' and y' via the 6x6 normal equations."""
    failure = _check_pairs(design_pts, machine_pts, 3)
    if failure:
        return failure

    design = _as_array(design_pts)
    machine = _as_array(machine_pts)
    n = len(design)

    system = np.zeros((2 * n, 6))
    target = np.zeros(2 * n)
    system[0::2, 0] = design[:, 0]
    system[0::2, 1] = design[:, 1]
    system[0::2, 4] = 1.0
    system[1::2, 2] = design[:, 0]
    system[1::2, 3] = design[:, 1]
    system[1::2, 5] = 1.0
    target[0::2] = machine[:, 0]
    target[1::2] = machine[:, 1]

    solution = solve_gaussian(system.T @ system, system.T @ target)
    if solution is None:
        return _failure(FitError.DEGENERATE, "Design points are collinear, affine system is singular")

    a, b, c, d, tx, ty = (float(v) for v in solution)
    return FitResult(transform=Transform(AFFINE, a, b, c, d, tx, ty))


def rms_error(transform: Transform, design_pts: Sequence, machine_pts: Sequence) -> Optional[float]:
    """Root mean square residual in mm; None for empty or mismatched inputs."""
    if not design_pts or len(design_pts) != len(machine_pts):
        return None
    total = 0.0
    for design, machine in zip(design_pts, machine_pts):
        mapped = transform.apply(design)
        total += (mapped.x - machine.x) ** 2 + (mapped.y - machine.y) ** 2
    return math.sqrt(total / len(design_pts))


def invert(transform: Transform) -> FitResult:
    det = transform.determinant
    if abs(det) < config.SINGULAR_TOLERANCE:
        return _failure(FitError.DEGENERATE, f"Transform is not invertible (det={det:.3g})")

    ia, ib = transform.d / det, -transform.b / det
    ic, id_ = -transform.c / det, transform.a / det
    itx = -(ia * transform.tx + ib * transform.ty)
    ity = -(ic * transform.tx + id_ * transform.ty)

    scale = 1.0 / transform.scale if transform.scale else None
    theta = -transform.theta if transform.theta is not None else None
    return FitResult(transform=Transform(transform.kind, ia, ib, ic, id_, itx, ity, scale=scale, theta=theta))
