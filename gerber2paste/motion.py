"""
Axis-limited velocity profiles for straight XY moves.

The per-axis speed and acceleration limits are projected onto the move
direction, then the move gets a trapezoidal (or, when it is too short to reach
full speed, triangular) speed law which is sampled into timed waypoints.
"""

import logging
import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from . import config
from .config import AxisLimits

logger = logging.getLogger(__name__)

EPS = 1e-9

TRAPEZOIDAL = 'trapezoidal'
TRIANGULAR = 'triangular'
STATIONARY = 'stationary'


@dataclass(frozen=True)
class Waypoint:
    t: float
    x: float
    y: float
    z: float
    speed: float

    @property
    def feed(self) -> float:
        """Instantaneous speed in mm/min, for G-code F words."""
        return self.speed * 60.0


@dataclass(frozen=True)
class MotionProfile:
    lxy: float
    v_line: float
    a_line: float
    T: float
    kind: str
    v_peak: float
    t_acc: float
    t_cruise: float
    d_acc: float
    d_cruise: float
    waypoints: Tuple[Waypoint, ...]

    @property
    def start(self) -> Waypoint:
        return self.waypoints[0]

    @property
    def end(self) -> Waypoint:
        return self.waypoints[-1]

    def sampled_distance(self) -> float:
        """XY length recovered by summing the waypoint-to-waypoint chords."""
        xy = np.array([(w.x, w.y) for w in self.waypoints])
        if len(xy) < 2:
            return 0.0
        return float(np.hypot(*np.diff(xy, axis=0).T).sum())


def project_limits_to_line(ux: float, uy: float, limits: AxisLimits) -> Tuple[float, float]:
    """(line speed limit, line acceleration limit) for the unit direction (ux, uy)."""
    ax_x = abs(ux)
    ax_y = abs(uy)
    v_line = min(limits.vx / ax_x if ax_x > EPS else math.inf,
                 limits.vy / ax_y if ax_y > EPS else math.inf)
    a_line = min(limits.ax / ax_x if ax_x > EPS else math.inf,
                 limits.ay / ax_y if ax_y > EPS else math.inf)
    return v_line, a_line


def trapezoid_profile(distance: float, v_max: float, a_max: float) -> dict:
    """
    Phase timings for a rest-to-rest move of the given length.

    When accelerating to v_max and back would take more than the whole distance
    (v_max^2 / a_max > distance) the move never cruises and peaks at
    sqrt(a_max * distance).
    """
    if v_max * v_max / a_max > distance:
        v_peak = math.sqrt(a_max * distance)
        t_acc = v_peak / a_max
        return dict(kind=TRIANGULAR, v_peak=v_peak, t_acc=t_acc, t_cruise=0.0,
                    d_acc=distance / 2.0, d_cruise=0.0, T=2.0 * t_acc)

    t_acc = v_max / a_max
    d_acc = v_max * v_max / (2.0 * a_max)
    d_cruise = distance - 2.0 * d_acc
    t_cruise = d_cruise / v_max
    return dict(kind=TRAPEZOIDAL, v_peak=v_max, t_acc=t_acc, t_cruise=t_cruise,
                d_acc=d_acc, d_cruise=d_cruise, T=2.0 * t_acc + t_cruise)


def distance_at_time(t: float, a: float, v_peak: float, t_acc: float, t_cruise: float,
                     d_acc: float, d_cruise: float, total: float) -> float:
    if t <= 0:
        return 0.0
    if t < t_acc:
        return 0.5 * a * t * t
    if t < t_acc + t_cruise:
        return d_acc + v_peak * (t - t_acc)
    td = t - t_acc - t_cruise
    if td < t_acc:
        return d_acc + d_cruise + v_peak * td - 0.5 * a * td * td
    return total


def speed_at_time(t: float, a: float, v_peak: float, t_acc: float, t_cruise: float) -> float:
    if t <= 0:
        return 0.0
    if t < t_acc:
        return a * t
    if t < t_acc + t_cruise:
        return v_peak
    td = t - t_acc - t_cruise
    return max(0.0, v_peak - a * td)


def profile_move(a, b, limits: AxisLimits = AxisLimits(), dt: float = config.MOTION_TIME_STEP,
                 move_z_together: bool = False) -> MotionProfile:
    """
    Profile the straight move a -> b.

    a and b need x/y; z is optional and defaults to 0. Z is held at a.z during
    the move and snapped to b.z on the last waypoint, unless move_z_together
    interpolates it along the XY progress.
    """
    if dt <= 0:
        raise ValueError("dt must be positive")

    az = getattr(a, 'z', 0.0)
    bz = getattr(b, 'z', 0.0)
    dx = b.x - a.x
    dy = b.y - a.y
    lxy = math.hypot(dx, dy)

    if lxy < EPS:
        waypoint = Waypoint(t=0.0, x=a.x, y=a.y, z=bz, speed=0.0)
        return MotionProfile(lxy=0.0, v_line=0.0, a_line=0.0, T=0.0, kind=STATIONARY, v_peak=0.0,
                             t_acc=0.0, t_cruise=0.0, d_acc=0.0, d_cruise=0.0, waypoints=(waypoint,))

    ux = dx / lxy
    uy = dy / lxy
    v_line, a_line = project_limits_to_line(ux, uy, limits)
    phases = trapezoid_profile(lxy, v_line, a_line)
    T = phases['T']

    # Samples every dt strictly before T, then T itself
    n_steps = max(1, math.ceil(T / dt))
    times = [i * dt for i in range(n_steps) if i * dt < T] + [T]
    last = len(times) - 1
    waypoints = []
    for i, t in enumerate(times):
        s = distance_at_time(t, a_line, phases['v_peak'], phases['t_acc'], phases['t_cruise'],
                             phases['d_acc'], phases['d_cruise'], lxy)
        s = min(max(s, 0.0), lxy)
        if move_z_together:
            z = az + (bz - az) * (s / lxy)
        else:
            z = bz if i == last else az
        speed = speed_at_time(t, a_line, phases['v_peak'], phases['t_acc'], phases['t_cruise'])
        waypoints.append(Waypoint(t=t, x=a.x + ux * s, y=a.y + uy * s, z=z, speed=speed))

    logger.debug("%s move %.3f mm: v=%.2f mm/s a=%.1f mm/s^2 T=%.3f s",
                 phases['kind'], lxy, phases['v_peak'], a_line, T)
    return MotionProfile(lxy=lxy, v_line=v_line, a_line=a_line, T=T, kind=phases['kind'],
                         v_peak=phases['v_peak'], t_acc=phases['t_acc'], t_cruise=phases['t_cruise'],
                         d_acc=phases['d_acc'], d_cruise=phases['d_cruise'], waypoints=tuple(waypoints))
