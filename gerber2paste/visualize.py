"""PNG previews: board/sequence render with PIL, velocity profile plot with matplotlib."""

import logging
from typing import List, Optional, Sequence

import matplotlib

matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
from PIL import Image, ImageDraw

from .geometry import BoardOutline, Pad, PadShape, ReferencePoint
from .motion import MotionProfile
from .sequencer import DispensingSequenceEntry

logger = logging.getLogger(__name__)

PCB_COLOR = (0, 80, 0)
PASTE_COLOR = (0, 0, 255)
BARE_PAD_COLOR = (120, 120, 120)
PATH_COLOR = (255, 255, 255)
HIGH_CLEARANCE_COLOR = (255, 165, 0)
FIDUCIAL_COLOR = (255, 255, 0)
ORIGIN_COLOR = (255, 0, 0)


class OutputVisualizer:
    def __init__(self, scale: float = 10, margin_mm: float = 5.0):
        self.scale = scale
        self.margin_mm = margin_mm
        self.outline: Optional[BoardOutline] = None
        self.pads: List[Pad] = []
        self.sequence: List[DispensingSequenceEntry] = []
        self.reference_points: List[ReferencePoint] = []

    def load_outline(self, outline: Optional[BoardOutline]):
        self.outline = outline

    def load_pads(self, pads: Sequence[Pad]):
        self.pads = list(pads)

    def load_sequence(self, sequence: Sequence[DispensingSequenceEntry]):
        self.sequence = list(sequence)

    def load_reference_points(self, points: Sequence[ReferencePoint]):
        self.reference_points = [p for p in points if p is not None]

    def _extent(self):
        xs = [p.x for p in self.pads] + [p.x for p in self.reference_points]
        ys = [p.y for p in self.pads] + [p.y for p in self.reference_points]
        if self.outline is not None:
            xs += [self.outline.min_x, self.outline.max_x]
            ys += [self.outline.min_y, self.outline.max_y]
        if not xs:
            return 0.0, 0.0, 1.0, 1.0
        return min(xs), min(ys), max(xs), max(ys)

    def save_png_visualization(self, filename: str):
        min_x, min_y, max_x, max_y = self._extent()
        x_min_plot = min_x - self.margin_mm
        y_min_plot = min_y - self.margin_mm
        width_px = max(1, int((max_x - min_x + 2 * self.margin_mm) * self.scale))
        height_px = max(1, int((max_y - min_y + 2 * self.margin_mm) * self.scale))

        img = Image.new('RGB', (width_px, height_px), color='black')
        draw = ImageDraw.Draw(img)

        def mm_to_px(x, y):
            screen_x = int((x - x_min_plot) * self.scale)
            # Y Inversion
            screen_y = int(height_px - (y - y_min_plot) * self.scale)
            return (screen_x, screen_y)

        if self.outline is not None:
            shape = self.outline.as_shape()
            if shape.geom_type == 'Polygon':
                coords_px = [mm_to_px(x, y) for x, y in shape.exterior.coords]
                draw.polygon(coords_px, fill=PCB_COLOR, outline=(255, 255, 255))

        for pad in self.pads:
            cx, cy = mm_to_px(pad.x, pad.y)
            w = max(1, int(pad.width * self.scale / 2))
            h = max(1, int(pad.height * self.scale / 2))
            fill = BARE_PAD_COLOR if pad.needs_paste is False else PASTE_COLOR
            if pad.shape == PadShape.CIRCLE:
                draw.ellipse((cx - w, cy - w, cx + w, cy + w), fill=fill, outline=(173, 216, 230))
            else:
                draw.rectangle((cx - w, cy - h, cx + w, cy + h), fill=fill, outline=(173, 216, 230))

        previous = None
        for entry in self.sequence:
            current = mm_to_px(entry.pad.x, entry.pad.y)
            if previous is not None:
                color = HIGH_CLEARANCE_COLOR if entry.requires_high_clearance else PATH_COLOR
                draw.line([previous, current], fill=color, width=1)
            previous = current

        for point in self.reference_points:
            px, py = mm_to_px(point.x, point.y)
            color = ORIGIN_COLOR if point.kind == 'origin' else FIDUCIAL_COLOR
            draw.line([(px - 5, py), (px + 5, py)], fill=color, width=2)
            draw.line([(px, py - 5), (px, py + 5)], fill=color, width=2)

        img.save(filename)
        logger.info("Visualization saved to '%s'", filename)


def save_profile_plot(profile: MotionProfile, filename: str):
    """Speed vs. time of one profiled move."""
    t = np.array([w.t for w in profile.waypoints])
    v = np.array([w.speed for w in profile.waypoints])

    fig, ax = plt.subplots(figsize=(8, 4))
    ax.plot(t, v, color='tab:blue', linewidth=1.5)
    ax.axhline(profile.v_line, color='gray', linestyle='--', linewidth=1, label='line speed limit')
    ax.set_xlabel('time [s]')
    ax.set_ylabel('speed [mm/s]')
    ax.set_title(f"{profile.kind} move, {profile.lxy:.2f} mm in {profile.T:.3f} s")
    ax.grid(True, linestyle=':')
    ax.legend(loc='upper right')

    plt.savefig(filename, bbox_inches='tight', dpi=100)
    plt.close(fig)
    logger.info("Profile plot saved to '%s'", filename)
