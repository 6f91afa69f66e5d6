"""
Command line front end.

    gerber2paste extract board-F_Cu.gbr
    gerber2paste plan --copper board-F_Cu.gbr --paste board-F_Paste.gbr --outline board-Edge_Cuts.gbr \
        --mode safe --height C3=6.5 --pair 0,0:12.1,40.3 --pair 50,0:62.0,40.9 -o paste.gcode --png paste.png
    gerber2paste fit --pair 0,0:5,5 --pair 10,0:15,5
    gerber2paste move --start 0,0 --end 100,0 --vx 50 --ax 500 --plot move.png
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

from . import config
from .config import AxisLimits, PlannerSettings
from .fiducials import detect_fiducials, select_origin
from .gcode import GcodeGenerator
from .geometry import Point2D, PadSource, pads_footprint
from .gerber import extract, extract_board_outline, extract_pads
from .logging_config import setup_logging
from .motion import profile_move
from .pads import combine, pads_needing_paste
from .sequencer import FLAT, SAFE, ComponentHeight, plan_sequence, total_path_distance
from .speed import VISCOSITY_MULTIPLIERS, SpeedProfileManager
from .transform import AFFINE, SIMILARITY, fit_affine, fit_similarity, rms_error, transform_pads
from .visualize import OutputVisualizer, save_profile_plot

logger = logging.getLogger(__name__)


def parse_point(text: str) -> Point2D:
    try:
        x, y = (float(v) for v in text.split(','))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected 'x,y', got {text!r}")
    return Point2D(x, y)


def parse_pair(text: str) -> Tuple[Point2D, Point2D]:
    """'dx,dy:mx,my' -> (design point, machine point)."""
    design, sep, machine = text.partition(':')
    if not sep:
        raise argparse.ArgumentTypeError(f"Expected 'dx,dy:mx,my', got {text!r}")
    return parse_point(design), parse_point(machine)


def parse_height(text: str) -> ComponentHeight:
    pad_id, sep, height = text.partition('=')
    try:
        if not sep or not pad_id:
            raise ValueError(text)
        return ComponentHeight(pad_id=pad_id, height=float(height))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected 'PAD_ID=height', got {text!r}")


def _add_limit_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--vx", type=float, default=config.MAX_VX, help="X speed limit [mm/s]")
    parser.add_argument("--vy", type=float, default=config.MAX_VY, help="Y speed limit [mm/s]")
    parser.add_argument("--ax", type=float, default=config.MAX_AX, help="X acceleration limit [mm/s^2]")
    parser.add_argument("--ay", type=float, default=config.MAX_AY, help="Y acceleration limit [mm/s^2]")
    parser.add_argument("--vz", type=float, default=config.MAX_VZ, help="Z speed limit [mm/s]")


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gerber2paste",
        description="Plan solder paste dispensing from Gerber files.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=Path, help="Also write the log to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_extract = sub.add_parser("extract", help="Summarize pads, outline and fiducials of one Gerber layer")
    p_extract.add_argument("input", type=Path, help="Gerber file")

    p_plan = sub.add_parser("plan", help="Sequence the paste pads and write G-code")
    p_plan.add_argument("--copper", type=Path, help="Copper layer (pad positions)")
    p_plan.add_argument("--paste", type=Path, help="Solder paste layer (pads to dispense)")
    p_plan.add_argument("--outline", type=Path, help="Board outline layer (origin)")
    p_plan.add_argument("--mode", choices=(FLAT, SAFE), default=FLAT, help="Sequencing mode")
    p_plan.add_argument("--height", type=parse_height, action="append", default=[],
                        help="Component height as PAD_ID=mm (repeatable)")
    p_plan.add_argument("--pair", type=parse_pair, action="append", default=[],
                        help="Design/machine correspondence 'dx,dy:mx,my' (repeatable)")
    p_plan.add_argument("--model", choices=(SIMILARITY, AFFINE), default=SIMILARITY,
                        help="Transform model fitted from --pair")
    p_plan.add_argument("--safe-height", type=float, default=config.SAFE_HEIGHT)
    p_plan.add_argument("--clearance", type=float, default=config.CLEARANCE_HEIGHT)
    p_plan.add_argument("--dispense-height", type=float, default=config.DISPENSE_HEIGHT)
    p_plan.add_argument("--dwell", type=float, default=config.DISPENSE_DWELL_MS, help="Dispense time [ms]")
    p_plan.add_argument("--viscosity", choices=sorted(VISCOSITY_MULTIPLIERS),
                        help="Pick feeds per pad from the pad-size speed profiles, tuned for this paste")
    p_plan.add_argument("-o", "--output", type=Path, help="G-code destination (defaults to <paste>.gcode)")
    p_plan.add_argument("--png", type=Path, help="Optional preview image")

    p_fit = sub.add_parser("fit", help="Fit a design-to-machine transform")
    p_fit.add_argument("--pair", type=parse_pair, action="append", default=[], required=True,
                       help="Design/machine correspondence 'dx,dy:mx,my' (repeatable)")
    p_fit.add_argument("--model", choices=(SIMILARITY, AFFINE), default=SIMILARITY)

    p_move = sub.add_parser("move", help="Profile one straight XY move")
    p_move.add_argument("--start", type=parse_point, required=True, help="x,y")
    p_move.add_argument("--end", type=parse_point, required=True, help="x,y")
    p_move.add_argument("--dt", type=float, default=config.MOTION_TIME_STEP, help="Sample step [s]")
    _add_limit_arguments(p_move)
    p_move.add_argument("--plot", type=Path, help="Speed vs. time plot (PNG)")
    p_move.add_argument("--gcode", action="store_true", help="Print one G1 line per waypoint")

    return parser.parse_args(argv)


def _read(path: Optional[Path]) -> Optional[str]:
    if path is None:
        return None
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_text(errors="replace")


def _fit(pairs, model):
    design = [d for d, _ in pairs]
    machine = [m for _, m in pairs]
    result = fit_affine(design, machine) if model == AFFINE else fit_similarity(design, machine)
    return result, design, machine


def run_extract(args) -> int:
    text = _read(args.input)
    result = extract(text)
    print(f"[+] Loaded {args.input} ({len(text)} bytes, units {result.header.units})")
    if result.is_empty:
        print("[i] No coordinates found")
        return 0

    print(f"[+] {len(result.pads)} pads, {len(result.strokes)} strokes")
    if result.pads:
        print(f"[+] Copper area: {pads_footprint(result.pads).area:.2f} mm^2")
    origin = select_origin(result.outline)
    if origin is not None:
        outline = result.outline
        print(f"[+] Extent {outline.width:.2f} x {outline.height:.2f} mm, origin ({origin.x:.3f}, {origin.y:.3f})")
    for fid in detect_fiducials(text):
        print(f"[+] Fiducial {fid.id} at ({fid.x:.3f}, {fid.y:.3f}) d={fid.diameter:.2f} "
              f"confidence {fid.confidence:.2f}")
    return 0


def run_plan(args) -> int:
    if args.copper is None and args.paste is None:
        print("[!] Need at least one of --copper / --paste")
        return 1

    copper_text = _read(args.copper)
    paste_text = _read(args.paste)
    outline_text = _read(args.outline)

    copper_pads = extract_pads(copper_text, PadSource.STRUCTURAL, 'C') if copper_text else []
    paste_pads = extract_pads(paste_text, PadSource.TARGET, 'P') if paste_text else []
    combined = combine(copper_pads, paste_pads)
    pads = pads_needing_paste(combined.pads)
    print(f"[+] {len(pads)} pads to dispense ({combined.matched_count} matched copper/paste)")
    if not pads:
        print("[!] Nothing to dispense")
        return 1

    outline = extract_board_outline(outline_text) if outline_text else None
    origin = select_origin(outline)
    reference = origin.as_point() if origin is not None else Point2D(0.0, 0.0)

    if args.pair:
        result, design, machine = _fit(args.pair, args.model)
        if not result.ok:
            print(f"[!] {result.message}")
            return 1
        transform = result.transform
        pads = transform_pads(transform, pads)
        reference = transform.apply(reference)
        print(f"[+] {args.model} transform, RMS {rms_error(transform, design, machine):.4f} mm")

    settings = PlannerSettings(safe_height=args.safe_height, clearance_height=args.clearance,
                               dispense_height=args.dispense_height)
    sequence = plan_sequence(reference, pads, mode=args.mode, heights=args.height, settings=settings)
    forced = sum(1 for entry in sequence if entry.requires_high_clearance)
    print(f"[+] Sequence of {len(sequence)} pads, {total_path_distance(sequence):.1f} mm travel"
          + (f", {forced} high clearance moves" if forced else ""))

    speed_profiles = None
    if args.viscosity:
        speed_profiles = SpeedProfileManager(args.viscosity)
        stats = speed_profiles.profile_stats(pads)
        print("[+] Speed profiles: " + ", ".join(f"{key} {count}" for key, count in sorted(stats.items())))
    generator = GcodeGenerator(settings, dwell_ms=args.dwell, speed_profiles=speed_profiles)
    output = args.output or (args.paste or args.copper).with_suffix(".gcode")
    generator.write(str(output), generator.dispensing_program(sequence))
    print(f"[+] G-code written to {output}")

    if args.png:
        visualizer = OutputVisualizer()
        if not args.pair:
            visualizer.load_outline(outline)
            visualizer.load_reference_points([origin])
        visualizer.load_pads(pads)
        visualizer.load_sequence(sequence)
        visualizer.save_png_visualization(str(args.png))
        print(f"[+] Preview written to {args.png}")
    return 0


def run_fit(args) -> int:
    result, design, machine = _fit(args.pair, args.model)
    if not result.ok:
        print(f"[!] {result.message}")
        return 1
    t = result.transform
    print(f"[+] {t.kind}: a={t.a:.6f} b={t.b:.6f} c={t.c:.6f} d={t.d:.6f} tx={t.tx:.4f} ty={t.ty:.4f}")
    if t.scale is not None:
        print(f"[+] scale={t.scale:.6f} rotation={t.rotation_deg:.4f} deg")
    print(f"[+] RMS error {rms_error(t, design, machine):.4f} mm")
    return 0


def run_move(args) -> int:
    limits = AxisLimits(vx=args.vx, vy=args.vy, ax=args.ax, ay=args.ay, vz=args.vz)
    profile = profile_move(args.start, args.end, limits, dt=args.dt)
    print(f"[+] {profile.kind} move: {profile.lxy:.3f} mm in {profile.T:.4f} s, "
          f"peak {profile.v_peak:.2f} mm/s, line limits {profile.v_line:.2f} mm/s / {profile.a_line:.1f} mm/s^2")
    print(f"[+] accel {profile.d_acc:.3f} mm, cruise {profile.d_cruise:.3f} mm, {len(profile.waypoints)} waypoints")
    if args.gcode:
        for line in GcodeGenerator().profile_feed_lines(profile):
            print(line)
    if args.plot:
        save_profile_plot(profile, str(args.plot))
        print(f"[+] Plot written to {args.plot}")
    return 0


COMMANDS = {
    "extract": run_extract,
    "plan": run_plan,
    "fit": run_fit,
    "move": run_move,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING,
                  str(args.log_file) if args.log_file else None)
    try:
        return COMMANDS[args.command](args)
    except FileNotFoundError as e:
        print(f"[!] {e}")
        return 1
    except ValueError as e:
        print(f"[!] {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
