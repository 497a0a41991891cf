"""Command-line interface for navspace pathfinding.

Usage examples:
  python -m navspace --geometry world.json --start "0.5,0.5,0" --goal "9.5,3.5,0" --json
  python -m navspace --geometry mesh.json --start "0,0,0" --goal "4,2,0" --mode midpoints
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from .api import NavigationSpace
from .errors import BuildError, NodeNotFoundError, SearchError, SearchTimeoutError
from .options import NavOptions, PathMode
from .path import PathResult
from .sources import load_source
from .vector import Vec3

LOGGER = logging.getLogger(__name__)


def _parse_point(value: str) -> Vec3:
    try:
        parts = [float(p.strip()) for p in value.split(",")]
        if len(parts) not in (2, 3):
            raise ValueError
        return Vec3.of(parts)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Expected point in form 'x,y' or 'x,y,z', got: {value!r}"
        ) from exc


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="navspace",
        description="Shortest walkable paths over meshes, grids, free grids and nets",
    )

    # Required inputs
    p.add_argument("--geometry", type=str, required=True, help="Path to a JSON geometry document")
    p.add_argument("--start", type=_parse_point, required=True, help="Start position: x,y[,z]")
    p.add_argument("--goal", type=_parse_point, required=True, help="Goal position: x,y[,z]")

    # IO
    p.add_argument("--json", action="store_true", help="Output result as JSON")
    p.add_argument("--out", "--output", dest="out_path", type=str, default=None, help="Write output to file instead of stdout")

    # Limits
    p.add_argument("--max-expansions", type=int, default=None, help="Maximum node expansions")
    p.add_argument("--timeout-ms", type=int, default=None, help="Timeout in milliseconds (0 disables)")

    # Engine
    p.add_argument("--mode", choices=[m.value for m in PathMode], default=PathMode.ACCURACY.value, help="Path refinement mode")
    p.add_argument("--precision", choices=["single", "double"], default="double", help="Coordinate precision")
    p.add_argument("--tolerance", type=float, default=None, help="Vertex welding / portal matching tolerance")

    # Logging
    p.add_argument("--log-level", default="INFO", choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"], help="Logging level")

    return p


def _options_from_args(args: argparse.Namespace) -> NavOptions:
    kwargs: Dict[str, Any] = {"precision": args.precision, "path_mode": PathMode(args.mode)}
    if args.max_expansions is not None:
        kwargs["max_expansions"] = args.max_expansions
    if args.timeout_ms is not None:
        kwargs["timeout_ms"] = args.timeout_ms
    if args.tolerance is not None:
        kwargs["tolerance"] = args.tolerance
    return NavOptions(**kwargs)


def _report(result: PathResult | None, reason: str, expanded: int) -> Dict[str, Any]:
    if result is None:
        return {"reason": reason, "expanded": expanded, "cost": None, "length": None, "nodes": [], "waypoints": []}
    payload = {"reason": reason}
    payload.update(result.to_json_dict())
    payload["length"] = result.length
    return payload


def _format_human(report: Dict[str, Any]) -> str:
    lines = [
        f"reason: {report['reason']}",
        f"expanded: {report['expanded']}",
        f"nodes: {len(report['nodes'])}",
    ]
    if report["cost"] is not None:
        lines.append(f"cost: {report['cost']:.6g}")
        lines.append(f"length: {report['length']:.6g}")
    if report["waypoints"]:
        lines.append("waypoints:")
        for x, y, z in report["waypoints"]:
            lines.append(f"  - [{x:.6g}, {y:.6g}, {z:.6g}]")
    return "\n".join(lines) + "\n"


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        options = _options_from_args(args)
        source = load_source(args.geometry)
        space = NavigationSpace(source, options)
    except (OSError, ValueError, BuildError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    try:
        result = space.find_path(args.start, args.goal)
        report = _report(result, "ok", result.expanded)
    except SearchTimeoutError as exc:
        report = _report(None, exc.reason, exc.expanded)
    except SearchError as exc:
        report = _report(None, "unreachable", exc.expanded)
    except NodeNotFoundError:
        report = _report(None, "node-not-found", 0)

    if args.json:
        out_text = json.dumps(report, separators=(",", ":"), indent=2) + "\n"
    else:
        out_text = _format_human(report)

    if args.out_path:
        out_file = Path(args.out_path)
        out_file.parent.mkdir(parents=True, exist_ok=True)
        out_file.write_text(out_text, encoding="utf-8")
    else:
        print(out_text, end="")

    # Exit code 0 whenever a result (including "unreachable") was reported
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
