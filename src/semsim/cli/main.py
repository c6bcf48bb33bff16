"""CLI main module with subcommands for run, validate, inspect, and materials.

Usage:
    python -m semsim.cli run --config jobs.yaml --out out_dir
    python -m semsim.cli validate --config jobs.yaml
    python -m semsim.cli inspect --config jobs.yaml
    python -m semsim.cli materials
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from ..core.config import load_config
from ..core.errors import RunAborted, SemSimError
from ..core.logging import setup_logging
from ..core.parameters import MODE_KEY
from ..core.units import rad_to_deg
from ..imaging.formation import downscaled_shape
from ..materials import PRESETS
from ..simulation import JobManager


def cmd_run(args: argparse.Namespace) -> int:
    """Run every job in the config and export one image per job."""
    out_path = Path(args.out) if args.out else None
    log_path = (out_path / "run.log.jsonl") if out_path else None
    setup_logging(log_path, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = load_config(args.config)
    except (OSError, SemSimError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if out_path is not None:
        config.output.directory = out_path
    if args.format:
        config.output.format = args.format

    try:
        manager = JobManager.from_config(config)
    except SemSimError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    aborted = 0
    try:
        results = manager.run_all()
    except RunAborted as e:
        results = e.results
        aborted = len(e.failures)
        print(f"Warning: {e}", file=sys.stderr)

    errors = manager.export_all(
        results,
        config.output.directory,
        fmt=config.output.format,
        prefix=config.output.prefix,
    )
    failed_exports = sum(1 for err in errors if err is not None)

    print(f"Jobs:     {len(results)}")
    print(f"Aborted:  {aborted}")
    print(f"Exported: {len(results) - aborted - failed_exports}")
    print(f"Output:   {config.output.directory}")
    return 0 if not aborted and not failed_exports else 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Load and validate a config without running it."""
    try:
        config = load_config(args.config)
        config.engine.resolve_material()
    except (OSError, SemSimError) as e:
        print(f"Invalid: {e}", file=sys.stderr)
        return 2
    print(f"Valid: {len(config.jobs)} job(s), mode {config.engine.mode.value}")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Print engine, formation and per-job summaries for a config."""
    try:
        config = load_config(args.config)
    except (OSError, SemSimError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    engine = config.engine
    print("Engine:")
    print("-" * 40)
    print("  Backend:   ", engine.backend.value)
    print("  Mode:      ", engine.mode.value)
    if engine.library is not None:
        print("  Library:   ", engine.library)
    material = engine.material if isinstance(engine.material, str) else engine.material.name
    print("  Material:  ", material)
    print()

    formation = config.formation
    print("Formation:")
    print("-" * 40)
    print("  Gamma:     ", formation.gamma)
    print("  LUT:       ", formation.lut.value if formation.lut else "none")
    print("  Max side:  ", formation.max_dim)
    print()

    print(f"Jobs ({len(config.jobs)}):")
    print("-" * 40)
    for index, job in enumerate(config.jobs):
        fields = ", ".join(f"{k}={v}" for k, v in job.metadata().items() if k != MODE_KEY)
        print(f"  [{index:03d}] {fields}")
        angle = getattr(job, "angle_stddev_rad", None)
        if angle is not None:
            print(f"        angular spread {rad_to_deg(angle):.4g} deg")
        resolution = getattr(job, "resolution", None)
        if resolution is not None:
            rows, cols = downscaled_shape(resolution, resolution, formation.max_dim, formation.min_dim)
            if (rows, cols) != (resolution, resolution):
                print(f"        raster will be downscaled to {cols}x{rows}")
    return 0


def cmd_materials(args: argparse.Namespace) -> int:  # noqa: ARG001
    """List the built-in material presets."""
    print(f"{'Name':10} {'Z':>4} {'rho g/cm3':>10} {'A g/mol':>9}")
    print("-" * 36)
    for m in PRESETS:
        print(f"{m.name:10} {m.atomic_number:>4} {m.density_g_cm3:>10.3f} {m.atomic_mass_u:>9.3f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="semsim.cli",
        description="SEM simulation orchestration CLI",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    parser_run = subparsers.add_parser(
        "run",
        help="Run all jobs from a config file and export images",
    )
    parser_run.add_argument(
        "--config",
        "-c",
        type=Path,
        required=True,
        help="Path to YAML/JSON config file",
    )
    parser_run.add_argument(
        "--out",
        "-o",
        type=Path,
        default=None,
        help="Output directory (default: output.directory from config)",
    )
    parser_run.add_argument(
        "--format",
        "-f",
        choices=["png", "tiff"],
        default=None,
        help="Image format (default: output.format from config)",
    )
    parser_run.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser_run.set_defaults(func=cmd_run)

    parser_validate = subparsers.add_parser(
        "validate",
        help="Validate a config file without running it",
    )
    parser_validate.add_argument(
        "--config",
        "-c",
        type=Path,
        required=True,
        help="Path to YAML/JSON config file",
    )
    parser_validate.set_defaults(func=cmd_validate)

    parser_inspect = subparsers.add_parser(
        "inspect",
        help="Print engine, formation and job summaries for a config",
    )
    parser_inspect.add_argument(
        "--config",
        "-c",
        type=Path,
        required=True,
        help="Path to YAML/JSON config file",
    )
    parser_inspect.set_defaults(func=cmd_inspect)

    parser_materials = subparsers.add_parser(
        "materials",
        help="List built-in material presets",
    )
    parser_materials.set_defaults(func=cmd_materials)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args) or 0)


if __name__ == "__main__":
    sys.exit(main())
