"""Main entry point for the Header Type Model command line tool."""

import argparse
import json
import sys
from pathlib import Path
from typing import NoReturn

from .application import TypeModelAnalyzer
from .domain.services.serialization import diff_to_dict, result_to_dict, snapshot_diff_to_dict
from .infrastructure.config import AbiConfig, Config
from .infrastructure.logging import LoggerSetup, get_logger, log_diagnostics, log_timing
from .utils.path_utils import create_model_filename


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Parse reverse-engineered C++ type declarations into a normalized type model, "
        "validate field offsets and compare snapshots",
        epilog="""
Examples:
  # Build the type model of a directory of headers
  header-type-model analyze headers/ -o output/

  # Name the snapshot after the build it was extracted from
  header-type-model analyze headers/ --snapshot build-1234

  # Use a custom ABI description (pointer size, container sizes...)
  header-type-model analyze headers/ --abi abi.json

  # Compare two extraction snapshots
  header-type-model diff old_headers/ new_headers/

  # Compare selected types only
  header-type-model diff old_headers/ new_headers/ --type game::Player --type EShape
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--abi",
        type=Path,
        metavar="FILE",
        help="JSON file with ABI overrides (pointer_size, container_layouts, ...)",
    )
    common.add_argument(
        "-j",
        "--workers",
        type=int,
        help="Number of parser threads (default: serial)",
    )
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output with debug logs",
    )

    analyze = subparsers.add_parser("analyze", parents=[common], help="Build and write the type model")
    analyze.add_argument("paths", type=Path, nargs="+", help="Header files or directories")
    analyze.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Output directory for the JSON model (default: ./output)",
    )
    analyze.add_argument(
        "--snapshot",
        default="default",
        help="Snapshot name, also used as output file name (default: default)",
    )

    diff = subparsers.add_parser("diff", parents=[common], help="Compare two snapshots")
    diff.add_argument("old", type=Path, help="Older header file or directory")
    diff.add_argument("new", type=Path, help="Newer header file or directory")
    diff.add_argument(
        "--type",
        dest="types",
        action="append",
        metavar="NAME",
        help="Qualified type name to compare (repeatable; default: whole snapshot)",
    )
    diff.add_argument(
        "-o",
        "--output",
        type=Path,
        metavar="FILE",
        help="Write the JSON diff to FILE instead of stdout",
    )

    return parser.parse_args(argv)


def _load_abi(config: Config) -> AbiConfig:
    if config.abi_file is not None:
        return AbiConfig.from_file(config.abi_file)
    return AbiConfig.from_env()


def run_analyze(args: argparse.Namespace, config: Config) -> int:
    """Analyze one snapshot and write ``<snapshot>.json``."""
    logger = get_logger(__name__)

    analyzer = TypeModelAnalyzer(_load_abi(config), config.workers)
    result = analyzer.analyze_paths(config.input_paths, args.snapshot)

    config.ensure_output_dir()
    output_file = config.output_dir / create_model_filename(args.snapshot)
    output_file.write_text(json.dumps(result_to_dict(result), indent=2), encoding="utf-8")

    counts = log_diagnostics(logger, result.diagnostics)
    logger.info(f"Diagnostics: {counts['error']} error(s), {counts['warning']} warning(s), {counts['info']} info")

    analyzer.progress.report_summary()
    logger.info(f"[SUCCESS] Wrote type model: {output_file}")
    return 1 if result.errors else 0


def run_diff(args: argparse.Namespace, config: Config) -> int:
    """Analyze two snapshots and report their differences."""
    logger = get_logger(__name__)

    analyzer = TypeModelAnalyzer(_load_abi(config), config.workers)
    analyzer.analyze_paths([args.old], "old")
    analyzer.analyze_paths([args.new], "new")

    if args.types:
        payload: dict = {"types": [diff_to_dict(analyzer.diff("old", "new", name)) for name in args.types]}
        changed = sum(1 for entry in payload["types"] if entry["status"] != "unchanged")
    else:
        snapshot_diff = analyzer.diff_snapshots("old", "new")
        payload = snapshot_diff_to_dict(snapshot_diff)
        changed = len(snapshot_diff.added_types) + len(snapshot_diff.removed_types) + len(snapshot_diff.changed_types)

    text = json.dumps(payload, indent=2)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
        logger.info(f"[SUCCESS] Wrote diff: {args.output}")
    else:
        print(text)

    logger.info(f"{changed} type(s) differ")
    return 0


@log_timing
def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point."""
    args = parse_args(argv)

    input_paths = args.paths if args.command == "analyze" else [args.old, args.new]
    try:
        config = Config.from_args(
            input_paths=input_paths,
            output_dir=getattr(args, "output", None) if args.command == "analyze" else None,
            verbose=args.verbose or None,
            workers=args.workers,
            abi_file=args.abi,
        )
        config.validate()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    LoggerSetup.initialize(config.log_dir, verbose=config.verbose)
    logger = get_logger(__name__)
    logger.debug(f"Inputs: {', '.join(str(p) for p in config.input_paths)}")

    try:
        if args.command == "analyze":
            exit_code = run_analyze(args, config)
        else:
            exit_code = run_diff(args, config)
    except (OSError, ValueError, LookupError) as e:
        logger.error(f"[FAILED] {e}")
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
