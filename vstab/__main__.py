"""
vstab Command Line Interface

Usage:
    vstab <command> [options]

Commands:
    analyze     Estimate camera motion and write stabilization corrections
    params      Write an example parameters file
    version     Show version information

Examples:
    vstab analyze input.mp4 -s 20 -o input_corrections.csv
    vstab analyze input.mp4 -c stab_params.json -m rotation --raw-out input.motion
    vstab params --create stab_params.json
"""

import logging
import sys
import argparse
from pathlib import Path

from vstab import __version__


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='vstab',
        description='Video stabilization engine',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        '-V', '--version',
        action='version',
        version=f'vstab {__version__}',
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Analyze command
    analyze_parser = subparsers.add_parser(
        'analyze',
        help='Estimate motion and write corrections',
    )
    analyze_parser.add_argument('input', help='Input video file')
    analyze_parser.add_argument(
        '-c', '--config',
        default=None,
        help='Stabilization parameters file (JSON)',
    )
    analyze_parser.add_argument(
        '-s', '--smoothness',
        type=float,
        default=None,
        help='Smoothing strength in frames (overrides config)',
    )
    analyze_parser.add_argument(
        '-m', '--method',
        choices=['translation', 'rotation', 'perspective'],
        default=None,
        help='Motion model (overrides config)',
    )
    analyze_parser.add_argument(
        '-j', '--workers',
        type=int,
        default=None,
        help='Worker threads for motion analysis (default: CPU count)',
    )
    analyze_parser.add_argument(
        '-fs', '--first-frame',
        type=int,
        default=1,
        help='First frame to process (default: 1)',
    )
    analyze_parser.add_argument(
        '-fe', '--frame-end',
        type=int,
        default=None,
        help='Last frame to process (default: end of video)',
    )
    analyze_parser.add_argument(
        '-o', '--output',
        default=None,
        help='Corrections CSV (default: <input>_corrections.csv)',
    )
    analyze_parser.add_argument(
        '--raw-out',
        default=None,
        help='Also write raw motion to this file',
    )
    analyze_parser.add_argument(
        '--clamp',
        action='store_true',
        help='Limit corrections to the crop border',
    )
    verbosity = analyze_parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Suppress progress output',
    )
    verbosity.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Debug logging',
    )

    # Params command
    params_parser = subparsers.add_parser(
        'params',
        help='Write an example parameters file',
    )
    params_parser.add_argument(
        '--create',
        metavar='PATH',
        default='stab_params.json',
        help='Output path (default: stab_params.json)',
    )

    # Version command
    subparsers.add_parser('version', help='Show version information')

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == 'analyze':
        return run_analyze(args)
    elif args.command == 'params':
        return run_params(args)
    elif args.command == 'version':
        print(f"vstab {__version__}")
        return 0
    else:
        parser.print_help()
        return 1


def _configure_logging(args) -> None:
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load_params(args):
    from vstab.core.config import StabilizationParams, load_params, params_from_env

    params = load_params(args.config) if args.config else StabilizationParams()
    params = params_from_env(params)

    overrides = {}
    if args.smoothness is not None:
        overrides['smoothness'] = args.smoothness
    if args.method is not None:
        overrides['method'] = args.method
    return params.replace(**overrides) if overrides else params


def run_analyze(args) -> int:
    """Run motion analysis and write corrections."""
    from vstab.core.video import probe_video, read_gray_frames
    from vstab.pipeline import stabilize
    from vstab.tracking.motion_io import write_corrections_csv, write_motion_file

    _configure_logging(args)

    try:
        params = _load_params(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    input_path = Path(args.input)
    output = Path(args.output) if args.output else input_path.with_name(
        f"{input_path.stem}_corrections.csv"
    )

    try:
        info = probe_video(input_path)
        if not args.quiet:
            print(f"Reading {input_path} ({info.width}x{info.height} @ {info.fps:.2f}fps)")
        frames = list(read_gray_frames(input_path, args.first_frame, args.frame_end))
    except (FileNotFoundError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    def report(done: int, total: int) -> None:
        print(f"\rPair {done}/{total}", end='')

    result = stabilize(
        frames,
        params,
        clamp_to_crop=args.clamp,
        workers=args.workers,
        progress=None if args.quiet else report,
    )

    write_corrections_csv(output, result.corrections)
    if args.raw_out:
        write_motion_file(args.raw_out, result.raw)

    if not args.quiet:
        print(f"\nWrote {len(result.corrections)} corrections to {output}")
    return 0


def run_params(args) -> int:
    """Write an example parameters file."""
    from vstab.core.config import create_example_params

    create_example_params(args.create)
    print(f"Created example parameters: {args.create}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
