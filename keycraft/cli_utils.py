#!/usr/bin/env python3
"""
CLI utilities for keycraft.

Shared argument groups, logging setup and error handling for the
command-line entry points.
"""

import argparse
import functools
import logging
import sys
import traceback

from keycraft.output_utils import OUTPUT_FORMATS

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging for a CLI run."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Configuration, corpus and logging arguments shared by every command."""
    input_group = parser.add_argument_group('Input Options')
    input_group.add_argument(
        '--config',
        dest='config',
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    input_group.add_argument(
        '--corpus', '-c',
        dest='corpus',
        help="Corpus text file (overrides config)"
    )
    input_group.add_argument(
        '--coverage',
        dest='coverage',
        type=coverage_value,
        help="Percentage of word occurrences to keep, 0.1-100 (overrides config)"
    )
    input_group.add_argument(
        '--force-reload',
        dest='force_reload',
        action='store_true',
        help="Rebuild the corpus cache"
    )

    log_group = parser.add_argument_group('Logging')
    log_group.add_argument('--verbose', '-v', action='store_true', help="Debug logging")
    log_group.add_argument('--quiet', '-q', action='store_true', help="Only warnings and errors")


def add_scoring_arguments(parser: argparse.ArgumentParser) -> None:
    """Weights and target load overrides."""
    scoring_group = parser.add_argument_group('Scoring Options')
    scoring_group.add_argument(
        '--weights', '-w',
        dest='weights',
        help="Comma-separated metric=weight pairs added to the configured weights"
    )
    scoring_group.add_argument(
        '--weights-file',
        dest='weights_file',
        help="File of metric=weight lines replacing the configured weights"
    )
    scoring_group.add_argument('--target-hand-load', dest='target_hand_load',
                               help="Two values, e.g. '50,50'")
    scoring_group.add_argument('--target-finger-load', dest='target_finger_load',
                               help="4 (mirrored) or 8 values, pinky to index")
    scoring_group.add_argument('--target-row-load', dest='target_row_load',
                               help="Three values: top, home, bottom")
    scoring_group.add_argument('--pinky-penalties', dest='pinky_penalties',
                               help="6 (mirrored) or 12 values")


def add_output_arguments(parser: argparse.ArgumentParser) -> None:
    output_group = parser.add_argument_group('Output Options')
    output_group.add_argument(
        '--output-format',
        dest='output_format',
        choices=list(OUTPUT_FORMATS),
        default='detailed',
        help="Output format (default: detailed)"
    )
    output_group.add_argument(
        '--csv',
        dest='csv',
        action='store_true',
        help="Output in CSV format (same as --output-format csv)"
    )
    output_group.add_argument(
        '--metrics',
        dest='metrics',
        choices=['basic', 'extended', 'fingers', 'all'],
        help="Metric set to display (default from config)"
    )


def coverage_value(text: str) -> float:
    """argparse type for --coverage."""
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid coverage '{text}'")
    if not 0.1 <= value <= 100.0:
        raise argparse.ArgumentTypeError(f"coverage must be between 0.1 and 100, got {value}")
    return value


def determine_output_mode(args: argparse.Namespace) -> str:
    if getattr(args, 'csv', False):
        return 'csv'
    return getattr(args, 'output_format', 'detailed')


def handle_common_errors(func):
    """
    Decorator to handle common CLI errors gracefully.

    Args:
        func: Function to wrap (typically main())

    Returns:
        Wrapped function returning a process exit code on failure
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            print("\nOperation cancelled by user.", file=sys.stderr)
            return 130
        except FileNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except PermissionError as e:
            print(f"Permission error: {e}", file=sys.stderr)
            return 1
        except Exception as e:
            print(f"Unexpected error: {e}", file=sys.stderr)
            traceback.print_exc()
            return 1

    return wrapper
