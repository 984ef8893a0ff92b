#!/usr/bin/env python3
"""
Command-line interface for keycraft.

Analyse, rank, optimise and transform split keyboard layouts against a
text corpus. Layouts, weights and targets come from config.yaml and can be
overridden on the command line.

# Build the corpus cache and show the most common bigrams
keycraft corpus --table bigrams --top 20

# Metrics and score of a configured layout
keycraft analyse --layout qwerty --metrics extended --details SFB

# Rank every configured layout
keycraft rank --csv

# Optimise the free keys of a layout for two minutes
keycraft optimise --layout canary --time 2 --seed 42 --log run.jsonl
"""

import argparse
import logging
import random
import sys
from pathlib import Path
from typing import List, Optional

from keycraft.analyser import METRIC_SETS, Analyser
from keycraft.cli_utils import (
    add_common_arguments, add_output_arguments, add_scoring_arguments,
    determine_output_mode, handle_common_errors, setup_logging,
)
from keycraft.config_loader import ConfigLoader
from keycraft.corpus import Corpus, new_corpus
from keycraft.layout import SplitLayout, random_layout
from keycraft.optimiser import BLSParams, optimise
from keycraft.output_utils import (
    format_details, format_optimise_summary, format_ranking, print_results,
)
from keycraft.pins import free_slots, resolve_pins
from keycraft.ranking import compute_deltas, rank_layouts, reference_normalisation
from keycraft.scorer import score_analyser
from keycraft.targets import TargetLoads
from keycraft.weights import Weights

logger = logging.getLogger(__name__)

NGRAM_TABLES = ('unigrams', 'bigrams', 'trigrams', 'skipgrams')


def create_cli_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="keycraft",
        description="Analyse, rank and optimise split keyboard layouts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:

  keycraft corpus --corpus data/corpus/sample.txt --coverage 95 --top 15
  keycraft analyse --layout colemak-dh --weights "SFB=-2,ALT=0.5"
  keycraft rank --layouts qwerty,dvorak,canary --deltas qwerty
  keycraft optimise --layout canary --free "etaoinsr" --generations 200
  keycraft flip --layout qwerty
  keycraft generate --layout qwerty --seed 7
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    corpus_parser = subparsers.add_parser('corpus', help="Build the corpus cache and show top n-grams")
    add_common_arguments(corpus_parser)
    corpus_parser.add_argument('--table', choices=NGRAM_TABLES, default='bigrams',
                               help="N-gram table to list (default: bigrams)")
    corpus_parser.add_argument('--top', type=int, default=10,
                               help="Number of entries to list (default: 10)")

    analyse_parser = subparsers.add_parser('analyse', help="Metrics and weighted score of a layout")
    add_common_arguments(analyse_parser)
    add_layout_arguments(analyse_parser)
    add_scoring_arguments(analyse_parser)
    add_output_arguments(analyse_parser)
    analyse_parser.add_argument('--details', dest='details', action='append', default=[],
                                metavar='METRIC',
                                help="List the n-grams behind a metric (repeatable)")
    analyse_parser.add_argument('--limit', type=int, default=20,
                                help="Entries per --details listing (default: 20)")

    rank_parser = subparsers.add_parser('rank', help="Rank layouts by weighted score")
    add_common_arguments(rank_parser)
    add_scoring_arguments(rank_parser)
    add_output_arguments(rank_parser)
    rank_parser.add_argument('--layouts', dest='layouts',
                             help="Comma-separated configured layout names (default: all)")
    rank_parser.add_argument('--no-normalise', dest='normalise', action='store_false',
                             help="Weight raw metric values instead of median/IQR normalised ones")
    rank_parser.add_argument('--deltas', dest='deltas', metavar='LAYOUT',
                             help="Show differences relative to this layout")
    rank_parser.add_argument('--output', '-o', dest='output',
                             help="Write the ranking to a CSV file")

    optimise_parser = subparsers.add_parser('optimise', help="Improve a layout with breakout local search")
    add_common_arguments(optimise_parser)
    add_layout_arguments(optimise_parser)
    add_scoring_arguments(optimise_parser)
    add_pin_arguments(optimise_parser)
    optimise_parser.add_argument('--generations', type=int, help="Generation budget (overrides config)")
    optimise_parser.add_argument('--time', dest='time_minutes', type=float,
                                 help="Time budget in minutes (overrides config)")
    optimise_parser.add_argument('--seed', type=int, help="Random seed, 0 for time-based (overrides config)")
    optimise_parser.add_argument('--log', dest='log', help="Write one JSON line per generation to this file")
    optimise_parser.add_argument('--name', dest='name', help="Name of the optimised layout")
    optimise_parser.add_argument('--no-normalise', dest='normalise', action='store_false',
                                 help="Optimise raw metric values instead of median/IQR normalised ones")

    flip_parser = subparsers.add_parser('flip', help="Mirror a layout left to right")
    add_common_arguments(flip_parser)
    add_layout_arguments(flip_parser)

    generate_parser = subparsers.add_parser('generate', help="Shuffle the free keys of a layout")
    add_common_arguments(generate_parser)
    add_layout_arguments(generate_parser)
    add_pin_arguments(generate_parser)
    generate_parser.add_argument('--seed', type=int, default=0, help="Random seed, 0 for time-based")
    generate_parser.add_argument('--name', dest='name', help="Name of the generated layout")

    return parser


def add_layout_arguments(parser: argparse.ArgumentParser) -> None:
    layout_group = parser.add_argument_group('Layout Options')
    layout_group.add_argument('--layout', '-l', dest='layout', required=True,
                              help="Configured layout name")


def add_pin_arguments(parser: argparse.ArgumentParser) -> None:
    pin_group = parser.add_argument_group('Pin Options')
    pin_group.add_argument('--pins', dest='pins', default="",
                           help="Characters to keep in place (added to the configured pin grid)")
    pin_group.add_argument('--free', dest='free', default="",
                           help="Characters allowed to move; every other key is pinned")
    pin_group.add_argument('--ignore-pin-grid', dest='ignore_pin_grid', action='store_true',
                           help="Ignore the pin grid defined in the configuration")


def load_corpus(args: argparse.Namespace, loader: ConfigLoader) -> Corpus:
    """
    Load the corpus named on the command line or in the configuration.

    Raises:
        ValueError: If no corpus file is configured
    """
    settings = loader.get_corpus_settings()
    filename = args.corpus or settings['file']
    if not filename:
        raise ValueError("No corpus file given: use --corpus or set corpus.file in the configuration")
    coverage = args.coverage if args.coverage is not None else settings['coverage']
    force_reload = args.force_reload or bool(settings['force_reload'])
    return new_corpus(Path(filename).stem, filename, force_reload=force_reload, coverage=coverage)


def load_weights(args: argparse.Namespace, loader: ConfigLoader) -> Weights:
    if args.weights_file:
        weights = Weights.from_file(args.weights_file)
    else:
        weights = loader.get_weights()
    if args.weights:
        weights.add_from_string(args.weights)
    return weights


def load_target_loads(args: argparse.Namespace, loader: ConfigLoader) -> TargetLoads:
    targets = loader.get_target_loads()
    if args.target_hand_load:
        targets.set_hand_load(args.target_hand_load)
    if args.target_finger_load:
        targets.set_finger_load(args.target_finger_load)
    if args.target_row_load:
        targets.set_row_load(args.target_row_load)
    if args.pinky_penalties:
        targets.set_pinky_penalties(args.pinky_penalties)
    return targets


def load_pins(args: argparse.Namespace, loader: ConfigLoader, layout: SplitLayout):
    pin_rows = None
    if not args.ignore_pin_grid and not args.free:
        pin_rows = loader.get_pin_rows(layout.name)
    return resolve_pins(layout, pin_rows=pin_rows, pins=args.pins, free=args.free)


def selected_metrics(args: argparse.Namespace, loader: ConfigLoader) -> List[str]:
    name = args.metrics or loader.get_output_settings()['metrics']
    if name not in METRIC_SETS:
        raise ValueError(f"Unknown metric set '{name}'. Available: {list(METRIC_SETS)}")
    return METRIC_SETS[name]


def run_corpus(args: argparse.Namespace, loader: ConfigLoader) -> int:
    corpus = load_corpus(args, loader)
    print(corpus.summary())
    print()
    print(f"Top {args.top} {args.table}:")
    total = getattr(corpus, f"total_{args.table}")
    for ngram, count in corpus.top(args.table, args.top):
        percentage = count * 100.0 / total if total else 0.0
        print(f"  {ngram!r:<8} {count:>8}  {percentage:7.3f}%")
    return 0


def run_analyse(args: argparse.Namespace, loader: ConfigLoader) -> int:
    corpus = load_corpus(args, loader)
    layout = loader.get_layout(args.layout)
    analyser = Analyser(layout, corpus, load_target_loads(args, loader))
    result = score_analyser(analyser, load_weights(args, loader))

    output_format = determine_output_mode(args)
    print_results(result, analyser, selected_metrics(args, loader), output_format,
                  loader.get_output_settings())

    for metric in args.details:
        print()
        print(format_details(metric.upper(), analyser.details(metric), args.limit))
    return 0


def run_rank(args: argparse.Namespace, loader: ConfigLoader) -> int:
    corpus = load_corpus(args, loader)
    names = [n.strip() for n in args.layouts.split(',')] if args.layouts else None
    layouts = loader.get_layouts(names)
    frame = rank_layouts(layouts, corpus, load_weights(args, loader),
                         load_target_loads(args, loader), reference=loader.get_layouts(),
                         normalise=args.normalise,
                         metrics=selected_metrics(args, loader))
    if args.deltas:
        frame = compute_deltas(frame, args.deltas)

    precision = loader.get_output_settings()['precision']
    if args.output:
        frame.to_csv(args.output)
        logger.info(f"Ranking of {len(frame)} layouts saved to: {args.output}")
    else:
        print(format_ranking(frame, determine_output_mode(args), precision))
    return 0


def run_optimise(args: argparse.Namespace, loader: ConfigLoader) -> int:
    corpus = load_corpus(args, loader)
    layout = loader.get_layout(args.layout)
    pinned = load_pins(args, loader, layout)

    settings = loader.get_optimiser_settings()
    generations = args.generations if args.generations is not None else settings['generations']
    time_minutes = args.time_minutes if args.time_minutes is not None else settings['time_minutes']
    seed = args.seed if args.seed is not None else settings['seed']
    params = BLSParams.defaults(len(free_slots(pinned)), **loader.get_bls_param_overrides())
    target_loads = load_target_loads(args, loader)
    normalisation = None
    if args.normalise:
        normalisation = reference_normalisation(loader.get_layouts(), corpus, target_loads)

    logger.info(f"Optimising '{layout.name}': {len(free_slots(pinned))} free keys, "
                f"{generations} generations, {time_minutes} minutes")

    log_file = open(args.log, 'w', encoding='utf-8') if args.log else None
    try:
        result = optimise(layout, corpus, load_weights(args, loader), target_loads, pinned,
                          generations, time_minutes, seed=seed,
                          log_sink=log_file, params=params, normalisation=normalisation)
    finally:
        if log_file is not None:
            log_file.close()

    print(format_optimise_summary(result, args.name or f"{layout.name}-optimised"))
    return 0


def run_flip(args: argparse.Namespace, loader: ConfigLoader) -> int:
    layout = loader.get_layout(args.layout).clone(f"{args.layout}-flipped")
    layout.flip_horizontal()
    print(layout)
    return 0


def run_generate(args: argparse.Namespace, loader: ConfigLoader) -> int:
    layout = loader.get_layout(args.layout)
    pinned = load_pins(args, loader, layout)
    if not free_slots(pinned):
        raise ValueError("No free keys to shuffle: every slot is pinned")
    seed = args.seed
    if seed == 0:
        seed = random.SystemRandom().randrange(1, 2 ** 32)
    generated = random_layout(layout, pinned, random.Random(seed), args.name)
    logger.info(f"Generated '{generated.name}' with seed {seed}")
    print(generated)
    return 0


COMMANDS = {
    'corpus': run_corpus,
    'analyse': run_analyse,
    'rank': run_rank,
    'optimise': run_optimise,
    'flip': run_flip,
    'generate': run_generate,
}


@handle_common_errors
def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the keycraft command."""
    parser = create_cli_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    loader = ConfigLoader(args.config)
    return COMMANDS[args.command](args, loader)


if __name__ == "__main__":
    sys.exit(main())
