"""
Main entry point for eurocluster.

Loads a table, runs the clustering analysis and prints the per-K
diagnostics, the recommendation and the cluster table.
"""

import argparse
import logging
import sys

import pandas as pd

from eurocluster.analysis import Analysis
from eurocluster.components.config import ConfigManager, load_config_file
from eurocluster.data import load_table

logger = logging.getLogger(__name__)


def setup_logging(level: str = 'INFO') -> None:
    """
    Set up logging.

    Args:
        level: Logging level
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler()
        ]
    )


def parse_args(argv=None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='K-means clustering with elbow, silhouette and gap statistic diagnostics'
    )

    parser.add_argument('input', help='CSV file (path or URL) with a label column and numeric columns')
    parser.add_argument('--config', help='Path to configuration file (JSON or YAML)')
    parser.add_argument(
        '--log-level',
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level'
    )
    parser.add_argument('--label-column', help='Name of the row label column (default: first column)')
    parser.add_argument('--k', type=int, help='Number of clusters for the final fit')
    parser.add_argument('--k-min', type=int, help='Smallest K to scan')
    parser.add_argument('--k-max', type=int, help='Largest K to scan')
    parser.add_argument('--restarts', type=int, help='Random restarts per fit')
    parser.add_argument('--max-iters', type=int, help='Iteration cap per restart')
    parser.add_argument('--seed', type=int, help='Seed for centroid initialization')
    parser.add_argument('--gap-refs', type=int, help='Number of gap statistic reference datasets')
    parser.add_argument('--gap-seed', type=int, help='Seed for the reference datasets')
    parser.add_argument('--workers', type=int, help='Threads used for restarts')
    parser.add_argument('--output', help='Write the results as JSON to this path')

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict:
    """
    Collect configuration overrides from a config file and the command line.

    Args:
        args: Parsed arguments

    Returns:
        Nested overrides dictionary
    """
    overrides = {}

    if args.config:
        overrides.update(load_config_file(args.config))

    def put(section, key, value):
        if value is not None:
            overrides.setdefault(section, {})[key] = value

    put('data', 'label-column', args.label_column)
    put('kmeans', 'k', args.k)
    put('kmeans', 'restarts', args.restarts)
    put('kmeans', 'max-iters', args.max_iters)
    put('kmeans', 'seed', args.seed)
    put('kmeans', 'workers', args.workers)
    put('selection', 'k-min', args.k_min)
    put('selection', 'k-max', args.k_max)
    put('selection', 'gap-refs', args.gap_refs)
    put('selection', 'gap-seed', args.gap_seed)
    put('logging', 'level', args.log_level.lower() if args.log_level else None)

    return overrides


def main(argv=None) -> int:
    """
    Main entry point.
    """
    args = parse_args(argv)
    config = ConfigManager.get_config(build_overrides(args))
    setup_logging(config.get('logging.level', 'warning'))

    try:
        matrix = load_table(
            args.input,
            label_column=config.get('data.label-column'),
            columns=config.get('data.columns')
        )
        analysis = Analysis(matrix, config).run()
    except ValueError as e:
        logger.error(f"Clustering failed: {e}")
        raise

    with pd.option_context('display.width', 120, 'display.max_columns', None):
        print("Diagnostics by k:")
        print(analysis.diagnostics().to_string())
        print()
        print("Recommended k:", ", ".join(f"{m}={k}" for m, k in analysis.recommendation.items()))
        print()
        print(f"Cluster centers (k={analysis.k}):")
        print(analysis.centroid_frame().round(2).to_string())
        print()
        print("Assignments:")
        print(analysis.assignment_frame().to_string())

    if args.output:
        analysis.save(args.output)

    return 0


if __name__ == '__main__':
    sys.exit(main())
