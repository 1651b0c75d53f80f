#!/usr/bin/env python3
"""
Command-line entry point for stream monitoring trend analysis.

Loads a long-format observation CSV, applies the year/site/group filters,
computes per-group anomalies and Mann-Kendall / Theil-Sen trends, and writes
the trend, regression and exclusion tables plus a text summary.

Usage:
    stream-trends data/density.csv --value density --time year --entity site_id
    stream-trends data/density.csv --start 2005 --end 2020 --group-by group_key
    stream-trends data/habitat.csv --config config/habitat.yaml --compare
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

import pandas as pd

from .analysis.comparative.multiple_comparisons import compare_groups
from .data_processing.loaders.observation_loader import ObservationLoader
from .data_processing.schema import GROUP
from .output_manager import OutputManager
from .pipeline import TrendPipeline
from .utils.helpers import resolve_config, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Per-group Mann-Kendall trend analysis of monitoring observations')
    parser.add_argument('input', help='Observation CSV file')
    parser.add_argument('--config', help='YAML configuration merged over the defaults')
    parser.add_argument('--entity', help='Column holding the site/reach/watershed id')
    parser.add_argument('--time', help='Column holding the year or date')
    parser.add_argument('--value', help='Column holding the measured value')
    parser.add_argument('--group', help='Column holding the secondary category')
    parser.add_argument('--entities', nargs='+', help='Only analyse these entity ids')
    parser.add_argument('--groups', nargs='+', help='Only analyse these group keys')
    parser.add_argument('--start', type=int, help='First year (inclusive)')
    parser.add_argument('--end', type=int, help='Last year (inclusive)')
    parser.add_argument('--group-by', nargs='*', choices=['entity_id', 'group_key'],
                        help='Grouping keys for trends (default from config)')
    parser.add_argument('--transform', choices=['none', 'log'],
                        help='Regression companion: anomalies or log raw values')
    parser.add_argument('--prewhiten', action='store_true',
                        help='Apply Yue-Pilon prewhitening before the Mann-Kendall test')
    parser.add_argument('--compare', action='store_true',
                        help='Tukey HSD letters across group keys of the selected data')
    parser.add_argument('--output-dir', help='Base directory for run outputs')
    parser.add_argument('--no-save', action='store_true', help='Print results without writing files')
    return parser


def _config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    columns = {key: getattr(args, attr) for key, attr in
               (('entity_id', 'entity'), ('time', 'time'), ('value', 'value'), ('group_key', 'group'))
               if getattr(args, attr)}
    if columns:
        overrides['columns'] = columns
    if args.group_by is not None:
        overrides['pipeline'] = {'group_by': args.group_by}
    if args.transform:
        overrides['regression'] = {'transform': args.transform}
    if args.prewhiten:
        overrides['trend_analysis'] = {'prewhitening': True}
    if args.output_dir:
        overrides['output'] = {'base_dir': args.output_dir}
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = resolve_config(args.config, _config_overrides(args))
    setup_logging(config)
    logger = logging.getLogger(__name__)

    try:
        observations = ObservationLoader(config).load_data(args.input)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Could not load observations: {e}")
        return 1

    pipeline = TrendPipeline(config)
    result = pipeline.run(observations,
                          entity_filter=args.entities,
                          time_range=(args.start, args.end),
                          group_filter=args.groups)

    comparisons = None
    if args.compare:
        comparisons = compare_groups(result.filtered, GROUP,
                                     alpha=config.get('comparisons', {}).get('alpha', 0.05))

    display = result.trend_table(display=True)
    with pd.option_context('display.max_rows', None, 'display.width', 120):
        if display.empty:
            print("Insufficient data for trend analysis with the selected filters.")
        else:
            print(display.to_string(index=False))
        if comparisons is not None and not comparisons.empty:
            print()
            print(comparisons.to_string(index=False))

    if args.no_save:
        return 0

    output_cfg = config.get('output', {})
    outputs = OutputManager(output_cfg.get('analysis_name', 'stream_trend_analysis'),
                            output_cfg.get('base_dir', 'outputs'))
    trends = result.trend_table()
    excluded = result.excluded_table()
    outputs.save_table(trends, 'trends.csv')
    outputs.save_table(result.regression_table(), 'regressions.csv')
    outputs.save_table(excluded, 'excluded_groups.csv')
    if comparisons is not None:
        outputs.save_table(comparisons, 'group_comparisons.csv')
    outputs.save_summary({
        'analysis_type': 'Mann-Kendall and Sen Slope Trend Analysis',
        'configuration': {
            'input': args.input,
            'columns': config.get('columns', {}),
            'trend_analysis': config.get('trend_analysis', {}),
            'group_by': list(result.group_by),
        },
        'data_info': {
            'observations_selected': len(result.filtered),
            'year_range': f"{args.start or 'first'}-{args.end or 'last'}",
            'entities': ', '.join(args.entities) if args.entities else 'all',
            'groups': ', '.join(args.groups) if args.groups else 'all',
        },
        'trend_table': trends,
        'excluded_table': excluded,
        'comparisons': comparisons,
    })
    return 0


if __name__ == '__main__':
    sys.exit(main())
