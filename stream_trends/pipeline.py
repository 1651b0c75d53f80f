#!/usr/bin/env python3
"""
Trend Summary Pipeline

One-way chain from raw observations to a significance-annotated summary:

    observations -> select -> annual aggregation -> anomalies
                 -> per-group Mann-Kendall / Theil-Sen trends (+ OLS companion)

Each run builds fresh intermediate tables; nothing is cached or mutated
between runs, so a new filter selection simply calls ``run`` again.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .analysis.core.regression import LinearRegressionAnalyzer
from .analysis.core.results import Excluded, LinearFit, TrendResult
from .analysis.core.trend_analyzer import TrendAnalyzer
from .analysis.summary import excluded_table, regression_table, trend_table
from .data_processing.processors.data_processor import aggregate_annual, compute_anomalies
from .data_processing.processors.selector import select
from .data_processing.schema import VALUE, resolve_group_by
from .utils.helpers import get_default_config, merge_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    """Outputs of one pipeline run."""
    group_by: Tuple[str, ...]
    filtered: pd.DataFrame
    anomalies: pd.DataFrame
    trends: List[TrendResult] = field(default_factory=list)
    excluded: List[Excluded] = field(default_factory=list)
    regressions: List[LinearFit] = field(default_factory=list)

    @property
    def has_trends(self) -> bool:
        return bool(self.trends)

    def trend_table(self, display: bool = False) -> pd.DataFrame:
        return trend_table(self.trends, self.group_by, display=display)

    def regression_table(self) -> pd.DataFrame:
        return regression_table(self.regressions, self.group_by)

    def excluded_table(self) -> pd.DataFrame:
        return excluded_table(self.excluded, self.group_by)


class TrendPipeline:
    """Selection, anomaly and trend computation for one analysis request."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = merge_config(get_default_config(), config)
        pipeline_cfg = self.config.get('pipeline', {}) or {}
        self.group_by = tuple(pipeline_cfg.get('group_by') or ())
        self.aggregate = bool(pipeline_cfg.get('aggregate', True))
        self.annual_agg = pipeline_cfg.get('annual_agg', 'mean')
        self.max_workers = pipeline_cfg.get('max_workers')

        self.trend_analyzer = TrendAnalyzer(self.config)
        self.regression_analyzer = LinearRegressionAnalyzer(self.config)

    def run(self, observations: pd.DataFrame,
            entity_filter: Optional[Iterable[str]] = None,
            time_range: Optional[Tuple[Optional[int], Optional[int]]] = None,
            group_filter: Optional[Iterable[str]] = None,
            group_by: Optional[Iterable[str]] = None) -> PipelineResult:
        """Run the full chain for one filter selection.

        Args:
            observations: Canonical observation table
            entity_filter: Allowed entity ids, or None for all
            time_range: Inclusive (min_year, max_year), either bound optional
            group_filter: Allowed group keys, or None for all
            group_by: Overrides the configured grouping keys

        Returns:
            PipelineResult; groups without enough data are listed in ``excluded``
        """
        keys = tuple(resolve_group_by(observations, self.group_by if group_by is None else group_by))

        filtered = select(observations, entity_filter=entity_filter,
                          time_range=time_range, group_filter=group_filter)
        logger.info(f"Selected {len(filtered):,} observations grouped by {list(keys)}")

        series = aggregate_annual(filtered, how=self.annual_agg, group_by=keys) if self.aggregate else filtered
        anomalies = compute_anomalies(series, group_by=keys)

        if anomalies.empty:
            logger.warning("No observations left after filtering; nothing to analyse")
            return PipelineResult(group_by=keys, filtered=filtered, anomalies=anomalies)

        trends, excluded = self.trend_analyzer.analyze_groups(
            anomalies, group_by=keys, max_workers=self.max_workers)

        value_col = VALUE if self.regression_analyzer.transform == 'log' else 'anomaly'
        regressions, _ = self.regression_analyzer.analyze_groups(anomalies, group_by=keys,
                                                                 value_col=value_col)

        n_significant = sum(1 for r in trends if r.is_significant)
        logger.info(f"{len(trends)} trends estimated ({n_significant} significant), "
                    f"{len(excluded)} groups excluded")
        return PipelineResult(group_by=keys, filtered=filtered, anomalies=anomalies,
                              trends=trends, excluded=excluded, regressions=regressions)


def run_pipeline(observations: pd.DataFrame, config: Optional[Dict[str, Any]] = None,
                 **filters) -> PipelineResult:
    """Convenience wrapper: ``TrendPipeline(config).run(observations, **filters)``."""
    return TrendPipeline(config).run(observations, **filters)
