"""
Trend analysis for long-term stream fish and habitat monitoring data.

Filters long-format observations, computes per-group anomalies, and reduces
each group to a Mann-Kendall / Theil-Sen trend with a three-level
significance class.
"""

from .analysis.core.regression import LinearRegressionAnalyzer, fit_linear
from .analysis.core.results import Excluded, LinearFit, TrendResult
from .analysis.core.significance import SignificanceClass, classify
from .analysis.core.trend_analyzer import TrendAnalyzer, estimate_trend
from .analysis.comparative.multiple_comparisons import compare_groups, compact_letter_display
from .analysis.summary import trend_table, regression_table, excluded_table
from .data_processing.loaders.observation_loader import ObservationLoader
from .data_processing.processors.data_processor import aggregate_annual, compute_anomalies
from .data_processing.processors.selector import select
from .pipeline import PipelineResult, TrendPipeline, run_pipeline

__version__ = "1.0.0"

__all__ = [
    'select',
    'compute_anomalies',
    'aggregate_annual',
    'estimate_trend',
    'classify',
    'fit_linear',
    'compare_groups',
    'compact_letter_display',
    'trend_table',
    'regression_table',
    'excluded_table',
    'ObservationLoader',
    'TrendAnalyzer',
    'LinearRegressionAnalyzer',
    'TrendPipeline',
    'PipelineResult',
    'run_pipeline',
    'TrendResult',
    'LinearFit',
    'Excluded',
    'SignificanceClass',
]
