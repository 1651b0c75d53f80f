#!/usr/bin/env python3
"""
Core Analysis Module

Mann-Kendall / Theil-Sen trend estimation, the significance classifier and
the OLS regression companion.
"""

from .results import Excluded, LinearFit, TrendResult
from .significance import SignificanceClass, classify
from .trend_analyzer import TrendAnalyzer, estimate_trend
from .regression import LinearRegressionAnalyzer, fit_linear

__all__ = [
    'Excluded',
    'LinearFit',
    'TrendResult',
    'SignificanceClass',
    'classify',
    'TrendAnalyzer',
    'estimate_trend',
    'LinearRegressionAnalyzer',
    'fit_linear'
]
