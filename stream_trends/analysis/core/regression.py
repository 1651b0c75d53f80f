#!/usr/bin/env python3
"""
Linear Regression Companion

Ordinary least squares of a group's anomaly series (or its log-transformed raw
values) against time, reported beside the Mann-Kendall results. Degenerate
fits report NaN statistics instead of raising:

- 2 points: exact fit, standard errors and p-value are NaN
- no variance in time: slope and all statistics are NaN
- no variance in value: slope 0, r-squared and p-value NaN
"""

import logging
import warnings
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .results import Excluded, LinearFit
from ...data_processing.processors.data_processor import iter_group_series
from ...data_processing.schema import DEFAULT_GROUP_BY

logger = logging.getLogger(__name__)

TRANSFORMS = ('none', 'log')
MIN_REGRESSION_POINTS = 2


class LinearRegressionAnalyzer:
    """OLS trend fits per group with statsmodels."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        reg_cfg = self.config.get('regression', {}) or {}
        self.transform = reg_cfg.get('transform', 'none') or 'none'
        self.min_points = max(int(reg_cfg.get('min_points', MIN_REGRESSION_POINTS)), MIN_REGRESSION_POINTS)
        if self.transform not in TRANSFORMS:
            raise ValueError(f"Unknown regression transform '{self.transform}'; use one of {TRANSFORMS}")

    def fit_linear(self, times: Iterable[float], values: Iterable[float],
                   group: tuple = (), transform: Optional[str] = None) -> Union[LinearFit, Excluded]:
        """Fit ``value ~ time`` by OLS.

        Args:
            times: Time of each value, in years
            values: Anomalies, or raw values when ``transform='log'``
            group: Group key carried into the result
            transform: Overrides the configured transform

        Returns:
            LinearFit, or Excluded when fewer than ``min_points`` usable points remain
        """
        transform = transform or self.transform
        if transform not in TRANSFORMS:
            raise ValueError(f"Unknown regression transform '{transform}'; use one of {TRANSFORMS}")

        t = np.asarray(list(times) if not isinstance(times, np.ndarray) else times, dtype=float)
        y = np.asarray(list(values) if not isinstance(values, np.ndarray) else values, dtype=float)
        if len(t) != len(y):
            raise ValueError(f"times and values differ in length ({len(t)} vs {len(y)})")

        keep = np.isfinite(t) & np.isfinite(y)
        if transform == 'log':
            n_nonpositive = int(np.sum(keep & (y <= 0)))
            if n_nonpositive:
                logger.info(f"Group {group}: dropping {n_nonpositive} non-positive values before log fit")
            keep &= y > 0
        t, y = t[keep], y[keep]
        if transform == 'log':
            y = np.log(y)

        n = len(y)
        if n < self.min_points:
            logger.info(f"Excluding group {group} from regression: {n} points")
            return Excluded(group=group, n=n,
                            reason=f"insufficient data: {n} points, need {self.min_points}")

        if np.ptp(t) == 0:
            logger.warning(f"Group {group}: all observations share one time point; slope undefined")
            return LinearFit(group=group, n=n, intercept=float(np.mean(y)), slope=np.nan,
                             intercept_se=np.nan, slope_se=np.nan, r_squared=np.nan,
                             p_value=np.nan, transform=transform)

        X = sm.add_constant(t, has_constant='add')
        with warnings.catch_warnings(), np.errstate(divide='ignore', invalid='ignore'):
            warnings.simplefilter('ignore', RuntimeWarning)
            model = sm.OLS(y, X).fit()
            intercept, slope = (float(v) for v in model.params)
            intercept_se, slope_se = (float(v) for v in model.bse)
            p_value = float(model.pvalues[1])
            r_squared = float(model.rsquared)

        if model.df_resid <= 0:
            intercept_se = slope_se = p_value = np.nan
        if np.ptp(y) == 0:
            r_squared = p_value = np.nan
        elif n == 2:
            r_squared = 1.0

        return LinearFit(group=group, n=n, intercept=intercept, slope=slope,
                         intercept_se=intercept_se, slope_se=slope_se,
                         r_squared=r_squared, p_value=p_value, transform=transform)

    def analyze_groups(self, data: pd.DataFrame,
                       group_by: Iterable[str] = DEFAULT_GROUP_BY,
                       value_col: str = 'anomaly') -> Tuple[List[LinearFit], List[Excluded]]:
        """Fit every group in ``data``; a failing group is recorded as excluded."""
        fits, excluded = [], []
        for group, times, values in iter_group_series(data, group_by, value_col=value_col):
            try:
                outcome = self.fit_linear(times, values, group=group)
            except Exception as e:
                logger.error(f"Regression failed for group {group}: {e}")
                outcome = Excluded(group=group, n=int(len(values)), reason=f"error: {e}")
            (fits if isinstance(outcome, LinearFit) else excluded).append(outcome)
        return fits, excluded


def fit_linear(group_series, group: tuple = (), transform: str = 'none') -> Union[LinearFit, Excluded]:
    """OLS fit of a single series given as (time, value) pairs or a time-indexed Series."""
    if isinstance(group_series, pd.Series):
        times, values = group_series.index.to_numpy(dtype=float), group_series.to_numpy(dtype=float)
    else:
        pairs = list(group_series)
        times = [p[0] for p in pairs]
        values = [p[1] for p in pairs]
    return LinearRegressionAnalyzer().fit_linear(times, values, group=group, transform=transform)
