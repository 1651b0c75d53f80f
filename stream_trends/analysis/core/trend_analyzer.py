#!/usr/bin/env python3
"""
Mann-Kendall Trend Test and Theil-Sen Slope Estimation

Non-parametric monotonic trend analysis of per-group anomaly series
(site, watershed or habitat class) from long-term monitoring records.

- Mann-Kendall S statistic with tie-corrected variance
- Normal approximation with continuity correction for the two-sided p-value
- Kendall's tau-b (tie-adjusted) as trend strength and direction
- Theil-Sen slope (median pairwise slope) with a confidence interval
- Optional Yue-Pilon prewhitening for lag-1 autocorrelated series

Groups with fewer than three time points are excluded, never zero-filled.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats

from .results import Excluded, TrendResult
from .significance import classify
from ...data_processing.processors.data_processor import iter_group_series
from ...data_processing.schema import DEFAULT_GROUP_BY

logger = logging.getLogger(__name__)

MIN_TREND_POINTS = 3


class TrendAnalyzer:
    """Implements Mann-Kendall trend test and Sen's slope estimator."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize TrendAnalyzer with configuration.

        Args:
            config: Configuration dictionary; reads the ``trend_analysis``
                section (slope_ci_alpha, min_points, prewhitening)
        """
        self.config = config or {}
        trend_cfg = self.config.get('trend_analysis', {}) or {}
        self.ci_alpha = float(trend_cfg.get('slope_ci_alpha', 0.05))
        self.min_points = max(int(trend_cfg.get('min_points', MIN_TREND_POINTS)), MIN_TREND_POINTS)
        self.use_pw = bool(trend_cfg.get('prewhitening', False))

    @staticmethod
    def _tie_counts(x: np.ndarray) -> np.ndarray:
        _, counts = np.unique(x, return_counts=True)
        return counts[counts > 1]

    def _lag1_ac(self, x: np.ndarray) -> float:
        x = np.asarray(x, dtype=float)
        if len(x) < 3:
            return 0.0
        x0 = x[:-1] - np.mean(x[:-1])
        x1 = x[1:] - np.mean(x[1:])
        denom = np.sqrt(np.sum(x0 ** 2) * np.sum(x1 ** 2))
        return 0.0 if denom == 0 else float(np.sum(x0 * x1) / denom)

    def _yue_pilon_prewhiten(self, times: np.ndarray, x: np.ndarray) -> np.ndarray:
        """Remove lag-1 autocorrelation from the detrended series, then restore the trend.

        Returns a series one point shorter than the input.
        """
        n = len(x)
        if n < 4:
            return x.copy()
        slope = self._pairwise_slopes(times, x)
        slope = float(np.median(slope)) if slope.size else 0.0
        residuals = x - slope * times
        rho = self._lag1_ac(residuals)
        whitened = residuals[1:] - rho * residuals[:-1]
        logger.debug(f"Applied prewhitening with r1={rho:.3f}")
        return whitened + slope * times[1:]

    @staticmethod
    def _pairwise_slopes(times: np.ndarray, x: np.ndarray) -> np.ndarray:
        i, j = np.triu_indices(len(x), k=1)
        dt = times[j] - times[i]
        valid = dt != 0
        return (x[j][valid] - x[i][valid]) / dt[valid]

    def mann_kendall_test(self, data: np.ndarray) -> Dict[str, Any]:
        """Perform Mann-Kendall trend test on a time-ordered series.

        Args:
            data: Values ordered by time, without missing entries

        Returns:
            Dictionary with S, var_s, z_score, p_value, tau and n
        """
        x = np.asarray(data, dtype=float)
        n = len(x)
        if n < 2:
            return {'S': 0, 'var_s': 0.0, 'z_score': 0.0, 'p_value': 1.0, 'tau': np.nan, 'n': n}

        i, j = np.triu_indices(n, k=1)
        s = int(np.sign(x[j] - x[i]).sum())

        ties = self._tie_counts(x)
        tie_corr = float(np.sum(ties * (ties - 1) * (2 * ties + 5)))
        var_s = (n * (n - 1) * (2 * n + 5) - tie_corr) / 18.0

        if var_s <= 0 or s == 0:
            z = 0.0
        else:
            z = (s - np.sign(s)) / np.sqrt(var_s)
        p = float(min(1.0, 2 * stats.norm.sf(abs(z))))

        # tau-b; times are distinct so only value ties enter the denominator
        n0 = n * (n - 1) / 2.0
        n2 = float(np.sum(ties * (ties - 1) / 2.0))
        denom = np.sqrt(n0 * (n0 - n2))
        tau = s / denom if denom > 0 else np.nan

        return {'S': s, 'var_s': var_s, 'z_score': float(z), 'p_value': p, 'tau': tau, 'n': n}

    def sen_slope_estimator(self, data: np.ndarray, times: np.ndarray) -> Dict[str, Any]:
        """Calculate Sen's slope estimator for trend magnitude.

        Args:
            data: Series values
            times: Time of each value, in years

        Returns:
            Dictionary with slope, intercept (value at time zero),
            confidence_interval and n_slopes
        """
        x = np.asarray(data, dtype=float)
        t = np.asarray(times, dtype=float)
        n_slopes = self._pairwise_slopes(t, x).size if len(x) >= 2 else 0
        if not n_slopes:
            return {'slope': np.nan, 'intercept': np.nan,
                    'confidence_interval': (np.nan, np.nan), 'n_slopes': 0}

        # Gilbert rank bounds on the sorted pairwise slopes
        sen = stats.theilslopes(x, t, alpha=1 - self.ci_alpha)
        slope = float(sen[0])
        intercept = float(np.median(x - slope * t))
        ci = (float(sen[2]), float(sen[3]))

        return {'slope': slope, 'intercept': intercept, 'confidence_interval': ci, 'n_slopes': n_slopes}

    def estimate_trend(self, times: Iterable[float], values: Iterable[float],
                       group: tuple = ()) -> Union[TrendResult, Excluded]:
        """Estimate the monotonic trend of one group's series.

        Non-finite values are dropped first. Series with fewer than
        ``min_points`` time points, or with repeated times, are excluded.
        """
        t = np.asarray(list(times) if not isinstance(times, np.ndarray) else times, dtype=float)
        x = np.asarray(list(values) if not isinstance(values, np.ndarray) else values, dtype=float)
        if len(t) != len(x):
            raise ValueError(f"times and values differ in length ({len(t)} vs {len(x)})")

        finite = np.isfinite(t) & np.isfinite(x)
        order = np.argsort(t[finite], kind='mergesort')
        t, x = t[finite][order], x[finite][order]
        n = len(x)

        if n < self.min_points:
            logger.info(f"Excluding group {group}: {n} time points, need {self.min_points}")
            return Excluded(group=group, n=n,
                            reason=f"insufficient data: {n} time points, need {self.min_points}")
        if np.unique(t).size != n:
            logger.warning(f"Excluding group {group}: repeated time values; aggregate years first")
            return Excluded(group=group, n=n, reason="duplicate time values")

        x_test = self._yue_pilon_prewhiten(t, x) if self.use_pw else x
        mk = self.mann_kendall_test(x_test)
        sen = self.sen_slope_estimator(x, t)

        return TrendResult(
            group=group,
            n=n,
            tau=float(mk['tau']),
            slope=sen['slope'],
            intercept=sen['intercept'],
            slope_ci=sen['confidence_interval'],
            s_statistic=mk['S'],
            var_s=mk['var_s'],
            z_score=mk['z_score'],
            p_value=mk['p_value'],
            significance_class=classify(mk['p_value']),
            start_time=int(t[0]),
            end_time=int(t[-1]),
            prewhitened=self.use_pw and len(x_test) != n,
        )

    def _safe_estimate(self, group: tuple, times: np.ndarray,
                       values: np.ndarray) -> Union[TrendResult, Excluded]:
        try:
            return self.estimate_trend(times, values, group=group)
        except Exception as e:
            logger.error(f"Trend estimation failed for group {group}: {e}")
            return Excluded(group=group, n=int(len(values)), reason=f"error: {e}")

    def analyze_groups(self, data: pd.DataFrame,
                       group_by: Iterable[str] = DEFAULT_GROUP_BY,
                       value_col: str = 'anomaly',
                       max_workers: Optional[int] = None) -> Tuple[List[TrendResult], List[Excluded]]:
        """Estimate trends for every group in ``data``.

        Groups are independent; with ``max_workers`` they run on a thread
        pool. Output keeps the order in which groups first appear.

        Returns:
            Tuple of (trend results, excluded groups)
        """
        series = list(iter_group_series(data, group_by, value_col=value_col))
        logger.info(f"Estimating trends for {len(series)} groups")

        if max_workers and len(series) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                outcomes = list(executor.map(lambda s: self._safe_estimate(*s), series))
        else:
            outcomes = [self._safe_estimate(*s) for s in series]

        results = [o for o in outcomes if isinstance(o, TrendResult)]
        excluded = [o for o in outcomes if isinstance(o, Excluded)]
        logger.info(f"Trend estimation completed: {len(results)} groups, {len(excluded)} excluded")
        return results, excluded


def _split_series(group_series) -> Tuple[np.ndarray, np.ndarray]:
    """Accept a time-indexed Series or an iterable of (time, value) pairs."""
    if isinstance(group_series, pd.Series):
        return group_series.index.to_numpy(dtype=float), group_series.to_numpy(dtype=float)
    pairs = list(group_series)
    if not pairs:
        return np.array([], dtype=float), np.array([], dtype=float)
    times, values = zip(*pairs)
    return np.asarray(times, dtype=float), np.asarray(values, dtype=float)


def estimate_trend(group_series, group: tuple = (),
                   config: Optional[Dict[str, Any]] = None) -> Union[TrendResult, Excluded]:
    """Trend of a single series given as (time, value) pairs or a time-indexed Series."""
    times, values = _split_series(group_series)
    return TrendAnalyzer(config).estimate_trend(times, values, group=group)
