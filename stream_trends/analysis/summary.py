"""Tabular views of trend and regression results for a presentation layer."""

from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd

from .core.results import Excluded, LinearFit, TrendResult

DISPLAY_DECIMALS = 2

TREND_COLUMNS = ['n', 'start_time', 'end_time', 'tau', 'slope', 'slope_ci_lower', 'slope_ci_upper',
                 'intercept', 's_statistic', 'var_s', 'z_score', 'p_value', 'direction',
                 'significance', 'prewhitened']
REGRESSION_COLUMNS = ['n', 'intercept', 'slope', 'intercept_se', 'slope_se', 'r_squared',
                      'p_value', 'transform']


def _group_columns(records: Sequence, group_by: Sequence[str]) -> List[str]:
    width = max((len(r.group) for r in records), default=len(group_by))
    names = list(group_by)[:width]
    return names + [f'group_{i}' for i in range(len(names), width)]


def trend_table(results: Iterable[TrendResult], group_by: Sequence[str] = (),
                display: bool = False) -> pd.DataFrame:
    """One row per trend result.

    With ``display=True``, tau and slope are rounded to two decimals and
    significance is rendered as ns, * or **. Otherwise values keep full
    precision and significance holds the class name.
    """
    results = list(results)
    group_cols = _group_columns(results, group_by)
    rows = []
    for r in results:
        row = dict(zip(group_cols, r.group))
        row.update({
            'n': r.n, 'start_time': r.start_time, 'end_time': r.end_time,
            'tau': r.tau, 'slope': r.slope,
            'slope_ci_lower': r.slope_ci[0], 'slope_ci_upper': r.slope_ci[1],
            'intercept': r.intercept, 's_statistic': r.s_statistic, 'var_s': r.var_s,
            'z_score': r.z_score, 'p_value': r.p_value, 'direction': r.direction,
            'significance': r.label if display else r.significance_class.name.lower(),
            'prewhitened': r.prewhitened,
        })
        rows.append(row)

    table = pd.DataFrame(rows, columns=group_cols + TREND_COLUMNS)
    if display:
        table[['tau', 'slope']] = table[['tau', 'slope']].astype(float).round(DISPLAY_DECIMALS)
        table = table[group_cols + ['n', 'tau', 'slope', 'p_value', 'significance']]
    return table


def regression_table(fits: Iterable[LinearFit], group_by: Sequence[str] = ()) -> pd.DataFrame:
    """One row per OLS fit."""
    fits = list(fits)
    group_cols = _group_columns(fits, group_by)
    rows = []
    for f in fits:
        row = dict(zip(group_cols, f.group))
        row.update({column: getattr(f, column) for column in REGRESSION_COLUMNS})
        rows.append(row)
    return pd.DataFrame(rows, columns=group_cols + REGRESSION_COLUMNS)


def excluded_table(excluded: Iterable[Excluded], group_by: Sequence[str] = ()) -> pd.DataFrame:
    """Groups left out of the analysis, for an 'insufficient data' notice."""
    excluded = list(excluded)
    group_cols = _group_columns(excluded, group_by)
    rows = [dict(zip(group_cols, e.group), n=e.n, reason=e.reason) for e in excluded]
    return pd.DataFrame(rows, columns=group_cols + ['n', 'reason'])


def format_value(value: float, decimals: int = DISPLAY_DECIMALS) -> str:
    """Fixed-decimal string, 'NA' for missing values."""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return 'NA'
    return f"{value:.{decimals}f}"
