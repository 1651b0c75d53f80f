#!/usr/bin/env python3
"""
Baseline, Anomaly and Annual Aggregation Processing

Turns a filtered observation table into the per-group series consumed by the
trend estimator:

- ``aggregate_annual`` collapses repeated samples of a group within a year
- ``compute_anomalies`` subtracts each group's mean from its observations
- ``iter_group_series`` yields one time-ordered series per group
"""

import logging
from typing import Iterable, Iterator, Tuple

import numpy as np
import pandas as pd

from ..schema import DEFAULT_GROUP_BY, TIME, VALUE, resolve_group_by

logger = logging.getLogger(__name__)

ANNUAL_AGGREGATIONS = ('mean', 'median', 'sum')


def compute_anomalies(observations: pd.DataFrame,
                      group_by: Iterable[str] = DEFAULT_GROUP_BY) -> pd.DataFrame:
    """Add ``mean_value`` and ``anomaly`` columns per group.

    Rows with a missing value are left out of both the mean and the output.
    A missing ``group_key`` is a group of its own. With an empty ``group_by``
    the whole table is one group.
    """
    keys = resolve_group_by(observations, group_by)
    data = observations[observations[VALUE].notna().to_numpy()].copy()

    if data.empty:
        data['mean_value'] = pd.Series(dtype=float)
        data['anomaly'] = pd.Series(dtype=float)
        return data

    if keys:
        grouped = data.groupby(keys, dropna=False, sort=False)[VALUE]
        mean = grouped.transform('mean')
        low = grouped.transform('min')
        high = grouped.transform('max')
    else:
        mean = pd.Series(data[VALUE].mean(), index=data.index)
        low = pd.Series(data[VALUE].min(), index=data.index)
        high = pd.Series(data[VALUE].max(), index=data.index)

    # Constant groups report their value exactly
    data['mean_value'] = mean.where(low != high, low)
    data['anomaly'] = data[VALUE] - data['mean_value']
    return data


def aggregate_annual(observations: pd.DataFrame, how: str = 'mean',
                     group_by: Iterable[str] = DEFAULT_GROUP_BY) -> pd.DataFrame:
    """Collapse observations to one value per group and year.

    Args:
        observations: Canonical observation table
        how: 'mean', 'median' or 'sum' of the non-missing values
        group_by: Grouping keys

    Returns:
        Frame with the grouping keys, ``time``, ``value`` and ``n_obs`` (number
        of non-missing values that went into each year). Years with no values
        keep a missing ``value``.
    """
    if how not in ANNUAL_AGGREGATIONS:
        raise ValueError(f"Unknown annual aggregation '{how}'; use one of {ANNUAL_AGGREGATIONS}")

    keys = resolve_group_by(observations, group_by)
    columns = keys + [TIME]

    if observations.empty:
        return pd.DataFrame(columns=columns + [VALUE, 'n_obs'])

    grouped = observations.groupby(columns, dropna=False, sort=True)[VALUE]
    if how == 'sum':
        values = grouped.sum(min_count=1)
    else:
        values = grouped.agg(how)

    annual = values.to_frame(VALUE)
    annual['n_obs'] = grouped.count()
    annual = annual.reset_index()

    n_collapsed = len(observations) - len(annual)
    if n_collapsed:
        logger.info(f"Annual {how} aggregation collapsed {n_collapsed:,} repeated observations")
    return annual


def iter_group_series(data: pd.DataFrame, group_by: Iterable[str] = DEFAULT_GROUP_BY,
                      value_col: str = 'anomaly') -> Iterator[Tuple[tuple, np.ndarray, np.ndarray]]:
    """Yield ``(group, times, values)`` per group, ordered by time."""
    keys = resolve_group_by(data, group_by)
    if data.empty:
        return

    if not keys:
        ordered = data.sort_values(TIME, kind='mergesort')
        yield (), ordered[TIME].to_numpy(dtype=float), ordered[value_col].to_numpy(dtype=float)
        return

    for group, frame in data.groupby(keys, dropna=False, sort=False):
        if not isinstance(group, tuple):
            group = (group,)
        ordered = frame.sort_values(TIME, kind='mergesort')
        yield group, ordered[TIME].to_numpy(dtype=float), ordered[value_col].to_numpy(dtype=float)
