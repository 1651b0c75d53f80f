#!/usr/bin/env python3
"""
Multiple Comparisons with Compact Letter Display

Tukey HSD across categories (watersheds, habitat types, size classes) and the
compact letter display used to annotate bar charts: categories sharing a
letter are not significantly different at the chosen level.

Letters are built by the insert-and-absorb procedure (Piepho 2004) and
assigned in order of decreasing category mean, so 'a' marks the highest.
"""

import logging
import string
from typing import Dict, List, Sequence, Set, Tuple

import numpy as np
import pandas as pd
from statsmodels.stats.multicomp import pairwise_tukeyhsd

logger = logging.getLogger(__name__)


def compact_letter_display(groups: Sequence[str],
                           different_pairs: Sequence[Tuple[str, str]]) -> Dict[str, str]:
    """Assign letters so that every pair in ``different_pairs`` shares none.

    Args:
        groups: Group names, in the order letters should be handed out
        different_pairs: Pairs declared significantly different

    Returns:
        Mapping of group name to its letters
    """
    columns: List[Set[str]] = [set(groups)]
    for a, b in different_pairs:
        inserted: List[Set[str]] = []
        for column in columns:
            if a in column and b in column:
                inserted.extend([column - {b}, column - {a}])
            else:
                inserted.append(column)
        # Absorb columns contained in another column
        columns = []
        for column in inserted:
            if any(column <= kept for kept in columns):
                continue
            columns = [kept for kept in columns if not kept < column]
            columns.append(column)

    rank = {name: position for position, name in enumerate(groups)}
    columns = [c for c in columns if c]
    columns.sort(key=lambda c: min(rank[name] for name in c))

    alphabet = string.ascii_lowercase
    letters = {name: '' for name in groups}
    for position, column in enumerate(columns):
        symbol = alphabet[position % len(alphabet)] * (position // len(alphabet) + 1)
        for name in sorted(column, key=rank.get):
            letters[name] += symbol
    return letters


def compare_groups(observations: pd.DataFrame, group_col: str,
                   value_col: str = 'value', alpha: float = 0.05) -> pd.DataFrame:
    """Tukey HSD across ``group_col`` categories with compact letters.

    Categories with fewer than two non-missing values are left out.

    Returns:
        Frame with columns group, n, mean, std and letters, sorted by
        decreasing mean
    """
    if group_col not in observations.columns or value_col not in observations.columns:
        raise ValueError(f"Columns '{group_col}' and '{value_col}' are required for group comparison")

    data = observations[[group_col, value_col]].dropna()
    data = data.assign(**{group_col: data[group_col].astype(str)})

    summary = data.groupby(group_col)[value_col].agg(['count', 'mean', 'std'])
    summary = summary.rename(columns={'count': 'n'})
    small = summary.index[summary['n'] < 2]
    if len(small):
        logger.warning(f"Leaving out {len(small)} categories with fewer than 2 values: {list(small)}")
    summary = summary[summary['n'] >= 2].sort_values('mean', ascending=False, kind='mergesort')
    ordered = list(summary.index)

    different: List[Tuple[str, str]] = []
    if len(ordered) >= 2:
        eligible = data[data[group_col].isin(ordered)]
        tukey = pairwise_tukeyhsd(endog=eligible[value_col].to_numpy(dtype=float),
                                  groups=eligible[group_col].to_numpy(), alpha=alpha)
        names = [str(g) for g in tukey.groupsunique]
        rows, cols = np.triu_indices(len(names), k=1)
        for i, j, reject in zip(rows, cols, tukey.reject):
            if bool(reject):
                different.append((names[i], names[j]))
        logger.info(f"Tukey HSD: {len(different)} of {len(rows)} pairs differ at alpha={alpha}")
    else:
        logger.info("Fewer than two categories to compare; all share letter 'a'")

    letters = compact_letter_display(ordered, different)

    result = summary.reset_index().rename(columns={group_col: 'group'})
    result['n'] = result['n'].astype(int)
    result['letters'] = result['group'].map(letters)
    return result[['group', 'n', 'mean', 'std', 'letters']]
