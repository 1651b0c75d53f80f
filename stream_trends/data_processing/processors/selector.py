"""Filter observations by entity, year range and group key."""

import logging
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from ..schema import ENTITY, GROUP, TIME
from ...utils.validation import validate_time_range

logger = logging.getLogger(__name__)


def select(observations: pd.DataFrame,
           entity_filter: Optional[Iterable[str]] = None,
           time_range: Optional[Tuple[Optional[int], Optional[int]]] = None,
           group_filter: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Return the observations satisfying every active filter.

    A filter left as ``None`` is inactive. ``time_range`` is inclusive on both
    ends and either bound may be ``None``. A single entity or group key may be
    passed as a plain string. An empty ``entity_filter`` or
    ``group_filter`` matches nothing. Row order and index are preserved and
    the input frame is never modified.
    """
    validate_time_range(time_range)

    mask = np.ones(len(observations), dtype=bool)

    if entity_filter is not None:
        mask &= observations[ENTITY].isin(_as_list(entity_filter)).to_numpy()

    if time_range is not None:
        lower, upper = time_range
        if lower is not None:
            mask &= (observations[TIME] >= lower).to_numpy()
        if upper is not None:
            mask &= (observations[TIME] <= upper).to_numpy()

    if group_filter is not None:
        mask &= observations[GROUP].isin(_as_list(group_filter)).to_numpy()

    selected = observations[mask].copy()
    logger.debug(f"Selected {len(selected):,} of {len(observations):,} observations")
    return selected


def _as_list(values) -> list:
    # A bare string is one key, not a sequence of characters
    if isinstance(values, str):
        return [values]
    return list(values)
