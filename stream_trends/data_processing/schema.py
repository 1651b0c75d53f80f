"""Canonical observation columns and field selectors."""

from typing import Callable, Iterable, List, Union

import pandas as pd

ENTITY = 'entity_id'
GROUP = 'group_key'
TIME = 'time'
VALUE = 'value'

CANONICAL_COLUMNS = [ENTITY, GROUP, TIME, VALUE]
KEY_COLUMNS = (ENTITY, GROUP)
DEFAULT_GROUP_BY = (ENTITY, GROUP)

# A column name, or a callable pulling a Series out of the raw frame
FieldSelector = Union[str, Callable[[pd.DataFrame], pd.Series]]


def resolve_group_by(data: pd.DataFrame, group_by: Iterable[str]) -> List[str]:
    """Validate grouping keys against ``data`` and return them as a list."""
    keys = list(group_by or [])
    unknown = [key for key in keys if key not in KEY_COLUMNS]
    if unknown:
        raise ValueError(f"Unsupported grouping keys {unknown}; choose from {list(KEY_COLUMNS)}")
    missing = [key for key in keys if key not in data.columns]
    if missing:
        raise ValueError(f"Observation table is missing grouping columns: {missing}")
    return keys
