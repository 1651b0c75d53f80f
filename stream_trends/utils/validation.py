#!/usr/bin/env python3
"""
Input Validation Utilities for Stream Monitoring Trend Analysis

Checks applied to raw tables before they enter the trend pipeline. The
pipeline itself assumes well-formed observations, so malformed input is
reported here rather than repaired downstream.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union
import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def validate_file_exists(file_path: Union[str, Path], description: str = "File") -> bool:
    """
    Validate that a file exists and is accessible.

    Args:
        file_path: Path to the file to check
        description: Human-readable description for logging

    Returns:
        bool: True if file exists and is readable, False otherwise

    Example:
        >>> validate_file_exists("data/fish_density.csv", "Density table")
        True
    """
    path = Path(file_path)
    if not path.exists():
        logger.warning(f"{description} does not exist: {file_path}")
        return False
    if not path.is_file():
        logger.warning(f"{description} is not a file: {file_path}")
        return False
    if not os.access(path, os.R_OK):
        logger.warning(f"{description} is not readable: {file_path}")
        return False
    return True


def validate_dataframe_structure(df: pd.DataFrame, required_columns: List[str],
                                 name: str = "DataFrame") -> Tuple[bool, List[str]]:
    """
    Validate that a DataFrame has the required column structure.

    Args:
        df: DataFrame to validate
        required_columns: List of column names that must be present
        name: Name of the DataFrame for logging

    Returns:
        Tuple[bool, List[str]]: (is_valid, missing_columns)

    Example:
        >>> df = pd.DataFrame({'site': [], 'year': []})
        >>> validate_dataframe_structure(df, ['site', 'year', 'density'])
        (False, ['site', 'year', 'density'])
    """
    if df.empty:
        logger.warning(f"{name} is empty")
        return False, list(required_columns)

    missing_columns = [col for col in required_columns if col not in df.columns]

    if missing_columns:
        logger.warning(f"{name} missing required columns: {missing_columns}")
        logger.debug(f"{name} has columns: {list(df.columns)}")
        return False, missing_columns

    logger.debug(f"{name} structure validation passed")
    return True, []


def validate_measurement_values(values: np.ndarray, name: str = "Measurements",
                                allow_negative: bool = False) -> Dict[str, Any]:
    """
    Summarise a measurement array before analysis.

    Densities, counts and flows are non-negative; anomalies are not, so
    ``allow_negative`` switches the range check off.

    Returns:
        Dict with keys valid, n_total, n_nan, n_infinite, n_negative.
    """
    values = np.asarray(values, dtype=float)
    n_nan = int(np.isnan(values).sum())
    n_infinite = int(np.isinf(values).sum())
    finite = values[np.isfinite(values)]
    n_negative = 0 if allow_negative else int((finite < 0).sum())

    result = {
        'valid': n_infinite == 0 and n_negative == 0,
        'n_total': int(len(values)),
        'n_nan': n_nan,
        'n_infinite': n_infinite,
        'n_negative': n_negative,
    }
    if not result['valid']:
        logger.warning(f"{name}: {n_infinite} infinite and {n_negative} negative values")
    return result


def validate_time_range(time_range) -> None:
    """Raise ``ValueError`` for a reversed ``(min_time, max_time)`` bound."""
    if time_range is None:
        return
    if len(time_range) != 2:
        raise ValueError(f"time_range must be a (min_time, max_time) pair, got {time_range!r}")
    lower, upper = time_range
    if lower is not None and upper is not None and lower > upper:
        raise ValueError(f"time_range lower bound {lower} is after upper bound {upper}")
