#!/usr/bin/env python3
"""
Utilities Module

Configuration loading, logging setup, filesystem helpers and input
validation shared by the trend analysis package.
"""

from .helpers import (
    load_config, merge_config, get_default_config, resolve_config,
    setup_logging, get_timestamp
)
from .validation import (
    validate_file_exists,
    validate_dataframe_structure,
    validate_measurement_values,
    validate_time_range
)

__all__ = [
    # Configuration helpers
    'load_config',
    'merge_config',
    'get_default_config',
    'resolve_config',
    'setup_logging',
    'get_timestamp',

    # Data validation
    'validate_file_exists',
    'validate_dataframe_structure',
    'validate_measurement_values',
    'validate_time_range'
]
