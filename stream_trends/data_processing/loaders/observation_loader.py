#!/usr/bin/env python3
"""
Observation Loader

Maps a raw monitoring table (fish density, habitat metrics, flow estimates)
onto the canonical long-format observation table used by the trend pipeline:

    entity_id | group_key | time | value

Each canonical column is filled through an explicit field selector, either a
column name or a callable taking the raw frame and returning a Series. Dates
are truncated to calendar years. The remaining raw columns follow the
canonical ones unchanged. Malformed tables raise before any analysis runs.
"""

import logging
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..base_loader import BaseDataLoader
from ..schema import CANONICAL_COLUMNS, ENTITY, GROUP, TIME, VALUE, FieldSelector
from ...utils.validation import (
    validate_dataframe_structure, validate_file_exists, validate_measurement_values
)

logger = logging.getLogger(__name__)


class ObservationLoader(BaseDataLoader):
    """Loads monitoring observations into the canonical long format."""

    def __init__(self, config: Dict[str, Any],
                 entity_id: Optional[FieldSelector] = None,
                 time: Optional[FieldSelector] = None,
                 value: Optional[FieldSelector] = None,
                 group_key: Optional[FieldSelector] = None):
        """Initialize the loader.

        Args:
            config: Configuration dictionary; its ``columns`` section supplies
                selectors that are not passed explicitly
            entity_id: Selector for the site/reach/watershed identifier
            time: Selector for the year or date of the observation
            value: Selector for the measured value
            group_key: Optional selector for the secondary category
        """
        super().__init__(config)
        columns = config.get('columns', {}) or {}
        self.selectors: Dict[str, Optional[FieldSelector]] = {
            ENTITY: entity_id if entity_id is not None else columns.get('entity_id'),
            GROUP: group_key if group_key is not None else columns.get('group_key'),
            TIME: time if time is not None else columns.get('time'),
            VALUE: value if value is not None else columns.get('value'),
        }
        for column in (ENTITY, TIME, VALUE):
            if self.selectors[column] is None:
                raise ValueError(f"No field selector configured for '{column}'")

        loading_cfg = config.get('loading', {}) or {}
        self.drop_duplicate_rows = bool(loading_cfg.get('drop_duplicate_rows', False))

    def load_data(self, file_path: str, **kwargs) -> pd.DataFrame:
        """Read a CSV file and convert it to canonical observations.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the table cannot be mapped onto observations
        """
        if not validate_file_exists(file_path, "Observation file"):
            raise FileNotFoundError(f"Observation file not found: {file_path}")

        logger.info(f"Loading observations from: {file_path}")
        raw = pd.read_csv(file_path, **kwargs)
        return self.from_frame(raw)

    def from_frame(self, raw: pd.DataFrame) -> pd.DataFrame:
        """Convert an in-memory raw table to canonical observations."""
        data = pd.DataFrame(index=raw.index)
        for column, selector in self.selectors.items():
            if selector is None:
                data[column] = None
            else:
                data[column] = self._extract(raw, selector, column)

        extra = [c for c in raw.columns if c not in CANONICAL_COLUMNS]
        if extra:
            data = pd.concat([data, raw[extra]], axis=1)

        data = self.preprocess_data(data)
        if not self.validate_data(data):
            raise ValueError("Observation table failed validation; see log for details")
        data = self.quality_filter(data)

        logger.info(f"Loaded {len(data):,} observations for "
                    f"{data[ENTITY].nunique():,} entities")
        self.data = data
        return data

    def _extract(self, raw: pd.DataFrame, selector: FieldSelector, column: str) -> pd.Series:
        if callable(selector):
            series = selector(raw)
            if not isinstance(series, pd.Series) or len(series) != len(raw):
                raise ValueError(f"Selector for '{column}' must return a Series aligned with the input")
            return series
        if selector not in raw.columns:
            raise ValueError(f"Column '{selector}' for '{column}' not found; "
                             f"available: {list(raw.columns)}")
        return raw[selector]

    def preprocess_data(self, data: pd.DataFrame) -> pd.DataFrame:
        """Normalise identifiers, truncate times to years and coerce values."""
        data = data.copy()

        if data[ENTITY].isna().any():
            raise ValueError(f"{int(data[ENTITY].isna().sum())} observations have no entity id")
        data[ENTITY] = data[ENTITY].astype(str)
        data[GROUP] = data[GROUP].where(data[GROUP].isna(), data[GROUP].astype(str))

        data[TIME] = self._to_year(data[TIME])

        try:
            data[VALUE] = pd.to_numeric(data[VALUE]).astype(float)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Measured values are not numeric: {e}")

        return data

    @staticmethod
    def _to_year(times: pd.Series) -> pd.Series:
        if times.isna().any():
            raise ValueError(f"{int(times.isna().sum())} observations have no time value")

        if pd.api.types.is_datetime64_any_dtype(times):
            return times.dt.year.astype(int)

        if pd.api.types.is_numeric_dtype(times):
            as_float = times.astype(float)
            if not np.all(np.equal(np.floor(as_float), as_float)):
                raise ValueError("Numeric time values must be whole calendar years")
            return as_float.astype(int)

        try:
            return pd.to_datetime(times).dt.year.astype(int)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Time values could not be parsed as years or dates: {e}")

    def validate_data(self, data: pd.DataFrame) -> bool:
        """Validate canonical structure and value ranges."""
        if data.empty:
            logger.warning("Observation table is empty")
            return True

        is_valid, missing = validate_dataframe_structure(data, self.get_required_columns(),
                                                         name="Observations")
        if not is_valid:
            logger.error(f"Missing required columns: {missing}")
            return False

        checks = validate_measurement_values(data[VALUE].to_numpy(), name="Observation values",
                                             allow_negative=True)
        if checks['n_infinite']:
            logger.error(f"{checks['n_infinite']} observation values are infinite")
            return False
        if checks['n_nan']:
            logger.info(f"{checks['n_nan']} observations have missing values")
        return True

    def quality_filter(self, data: pd.DataFrame) -> pd.DataFrame:
        """Optionally drop rows that repeat an earlier raw row in every column.

        Off unless ``loading.drop_duplicate_rows`` is set; repeated samples
        with equal values are genuine observations.
        """
        if not self.drop_duplicate_rows:
            return data
        duplicated = data.duplicated()
        if duplicated.any():
            logger.warning(f"Dropping {int(duplicated.sum())} duplicate rows")
            data = data[~duplicated.to_numpy()]
        return data
