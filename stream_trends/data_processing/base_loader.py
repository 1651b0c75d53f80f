from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List
import pandas as pd
import logging

from .schema import CANONICAL_COLUMNS, ENTITY, GROUP, TIME, VALUE

logger = logging.getLogger(__name__)


class BaseDataLoader(ABC):
    """Abstract base class for loaders producing canonical observations."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.data: Optional[pd.DataFrame] = None

    @abstractmethod
    def load_data(self, file_path: str, **kwargs) -> pd.DataFrame:
        """Load a source file and return canonical observations."""

    @abstractmethod
    def validate_data(self, data: pd.DataFrame) -> bool:
        """Check canonical observations before they reach the pipeline."""

    def get_required_columns(self) -> List[str]:
        return list(CANONICAL_COLUMNS)

    def preprocess_data(self, data: pd.DataFrame) -> pd.DataFrame:
        return data

    def quality_filter(self, data: pd.DataFrame) -> pd.DataFrame:
        return data

    def get_data(self) -> Optional[pd.DataFrame]:
        return self.data

    def has_data(self) -> bool:
        return self.data is not None and not self.data.empty

    def describe(self) -> Dict[str, Any]:
        """Coverage summary of the loaded observations."""
        if not self.has_data():
            return {'n_observations': 0}
        data = self.data
        return {
            'n_observations': int(len(data)),
            'n_missing_values': int(data[VALUE].isna().sum()),
            'n_entities': int(data[ENTITY].nunique()),
            'n_group_keys': int(data[GROUP].nunique()),
            'first_year': int(data[TIME].min()),
            'last_year': int(data[TIME].max()),
        }
