"""Three-level significance classes for trend test p-values."""

from enum import Enum
from typing import Optional

import numpy as np

SIGNIFICANT_THRESHOLD = 0.05
HIGHLY_SIGNIFICANT_THRESHOLD = 0.005


class SignificanceClass(Enum):
    NOT_SIGNIFICANT = 'ns'
    SIGNIFICANT = '*'
    HIGHLY_SIGNIFICANT = '**'

    @property
    def label(self) -> str:
        """Display symbol used to annotate bars and points."""
        return self.value


def classify(p_value: Optional[float]) -> SignificanceClass:
    """Map a p-value to its significance class.

    Boundaries belong to the less significant class: 0.05 is not
    significant and 0.005 is significant. Missing or NaN p-values are not
    significant.
    """
    if p_value is None:
        return SignificanceClass.NOT_SIGNIFICANT
    p = float(p_value)
    if np.isnan(p) or p >= SIGNIFICANT_THRESHOLD:
        return SignificanceClass.NOT_SIGNIFICANT
    if p >= HIGHLY_SIGNIFICANT_THRESHOLD:
        return SignificanceClass.SIGNIFICANT
    return SignificanceClass.HIGHLY_SIGNIFICANT
