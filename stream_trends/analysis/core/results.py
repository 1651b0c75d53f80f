"""Immutable result records produced by the trend and regression estimators."""

from dataclasses import dataclass
from typing import Tuple

from .significance import SignificanceClass


@dataclass(frozen=True)
class Excluded:
    """A group that was not analysed, and why."""
    group: tuple
    n: int
    reason: str


@dataclass(frozen=True)
class TrendResult:
    """Mann-Kendall / Theil-Sen trend of one group's series."""
    group: tuple
    n: int
    tau: float
    slope: float
    intercept: float
    slope_ci: Tuple[float, float]
    s_statistic: int
    var_s: float
    z_score: float
    p_value: float
    significance_class: SignificanceClass
    start_time: int
    end_time: int
    prewhitened: bool = False

    @property
    def label(self) -> str:
        return self.significance_class.label

    @property
    def is_significant(self) -> bool:
        return self.significance_class is not SignificanceClass.NOT_SIGNIFICANT

    @property
    def direction(self) -> str:
        if self.s_statistic > 0:
            return 'increasing'
        if self.s_statistic < 0:
            return 'decreasing'
        return 'no trend'


@dataclass(frozen=True)
class LinearFit:
    """Ordinary least squares fit of a group's series against time."""
    group: tuple
    n: int
    intercept: float
    slope: float
    intercept_se: float
    slope_se: float
    r_squared: float
    p_value: float
    transform: str = 'none'
