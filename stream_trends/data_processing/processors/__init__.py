from .data_processor import aggregate_annual, compute_anomalies, iter_group_series
from .selector import select

__all__ = ['aggregate_annual', 'compute_anomalies', 'iter_group_series', 'select']
