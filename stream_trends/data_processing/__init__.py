"""
Data Processing Module

Loading, selection, annual aggregation and anomaly computation for
long-format monitoring observations.
"""

__all__ = []
