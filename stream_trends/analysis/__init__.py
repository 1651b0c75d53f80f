"""
Analysis Module

Trend estimation, significance classification, regression and group
comparison routines.
"""

__all__ = []
