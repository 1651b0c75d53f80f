#!/usr/bin/env python3
"""
Output Manager Utility

Timestamped output directory for one analysis run, holding the trend,
regression and exclusion tables as CSV plus a plain-text summary.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from .analysis.summary import format_value
from .utils.helpers import get_timestamp

logger = logging.getLogger(__name__)


class OutputManager:
    """Manages standardized output structure for analysis runs."""

    def __init__(self, analysis_name: str, base_dir: str = "outputs"):
        """Initialize output manager with analysis-specific structure.

        Args:
            analysis_name: Name of the analysis (e.g., 'brook_trout_density_trends')
            base_dir: Base directory for all outputs
        """
        self.analysis_name = analysis_name
        self.base_dir = Path(base_dir)

        timestamp = get_timestamp()
        self.output_dir = self.base_dir / f"{analysis_name}_{timestamp}"
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.metadata = {
            'analysis_name': analysis_name,
            'timestamp': timestamp,
            'created_at': datetime.now().isoformat(),
            'output_directory': str(self.output_dir)
        }

        logger.info(f"Initialized OutputManager for {analysis_name}. Output: {self.output_dir}")

    def get_results_path(self, filename: str) -> Path:
        return self.output_dir / filename

    def save_table(self, table: pd.DataFrame, filename: str) -> Path:
        """Write a results table as CSV and return its path."""
        path = self.get_results_path(filename)
        table.to_csv(path, index=False)
        self.log_file_saved(path, "table")
        return path

    def save_summary(self, summary_data: Dict[str, Any], filename: str = "summary.txt") -> Path:
        """Save analysis summary to text file.

        Args:
            summary_data: Keys used: analysis_type, configuration, data_info,
                trend_table, excluded_table, comparisons
            filename: Summary filename
        """
        summary_path = self.get_results_path(filename)

        with open(summary_path, 'w', encoding='utf-8') as f:
            f.write(f"Trend Analysis Report: {self.analysis_name.replace('_', ' ').title()}\n")
            f.write("=" * 80 + "\n\n")
            f.write(f"Generated: {self.metadata['created_at']}\n")
            f.write(f"Analysis Type: {summary_data.get('analysis_type', self.analysis_name)}\n")
            f.write(f"Output Directory: {self.output_dir.name}\n\n")

            if 'configuration' in summary_data:
                f.write("Configuration:\n")
                f.write("-" * 20 + "\n")
                for key, value in summary_data['configuration'].items():
                    if isinstance(value, dict):
                        f.write(f"{key}:\n")
                        for sub_key, sub_value in value.items():
                            f.write(f"  {sub_key}: {sub_value}\n")
                    else:
                        f.write(f"{key}: {value}\n")
                f.write("\n")

            if 'data_info' in summary_data:
                f.write("Data Selection:\n")
                f.write("-" * 20 + "\n")
                for key, value in summary_data['data_info'].items():
                    f.write(f"{key}: {value}\n")
                f.write("\n")

            trends = summary_data.get('trend_table')
            if trends is not None:
                f.write("Trend Statistics (Mann-Kendall / Theil-Sen):\n")
                f.write("-" * 40 + "\n")
                if trends.empty:
                    f.write("Insufficient data for trend analysis.\n\n")
                for _, row in trends.iterrows():
                    f.write(f"{self._group_label(row, trends.columns)}:\n")
                    f.write(f"  Years: {row['start_time']}-{row['end_time']} (n={row['n']})\n")
                    f.write(f"  Kendall tau: {format_value(row['tau'])}, "
                            f"p-value: {format_value(row['p_value'], 4)}\n")
                    f.write(f"  Sen slope: {format_value(row['slope'])} per year "
                            f"[{format_value(row['slope_ci_lower'])}, {format_value(row['slope_ci_upper'])}]\n")
                    f.write(f"  Trend: {row['direction']} ({row['significance'].replace('_', ' ')})\n\n")

            excluded = summary_data.get('excluded_table')
            if excluded is not None and not excluded.empty:
                f.write("Excluded Groups:\n")
                f.write("-" * 20 + "\n")
                for _, row in excluded.iterrows():
                    f.write(f"  • {self._group_label(row, excluded.columns)}: {row['reason']}\n")
                f.write("\n")

            comparisons = summary_data.get('comparisons')
            if comparisons is not None and not comparisons.empty:
                f.write("Multiple Comparisons (Tukey HSD):\n")
                f.write("-" * 30 + "\n")
                for _, row in comparisons.iterrows():
                    f.write(f"  {row['group']}: mean {format_value(row['mean'])} "
                            f"(n={row['n']}) {row['letters']}\n")
                f.write("\n")

            f.write("Generated Output Files:\n")
            f.write("-" * 30 + "\n")
            for output_file in sorted(self.output_dir.glob("*")):
                if output_file.is_file() and output_file.name != filename:
                    f.write(f"  • {output_file.name}\n")

        logger.info(f"Summary saved to: {summary_path}")
        return summary_path

    @staticmethod
    def _group_label(row: pd.Series, columns) -> str:
        keys = [c for c in columns if c in ('entity_id', 'group_key') or c.startswith('group_')]
        parts = []
        for key in keys:
            value = row[key]
            if value is None or (isinstance(value, float) and np.isnan(value)):
                continue
            parts.append(str(value))
        return " / ".join(parts) or "all observations"

    def log_file_saved(self, file_path: Path, file_type: str = "file"):
        """Log when a file is saved to the output structure."""
        relative_path = file_path.relative_to(self.output_dir)
        logger.info(f"{file_type.title()} saved: {relative_path}")
