"""
Report generation for BamCov.
Renders a CoverageReport as the two-line tab separated summary table.
"""

from typing import Any, Dict, List, Optional, TextIO

import pandas as pd

from src.bamcov.core.coverage_stats import CoverageReport

FLOAT_FORMAT = '%.3f'


def threshold_column(threshold: int) -> str:
    return f"Depth>={threshold}X"


def report_columns(thresholds) -> List[str]:
    """
    Column names of the summary table for the given thresholds, in output order.
    """
    return (
        ['TotalBases', 'CovBases', 'CovRatio', 'Ave_Depth(X)']
        + [threshold_column(t) for t in thresholds]
        + ['Fold80', 'CV', '>=20%X']
    )


def report_row(report: CoverageReport) -> Dict[str, Any]:
    row = {
        'TotalBases': report.total_bases,
        'CovBases': report.covered_bases,
        'CovRatio': report.cov_ratio,
        'Ave_Depth(X)': report.mean_depth,
    }
    for threshold, coverage in report.threshold_coverage.items():
        row[threshold_column(threshold)] = coverage
    row['Fold80'] = report.fold80
    row['CV'] = report.cv
    row['>=20%X'] = report.above_20pct_mean
    return row


def build_report_frame(report: CoverageReport) -> pd.DataFrame:
    """
    One-row DataFrame with integer counts and float ratios.
    """
    df = pd.DataFrame([report_row(report)], columns=report_columns(report.threshold_coverage))
    return df.astype({'TotalBases': 'int64', 'CovBases': 'int64'})


def format_report(report: CoverageReport) -> str:
    """
    Header plus one data row, tab separated, ratios with three decimals.
    """
    return build_report_frame(report).to_csv(
        sep='\t', index=False, float_format=FLOAT_FORMAT, na_rep='nan'
    )


def write_report(report: CoverageReport, handle: Optional[TextIO] = None, output_path: Optional[str] = None):
    """
    Write the summary table to a file path or an open text handle.

    :param report: The coverage report.
    :param handle: Open text stream, used when no output path is given.
    :param output_path: Destination file.
    """
    text = format_report(report)
    if output_path is not None:
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(text)
    else:
        handle.write(text)
        handle.flush()
