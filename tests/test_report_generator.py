import math
import io
from src.bamcov.core.coverage_stats import CoverageReport
from src.bamcov.reporting.report_generator import build_report_frame, format_report, report_columns, write_report


def make_report(**overrides):
    fields = dict(
        total_bases=10, covered_bases=4, total_depth=20, cov_ratio=40.0, mean_depth=2.0,
        threshold_coverage={1: 40.0, 30: 0.0}, variance=6.0, std_deviation=math.sqrt(6.0),
        cv=math.sqrt(6.0) / 2.0, fold80_depth=5, fold80=2.5, above_20pct_mean=40.0
    )
    fields.update(overrides)
    return CoverageReport(**fields)


def test_report_columns():
    assert report_columns([1, 30]) == [
        "TotalBases", "CovBases", "CovRatio", "Ave_Depth(X)", "Depth>=1X", "Depth>=30X", "Fold80", "CV", ">=20%X"
    ]


def test_build_report_frame_types():
    df = build_report_frame(make_report())

    assert len(df) == 1
    assert df['TotalBases'].dtype == 'int64'
    assert df.loc[0, 'Depth>=30X'] == 0.0


def test_format_report_two_lines():
    lines = format_report(make_report()).splitlines()

    assert len(lines) == 2
    assert lines[1] == "10\t4\t40.000\t2.000\t40.000\t0.000\t2.500\t1.225\t40.000"


def test_format_report_nan_ratios():
    text = format_report(make_report(cv=math.nan, fold80=math.nan))
    assert text.splitlines()[1].split("\t")[6:8] == ["nan", "nan"]


def test_write_report_to_handle_and_file(tmp_path):
    handle = io.StringIO()
    write_report(make_report(), handle=handle)
    assert handle.getvalue().startswith("TotalBases\t")

    output = tmp_path / "report.tsv"
    write_report(make_report(), output_path=str(output))
    assert output.read_text() == handle.getvalue()
