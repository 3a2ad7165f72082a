"""Reduce a textual percent report to one overall coverage percentage.

The report has one line per group of packages, e.g.::

    pkg/a\tpkg/b\tcoverage: 50.0% of statements
    pkg/c\tcoverage: 100.0% of statements

Each tab-separated name before the marker counts as one contributing unit and
each line's percentage is added once. The result is the plain mean, so a
package with one statement weighs as much as one with ten thousand.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import NoCoverageDataError, ReportParseError

COVERAGE_MARKER = "coverage:"


@dataclass(frozen=True)
class PercentageReport:
    percentage: float
    units: int


def parse_percent_report(output: str) -> PercentageReport:
    total = 0.0
    units = 0

    for line in output.splitlines():
        if COVERAGE_MARKER not in line:
            continue
        parts = line.split(COVERAGE_MARKER)
        if len(parts) != 2:
            continue

        value = parts[1].strip().split("%")[0].strip()
        try:
            percentage = float(value)
        except ValueError as e:
            raise ReportParseError(
                f"failed to parse coverage value {value!r}", line=line
            ) from e

        units += sum(1 for name in parts[0].split("\t") if name.strip())
        total += percentage

    if units == 0:
        raise NoCoverageDataError("no coverage data found in the output")

    return PercentageReport(percentage=total / units, units=units)


def aggregate(output: str) -> float:
    """Return the average coverage across every package in the report."""
    return parse_percent_report(output).percentage


def format_total(percentage: float) -> str:
    return f"Total Average Coverage: {percentage:.2f}%\n"
