"""Merge/percent/render steps behind an abstract coverage tool.

``CoverageTool`` is what the service needs from the outside world;
``CoverageCliTool`` implements it with the coverage.py command line, run as a
subprocess of the current interpreter with combined output captured for
diagnosis.
"""

from __future__ import annotations

import json
import os
import posixpath
import subprocess
import sys
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from .errors import CoverageToolError, LocalIOError
from .report import COVERAGE_MARKER
from .runtime import CoverageMeta, is_counters_file, read_meta

MERGED_DATA_FILE = ".coverage"
JSON_REPORT_FILE = "coverage.json"
HTML_DIR = "htmlcov"

# Keeps the child CLI from starting its own measurement via process startup hooks.
_CHILD_ENV_DROP = ("COVERAGE_PROCESS_START",)


class CoverageTool(Protocol):
    def merge(self, input_dirs: Sequence[Path], output_dir: Path) -> Path: ...

    def percent(self, merged_dir: Path) -> str: ...

    def render_html(self, merged_dir: Path) -> bytes: ...


def format_percent_report(json_report: Mapping[str, Any]) -> str:
    """Render a ``coverage json`` document as one percent line per package.

    Packages are source directories; files directly under the working
    directory belong to ``.``. Packages without statements are left out.
    """
    packages: dict[str, list[int]] = {}
    for filename, info in sorted(json_report.get("files", {}).items()):
        summary = info.get("summary", {})
        package = posixpath.dirname(filename.replace(os.sep, "/")) or "."
        totals = packages.setdefault(package, [0, 0])
        totals[0] += int(summary.get("covered_lines", 0))
        totals[1] += int(summary.get("num_statements", 0))

    lines = []
    for package, (covered, statements) in packages.items():
        if not statements:
            continue
        pct = 100.0 * covered / statements
        lines.append(f"\t{package}\t\t{COVERAGE_MARKER} {pct:.1f}% of statements")
    return "\n".join(lines) + "\n" if lines else ""


def validate_artifact_dir(directory: str | Path) -> CoverageMeta:
    """Check a merge input holds readable metadata and a counters file."""
    try:
        meta = read_meta(directory)
    except LocalIOError as e:
        raise CoverageToolError(
            f"coverage artifact has no usable metadata: {e.message}",
            context={"directory": str(directory)},
        ) from e
    if not any(is_counters_file(p.name) for p in Path(directory).iterdir()):
        raise CoverageToolError(
            "coverage artifact has no counters file",
            context={"directory": str(directory), "identity": meta.identity},
        )
    return meta


class CoverageCliTool:
    """coverage.py CLI (``python -m coverage``) as the external tool."""

    def __init__(
        self,
        timeout: float = 120.0,
        cwd: str | Path | None = None,
        python: str = sys.executable,
    ):
        self.timeout = timeout
        self.cwd = str(cwd) if cwd is not None else None
        self.python = python

    def _run(self, *args: str) -> str:
        cmd = [self.python, "-m", "coverage", *args]
        env = {k: v for k, v in os.environ.items() if k not in _CHILD_ENV_DROP}
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
                cwd=self.cwd,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            output = e.output if isinstance(e.output, str) else ""
            raise CoverageToolError(
                f"coverage {args[0]} timed out after {self.timeout}s",
                command=cmd,
                output=output,
            ) from e
        except OSError as e:
            raise CoverageToolError(f"cannot run coverage {args[0]}: {e}", command=cmd) from e

        if result.returncode != 0:
            raise CoverageToolError(
                f"error running coverage {args[0]}",
                command=cmd,
                returncode=result.returncode,
                output=result.stdout,
            )
        return result.stdout

    def merge(self, input_dirs: Sequence[Path], output_dir: Path) -> Path:
        for directory in input_dirs:
            validate_artifact_dir(directory)
        self._run(
            "combine",
            "--keep",
            "-q",
            f"--data-file={Path(output_dir) / MERGED_DATA_FILE}",
            *(str(d) for d in input_dirs),
        )
        return Path(output_dir)

    def percent(self, merged_dir: Path) -> str:
        json_path = Path(merged_dir) / JSON_REPORT_FILE
        self._run(
            "json",
            "-i",
            "-q",
            f"--data-file={Path(merged_dir) / MERGED_DATA_FILE}",
            "-o",
            str(json_path),
        )
        try:
            with open(json_path) as f:
                report = json.load(f)
        except (OSError, ValueError) as e:
            raise LocalIOError(f"error reading coverage json report: {e}", path=str(json_path)) from e
        return format_percent_report(report)

    def render_html(self, merged_dir: Path) -> bytes:
        html_dir = Path(merged_dir) / HTML_DIR
        self._run(
            "html",
            "-i",
            "-q",
            f"--data-file={Path(merged_dir) / MERGED_DATA_FILE}",
            "-d",
            str(html_dir),
        )
        index = html_dir / "index.html"
        try:
            return index.read_bytes()
        except OSError as e:
            raise LocalIOError(f"error reading HTML report: {e}", path=str(index)) from e
