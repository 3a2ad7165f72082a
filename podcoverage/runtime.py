"""Adapter over the coverage.py instance measuring this process.

Dumps the live counters as one coverage.py data file plus a ``covmeta.json``
describing how they were measured, and clears counters on reset.
"""

from __future__ import annotations

import os
from pathlib import Path

import coverage
from coverage import CoverageData
from coverage.exceptions import CoverageException
from pydantic import BaseModel, Field, ValidationError

from .errors import CoverageUnavailableError, LocalIOError

COUNTERS_PREFIX = ".coverage."
META_FILENAME = "covmeta.json"


class CoverageMeta(BaseModel):
    """Measurement metadata stored next to every counter file."""
    identity: str
    coverage_version: str = coverage.__version__
    measurement: str = "lines"
    source: list[str] = Field(default_factory=list)
    cwd: str = Field(default_factory=os.getcwd)


def read_meta(directory: str | Path) -> CoverageMeta:
    path = Path(directory) / META_FILENAME
    try:
        return CoverageMeta.model_validate_json(path.read_text())
    except OSError as e:
        raise LocalIOError(f"error reading coverage metadata: {e}", path=str(path)) from e
    except ValidationError as e:
        raise LocalIOError(f"invalid coverage metadata: {e}", path=str(path)) from e


def is_counters_file(name: str) -> bool:
    return name.startswith(COUNTERS_PREFIX)


class CoverageRuntime:
    """Live coverage counters of the current process.

    Uses the explicitly given ``coverage.Coverage`` or, by default, whichever
    instance is currently measuring (``coverage.Coverage.current()``).
    """

    def __init__(self, cov: coverage.Coverage | None = None):
        self._coverage = cov

    def _current(self) -> coverage.Coverage:
        cov = self._coverage or coverage.Coverage.current()
        if cov is None:
            raise CoverageUnavailableError(
                "process is not running under coverage.py "
                "(start it with `coverage run` or COVERAGE_PROCESS_START)"
            )
        return cov

    def write_meta(self, directory: str | Path, identity: str) -> Path:
        cov = self._current()
        try:
            data = cov.get_data()
        except CoverageException as e:
            raise CoverageUnavailableError(f"error reading coverage data: {e}") from e
        source = cov.config.source or []
        meta = CoverageMeta(
            identity=identity,
            measurement="arcs" if data.has_arcs() else "lines",
            source=[str(s) for s in source],
        )
        path = Path(directory) / META_FILENAME
        try:
            path.write_text(meta.model_dump_json(indent=2))
        except OSError as e:
            raise LocalIOError(f"error writing meta coverage data: {e}", path=str(path)) from e
        return path

    def write_counters(self, directory: str | Path, identity: str) -> Path:
        """Write the collected counters into ``directory`` and return the file."""
        cov = self._current()
        path = Path(directory) / f"{COUNTERS_PREFIX}{identity}.{os.getpid()}"
        try:
            data = cov.get_data()
            dump = CoverageData(basename=str(path))
            dump.update(data)
            dump.write()
        except (OSError, CoverageException) as e:
            raise LocalIOError(f"error writing coverage data: {e}", path=str(path)) from e
        return path

    def dump(self, directory: str | Path, identity: str) -> Path:
        """Write metadata and counters; return the counters file."""
        self.write_meta(directory, identity)
        return self.write_counters(directory, identity)

    def clear_counters(self) -> None:
        """Drop everything collected so far; measurement keeps running."""
        cov = self._current()
        try:
            cov.get_data().erase()
        except CoverageException as e:
            raise CoverageUnavailableError(f"error clearing coverage counters: {e}") from e
