"""Per-request scratch areas and coverage artifacts.

A scratch area holds one subdirectory per contributing replica (named after
its identity, made unique with ``tempfile.mkdtemp``) and, after merging, one
``merged`` subdirectory. Artifacts are never merged in place.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .errors import LocalIOError
from .runtime import CoverageRuntime

SCRATCH_PREFIX = "coverage"
MERGED_PREFIX = "merged"


@dataclass(frozen=True)
class CoverageArtifact:
    """Counter file of one replica as received over the wire."""
    identity: str
    filename: str
    payload: bytes


def _dir_prefix(identity: str) -> str:
    safe = identity.replace(os.sep, "_").replace("/", "_")
    return f"{safe}-"


def new_scratch_area() -> Path:
    try:
        return Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX))
    except OSError as e:
        raise LocalIOError(f"error creating temporary directory: {e}") from e


def new_identity_dir(scratch_dir: Path, identity: str) -> Path:
    try:
        return Path(tempfile.mkdtemp(prefix=_dir_prefix(identity), dir=scratch_dir))
    except OSError as e:
        raise LocalIOError(
            f"error creating temporary directory: {e}", path=str(scratch_dir)
        ) from e


def new_merged_dir(scratch_dir: Path) -> Path:
    try:
        return Path(tempfile.mkdtemp(prefix=MERGED_PREFIX, dir=scratch_dir))
    except OSError as e:
        raise LocalIOError(
            f"error creating temporary directory: {e}", path=str(scratch_dir)
        ) from e


def contributor_dirs(scratch_dir: Path) -> list[Path]:
    """Subdirectories holding one replica's artifact each, in name order."""
    try:
        return sorted(p for p in Path(scratch_dir).iterdir() if p.is_dir())
    except OSError as e:
        raise LocalIOError(
            f"error reading temporary directory: {e}", path=str(scratch_dir)
        ) from e


def remove_scratch_area(scratch_dir: Path) -> None:
    shutil.rmtree(scratch_dir, ignore_errors=True)


class ArtifactStore:
    """Writes received artifacts next to a fresh local metadata dump."""

    def __init__(self, runtime: CoverageRuntime):
        self.runtime = runtime

    def persist(self, scratch_dir: Path, artifact: CoverageArtifact) -> Path:
        target = new_identity_dir(scratch_dir, artifact.identity)
        self.runtime.write_meta(target, artifact.identity)

        path = target / artifact.filename
        try:
            path.write_bytes(artifact.payload)
        except OSError as e:
            raise LocalIOError(f"error writing to file: {e}", path=str(path)) from e
        return path

    def write_local(self, scratch_dir: Path, identity: str) -> Path:
        """Dump this process's own counters into a fresh identity directory."""
        target = new_identity_dir(scratch_dir, identity)
        return self.runtime.dump(target, identity)
