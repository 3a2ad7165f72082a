"""Coverage operations behind the HTTP endpoints.

``CoverageService`` glues the pieces together for one request at a time:

    total coverage: dump local artifact -> collect peers -> merge -> percent
                    -> aggregate
    HTML report:    dump local artifact -> collect peers -> merge -> render
    profile:        dump local artifact -> hand back the counter file
    reset:          clear local counters -> broadcast reset to peers

Every operation works in its own scratch area, which is removed on success
and on failure alike.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable

import requests

from .artifacts import (
    ArtifactStore,
    CoverageArtifact,
    contributor_dirs,
    new_merged_dir,
    new_scratch_area,
    remove_scratch_area,
)
from .config import CoverageConfig, get_config
from .errors import LocalIOError
from .metrics import TOTAL_COVERAGE_PERCENT
from .peers import PeerCollector, PeerResetBroadcaster, PeerSession
from .report import PercentageReport, parse_percent_report
from .runtime import CoverageRuntime
from .tool import CoverageCliTool, CoverageTool


class CoverageService:
    """Coverage endpoints' logic, independent of the web framework.

    Without an explicit ``config`` the process-wide default is read on every
    operation, so ``set_number_pods``/``set_logger`` calls made at startup
    take effect.
    """

    def __init__(
        self,
        config: CoverageConfig | None = None,
        runtime: CoverageRuntime | None = None,
        tool: CoverageTool | None = None,
        session: PeerSession | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self.runtime = runtime if runtime is not None else CoverageRuntime()
        self._tool = tool
        self.session = session if session is not None else requests.Session()
        self.store = ArtifactStore(self.runtime)
        self._clock = clock

    @property
    def config(self) -> CoverageConfig:
        return self._config if self._config is not None else get_config()

    @property
    def identity(self) -> str:
        return self.config.identity

    def _get_tool(self, config: CoverageConfig) -> CoverageTool:
        if self._tool is not None:
            return self._tool
        return CoverageCliTool(timeout=config.tool_timeout)

    def _gather(self, config: CoverageConfig, scratch_dir: Path, profile_url: str) -> Path:
        self.store.write_local(scratch_dir, config.identity)
        collector = PeerCollector(config, self.store, session=self.session, clock=self._clock)
        collector.collect(scratch_dir, profile_url)

        inputs = contributor_dirs(scratch_dir)
        merged_dir = new_merged_dir(scratch_dir)
        return self._get_tool(config).merge(inputs, merged_dir)

    def total_coverage(self, profile_url: str) -> PercentageReport:
        """Merged coverage of every replica, reduced to one average."""
        config = self.config
        scratch_dir = new_scratch_area()
        try:
            merged_dir = self._gather(config, scratch_dir, profile_url)
            output = self._get_tool(config).percent(merged_dir)
        finally:
            remove_scratch_area(scratch_dir)

        report = parse_percent_report(output)
        TOTAL_COVERAGE_PERCENT.set(report.percentage)
        return report

    def html_report(self, profile_url: str) -> bytes:
        config = self.config
        scratch_dir = new_scratch_area()
        try:
            merged_dir = self._gather(config, scratch_dir, profile_url)
            config.logger.info("generate HTML coverage report")
            return self._get_tool(config).render_html(merged_dir)
        finally:
            remove_scratch_area(scratch_dir)

    def profile(self) -> CoverageArtifact:
        """This replica's counter file, as served to polling peers."""
        identity = self.identity
        scratch_dir = new_scratch_area()
        try:
            path = self.runtime.dump(scratch_dir, identity)
            try:
                payload = path.read_bytes()
            except OSError as e:
                raise LocalIOError(f"failed to read file: {e}", path=str(path)) from e
        finally:
            remove_scratch_area(scratch_dir)
        return CoverageArtifact(identity=identity, filename=path.name, payload=payload)

    def reset_local(self) -> None:
        self.runtime.clear_counters()

    def reset(self, reset_url: str) -> set[str]:
        """Clear local counters, then every other replica's."""
        config = self.config
        self.reset_local()
        broadcaster = PeerResetBroadcaster(config, session=self.session, clock=self._clock)
        return broadcaster.broadcast(reset_url)
