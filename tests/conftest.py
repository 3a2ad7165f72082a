"""
Shared pytest fixtures for podcoverage tests.

Replicas are simulated in-process: a FakeSession scripts what the load
balancer answers, a FakeClock makes time budgets deterministic, and
FakeRuntime/FakeTool stand in for coverage.py so no test measures or
subprocesses anything.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Sequence

import pytest
from requests.structures import CaseInsensitiveDict

from podcoverage import config as config_module
from podcoverage import identity as identity_module
from podcoverage.config import CoverageConfig
from podcoverage.peers import FILENAME_HEADER, HOSTNAME_HEADER
from podcoverage.runtime import COUNTERS_PREFIX, META_FILENAME, CoverageMeta

TEST_LOGGER = logging.getLogger("podcoverage.tests")


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


class FakeResponse:
    def __init__(self, headers: dict | None = None, content: bytes = b"", status_code: int = 200):
        self.headers = CaseInsensitiveDict(headers or {})
        self.content = content
        self.status_code = status_code
        self.closed = False

    def close(self) -> None:
        self.closed = True


def profile_reply(identity: str, filename: str | None = None, content: bytes | None = None) -> FakeResponse:
    """Answer of a replica's /debug/coverage/profile endpoint."""
    return FakeResponse(
        headers={
            HOSTNAME_HEADER: identity,
            FILENAME_HEADER: filename or f"{COUNTERS_PREFIX}{identity}.1",
        },
        content=content if content is not None else f"counters-of-{identity}".encode(),
    )


def reset_reply(identity: str) -> FakeResponse:
    return FakeResponse(headers={HOSTNAME_HEADER: identity}, content=b"Coverage counters have been reset")


class FakeClock:
    """Monotonic clock advancing by ``step`` on every read."""

    def __init__(self, step: float = 0.0):
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSession:
    """Scripted transport: each get() consumes the next reply.

    A reply may be a response, an exception instance (raised), or a callable
    taking (url, headers).
    """

    def __init__(
        self,
        replies: Iterable,
        clock: FakeClock | None = None,
        latency: float = 0.0,
    ):
        self._replies = iter(replies)
        self.clock = clock
        self.latency = latency
        self.calls: list[dict] = []
        self.responses: list[FakeResponse] = []

    def get(self, url: str, headers: dict | None = None, timeout: float | None = None):
        self.calls.append({"url": url, "headers": dict(headers or {}), "timeout": timeout})
        if self.clock is not None:
            self.clock.advance(self.latency)
        reply = next(self._replies)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(url, headers)
        self.responses.append(reply)
        return reply


class FakeRuntime:
    """Counter writer producing a fixed payload per replica."""

    def __init__(self, payload: bytes = b"counters"):
        self.payload = payload
        self.dumps = 0
        self.cleared = 0

    def write_meta(self, directory, identity: str) -> Path:
        path = Path(directory) / META_FILENAME
        path.write_text(CoverageMeta(identity=identity).model_dump_json())
        return path

    def write_counters(self, directory, identity: str) -> Path:
        path = Path(directory) / f"{COUNTERS_PREFIX}{identity}.1"
        path.write_bytes(self.payload)
        return path

    def dump(self, directory, identity: str) -> Path:
        self.dumps += 1
        self.write_meta(directory, identity)
        return self.write_counters(directory, identity)

    def clear_counters(self) -> None:
        self.cleared += 1


class FakeTool:
    """Coverage tool recording what it was asked to merge."""

    def __init__(
        self,
        report: str = "pkg/a\tcoverage: 40.0% of statements\npkg/b\tcoverage: 60.0% of statements\n",
        html: bytes = b"<html><body>merged</body></html>",
    ):
        self.report = report
        self.html = html
        self.merged_inputs: list[dict[str, dict[str, bytes]]] = []
        self.merged_dirs: list[Path] = []

    def merge(self, input_dirs: Sequence[Path], output_dir: Path) -> Path:
        snapshot = {}
        for directory in input_dirs:
            snapshot[Path(directory).name] = {
                p.name: p.read_bytes() for p in Path(directory).iterdir()
            }
        self.merged_inputs.append(snapshot)
        self.merged_dirs.append(Path(output_dir))
        return Path(output_dir)

    def percent(self, merged_dir: Path) -> str:
        return self.report

    def render_html(self, merged_dir: Path) -> bytes:
        return self.html


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_process_state(monkeypatch):
    """Keep the process-wide identity and default config out of other tests."""
    for name in (
        "PODCOVERAGE_CONFIG",
        "PODCOVERAGE_HOSTNAME",
        "PODCOVERAGE_NUMBER_PODS",
        "PODCOVERAGE_REQUEST_TIMEOUT_SEC",
        "PODCOVERAGE_OVERALL_TIMEOUT_SEC",
        "PODCOVERAGE_TOOL_TIMEOUT_SEC",
        "PODCOVERAGE_PEER_URLS",
        "PODCOVERAGE_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    identity_module.get_identity.cache_clear()
    config_module.reset_config()
    yield
    identity_module.get_identity.cache_clear()
    config_module.reset_config()


@pytest.fixture
def config_factory() -> Callable[..., CoverageConfig]:
    """Factory for CoverageConfig with test-friendly defaults."""

    def _create_config(
        number_pods: int = 1,
        identity: str = "pod-a",
        **kwargs,
    ) -> CoverageConfig:
        kwargs.setdefault("logger", TEST_LOGGER)
        return CoverageConfig(number_pods=number_pods, identity=identity, **kwargs).validate()

    return _create_config
