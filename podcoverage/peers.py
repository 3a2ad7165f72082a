"""Peer aggregation through a shared, load-balanced entry URL.

There is no peer directory: replicas are discovered by polling the entry URL
until the load balancer has routed us to ``number_pods`` distinct replicas.
Every poll carries our identity in ``x-hostname``; every answer carries the
responder's. The loop dedups on that header and stops on distinct count, so
it does not care in which order the balancer hands out replicas.

Termination and failure rules shared by collection and reset:

* the set of seen identities starts with our own;
* a duplicate answer is dropped and does not count;
* the overall budget is checked once per iteration, so a single slow request
  may overrun it by up to ``request_timeout``;
* any transport failure aborts the whole operation, even if some replicas
  already answered.
"""

from __future__ import annotations

import itertools
import time
from pathlib import Path
from typing import Callable, Iterator, Protocol
from urllib.parse import urlsplit

import requests

from .artifacts import CoverageArtifact
from .config import CoverageConfig
from .errors import PeerCommunicationError, PeerProtocolError, PeerTimeoutError
from .metrics import PEER_OPERATION_LATENCY, observe_peer_response

HOSTNAME_HEADER = "x-hostname"
FILENAME_HEADER = "x-filename"


class PeerResponse(Protocol):
    headers: dict
    content: bytes

    def close(self) -> None: ...


class PeerSession(Protocol):
    """The slice of ``requests.Session`` the pollers use."""

    def get(self, url: str, **kwargs) -> PeerResponse: ...


class ArtifactSink(Protocol):
    def persist(self, scratch_dir: Path, artifact: CoverageArtifact) -> Path: ...


class _PeerPoller:
    operation = "poll"

    def __init__(
        self,
        config: CoverageConfig,
        session: PeerSession | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.session = session if session is not None else requests.Session()
        self._clock = clock

    def _targets(self, entry_url: str) -> Iterator[str]:
        if not self.config.peer_urls:
            return itertools.repeat(entry_url)
        path = urlsplit(entry_url).path
        return itertools.cycle([base.rstrip("/") + path for base in self.config.peer_urls])

    def _request(self, url: str) -> PeerResponse:
        try:
            return self.session.get(
                url,
                headers={HOSTNAME_HEADER: self.config.identity},
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            observe_peer_response(self.operation, "error")
            raise PeerCommunicationError(f"failed to perform request: {e}", url=url) from e

    def _poll(
        self,
        entry_url: str,
        on_new_peer: Callable[[str, PeerResponse], None],
    ) -> set[str]:
        config = self.config
        seen = {config.identity}
        targets = self._targets(entry_url)
        start = self._clock()

        with PEER_OPERATION_LATENCY.labels(operation=self.operation).time():
            while len(seen) < config.number_pods:
                if self._clock() - start > config.overall_timeout:
                    raise PeerTimeoutError(
                        "requests timeout exceeded",
                        seen=len(seen),
                        expected=config.number_pods,
                        budget_sec=config.overall_timeout,
                    )

                url = next(targets)
                response = self._request(url)
                try:
                    peer = response.headers.get(HOSTNAME_HEADER)
                    if not peer:
                        observe_peer_response(self.operation, "error")
                        raise PeerProtocolError(
                            f"response without {HOSTNAME_HEADER} header", url=url
                        )
                    if peer in seen:
                        observe_peer_response(self.operation, "duplicate")
                        continue

                    seen.add(peer)
                    observe_peer_response(self.operation, "new")
                    on_new_peer(peer, response)
                finally:
                    response.close()

        return seen


class PeerCollector(_PeerPoller):
    """Fetches one coverage artifact from every replica."""

    operation = "collect"

    def __init__(
        self,
        config: CoverageConfig,
        sink: ArtifactSink,
        session: PeerSession | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(config, session=session, clock=clock)
        self.sink = sink

    def collect(self, scratch_dir: Path, entry_url: str) -> set[str]:
        """Store each replica's counters under ``scratch_dir``.

        Returns the identities seen, ours included. Raises PeerTimeoutError
        if fewer than ``number_pods`` replicas answer within the budget.
        """

        def store(peer: str, response: PeerResponse) -> None:
            filename = response.headers.get(FILENAME_HEADER) or ""
            if not filename or Path(filename).name != filename:
                raise PeerProtocolError(
                    f"invalid {FILENAME_HEADER} header {filename!r}",
                    context={"peer": peer},
                )
            artifact = CoverageArtifact(identity=peer, filename=filename, payload=response.content)
            self.sink.persist(scratch_dir, artifact)
            self.config.logger.info("received coverage profile from %s", peer)

        return self._poll(entry_url, store)


class PeerResetBroadcaster(_PeerPoller):
    """Keeps polling the reset URL until every replica has reset itself.

    A replica clears its own counters before answering, so there is nothing
    to do with a response besides counting its sender.
    """

    operation = "reset"

    def broadcast(self, entry_url: str) -> set[str]:
        return self._poll(
            entry_url,
            lambda peer, _response: self.config.logger.info(
                "coverage counters reset on %s", peer
            ),
        )
