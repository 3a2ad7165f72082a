"""FastAPI routes under ``/debug/coverage``.

    /debug/coverage/          - average coverage across all replicas
    /debug/coverage/reset     - reset coverage counters on all replicas
    /debug/coverage/html      - merged HTML coverage report
    /debug/coverage/profile   - this replica's counter file, for peers

Peer URLs are built from the inbound request, so peers are polled through the
same load-balanced host the caller used. Requests that already carry an
``x-hostname`` come from a polling peer: they get the local action only and
are never re-broadcast.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from fastapi import APIRouter, Request, Response
from fastapi.responses import HTMLResponse, PlainTextResponse

from .errors import CoverageToolError, PodCoverageError
from .guard import request_is_self_originated, self_exclusion_response
from .metrics import observe_request
from .peers import FILENAME_HEADER, HOSTNAME_HEADER
from .report import format_total
from .service import CoverageService

COVERAGE_PREFIX = "/debug/coverage"


def create_router(service: CoverageService | None = None) -> APIRouter:
    service = service if service is not None else CoverageService()
    router = APIRouter(prefix=COVERAGE_PREFIX, tags=["coverage"])

    def peer_url(request: Request, route_name: str) -> str:
        url = str(request.url_for(route_name))
        base_url = service.config.base_url
        if base_url:
            return base_url.rstrip("/") + urlsplit(url).path
        return url

    def fail(endpoint: str, error: PodCoverageError) -> Response:
        logger = service.config.logger
        logger.error("coverage %s failed: %s", endpoint, error)
        if isinstance(error, CoverageToolError) and error.output:
            logger.error("coverage tool output:\n%s", error.output)
        observe_request(endpoint, "error")
        return Response(status_code=500)

    @router.get("/", name="coverage_percent")
    def coverage_percent(request: Request) -> Response:
        """Collect, merge and average coverage from every replica."""
        try:
            report = service.total_coverage(peer_url(request, "coverage_profile"))
        except PodCoverageError as e:
            return fail("percent", e)
        observe_request("percent", "ok")
        return PlainTextResponse(format_total(report.percentage))

    @router.get("/reset", name="coverage_reset")
    def coverage_reset(request: Request) -> Response:
        """Reset coverage counters locally and, for operator calls, on every replica."""
        identity = service.identity
        if request_is_self_originated(request, identity):
            observe_request("reset", "self")
            return self_exclusion_response(identity)

        try:
            if request.headers.get(HOSTNAME_HEADER):
                service.reset_local()
            else:
                service.reset(peer_url(request, "coverage_reset"))
        except PodCoverageError as e:
            return fail("reset", e)

        observe_request("reset", "ok")
        return PlainTextResponse(
            "Coverage counters have been reset",
            headers={HOSTNAME_HEADER: identity},
        )

    @router.get("/html", name="coverage_html")
    def coverage_html(request: Request) -> Response:
        try:
            html = service.html_report(peer_url(request, "coverage_profile"))
        except PodCoverageError as e:
            return fail("html", e)
        observe_request("html", "ok")
        return HTMLResponse(content=html)

    @router.get("/profile", name="coverage_profile")
    def coverage_profile(request: Request) -> Response:
        """Binary counter file of this replica, fetched by polling peers."""
        identity = service.identity
        if request_is_self_originated(request, identity):
            observe_request("profile", "self")
            return self_exclusion_response(identity)

        try:
            artifact = service.profile()
        except PodCoverageError as e:
            return fail("profile", e)

        observe_request("profile", "ok")
        return Response(
            content=artifact.payload,
            media_type="application/octet-stream",
            headers={
                HOSTNAME_HEADER: artifact.identity,
                FILENAME_HEADER: artifact.filename,
            },
        )

    return router
