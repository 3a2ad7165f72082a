"""Short-circuit for requests that loop back to the replica that sent them.

When the load balancer routes one of our own polls back to us, the handler
must not reset counters or dump a profile a second time. The answer still
names us in ``x-hostname`` so the polling loop files it as a duplicate of
itself.
"""

from __future__ import annotations

from fastapi import Request, Response

from .peers import HOSTNAME_HEADER


def is_self_originated(claimed: str | None, local: str) -> bool:
    return bool(claimed) and claimed == local


def request_is_self_originated(request: Request, local: str) -> bool:
    return is_self_originated(request.headers.get(HOSTNAME_HEADER), local)


def self_exclusion_response(local: str) -> Response:
    return Response(status_code=200, headers={HOSTNAME_HEADER: local})
