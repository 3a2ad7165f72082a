"""Instance identity for peer deduplication.

Every outbound poll carries this value in ``x-hostname`` and every inbound
handler compares against it, so it must never change while the process runs.
"""

from __future__ import annotations

import functools
import os
import random
import socket

# Lets several replicas share one host during local runs.
IDENTITY_ENV = "PODCOVERAGE_HOSTNAME"

FALLBACK_PREFIX = "generated-hostname-"


def _fallback_identity() -> str:
    return f"{FALLBACK_PREFIX}{random.randint(0, 2**63 - 1)}"


def _resolve_identity() -> str:
    override = os.getenv(IDENTITY_ENV, "").strip()
    if override:
        return override
    try:
        hostname = socket.gethostname()
    except OSError:
        return _fallback_identity()
    return hostname or _fallback_identity()


@functools.lru_cache(maxsize=None)
def get_identity() -> str:
    """Return the identity of this process, resolving it on first use."""
    return _resolve_identity()
