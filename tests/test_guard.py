"""Tests for podcoverage/guard.py - self-exclusion of looped-back polls."""

import pytest

from podcoverage.guard import is_self_originated, self_exclusion_response
from podcoverage.peers import HOSTNAME_HEADER


@pytest.mark.parametrize(
    "claimed,expected",
    [
        ("pod-a", True),
        ("pod-b", False),
        ("POD-A", False),
        ("", False),
        (None, False),
    ],
)
def test_is_self_originated(claimed, expected) -> None:
    assert is_self_originated(claimed, "pod-a") is expected


def test_self_exclusion_response_is_empty_success() -> None:
    response = self_exclusion_response("pod-a")
    assert response.status_code == 200
    assert response.body == b""
    assert response.headers[HOSTNAME_HEADER] == "pod-a"
