"""
podcoverage

Runtime code coverage over HTTP, aggregated across every replica of a
horizontally scaled deployment.

Mount the endpoints on an existing FastAPI application and tell the package
how many replicas to expect:

    import podcoverage

    podcoverage.set_number_pods(3)
    podcoverage.install(app)

The process itself must be measured by coverage.py (``coverage run`` or
``COVERAGE_PROCESS_START``).
"""

__version__ = "1.0.0"

from .config import CoverageConfig, get_config, set_logger, set_number_pods  # noqa: E402
from .identity import get_identity  # noqa: E402
from .app import create_app, install  # noqa: E402
from .report import PercentageReport, aggregate  # noqa: E402
from .service import CoverageService  # noqa: E402

__all__ = [
    "CoverageConfig",
    "CoverageService",
    "PercentageReport",
    "aggregate",
    "create_app",
    "get_config",
    "get_identity",
    "install",
    "set_logger",
    "set_number_pods",
]
