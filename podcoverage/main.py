"""
podcoverage - standalone service
Run with `python -m podcoverage.main` under coverage.py, e.g.

    COVERAGE_PROCESS_START=.coveragerc python -m podcoverage.main
"""

import os

from .app import create_app
from .logging_config import setup_logging

DEFAULT_PORT = 6060

app = create_app()


if __name__ == "__main__":
    import uvicorn

    setup_logging()

    # Respect PODCOVERAGE_PORT so local runs and containers share the same
    # configuration surface.
    port_str = os.getenv("PODCOVERAGE_PORT", str(DEFAULT_PORT))
    try:
        port = int(port_str)
    except ValueError:
        port = DEFAULT_PORT

    uvicorn.run(app, host="0.0.0.0", port=port)
