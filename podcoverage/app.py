"""
podcoverage - FastAPI application factory
Serves the /debug/coverage endpoints standalone, or mounts them on an
existing application via install().
"""

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from . import __version__
from .handlers import create_router
from .service import CoverageService


def install(app: FastAPI, service: CoverageService | None = None) -> CoverageService:
    """Mount the coverage endpoints on ``app`` and return the backing service.

    Example:

        app = FastAPI()
        podcoverage.set_number_pods(5)
        podcoverage.install(app)
    """
    service = service if service is not None else CoverageService()
    app.include_router(create_router(service))
    return service


def create_app(service: CoverageService | None = None) -> FastAPI:
    app = FastAPI(
        title="podcoverage",
        description="Runtime code coverage aggregated across service replicas",
        version=__version__,
    )
    install(app, service)

    @app.get("/health")
    async def health_check():
        """Health check for container orchestration"""
        return {"status": "healthy"}

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
