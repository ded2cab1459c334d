"""HTTP server exposing RAG health and metrics."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config.logging import LoggerMixin, setup_logging
from ..config.settings import Settings
from ..models.metrics import HealthStatus
from ..rag.service import RAGService
from .exceptions import JournalRAGError, RateLimitExceededError


class JournalRAGServer(LoggerMixin):
    """Hosts a RAGService inside a FastAPI application."""

    def __init__(self, settings: Optional[Settings] = None, service: Optional[RAGService] = None) -> None:
        self.settings = settings or Settings()
        self.settings.validate_runtime()
        self.settings.create_directories()

        setup_logging(self.settings)
        self.logger.info("Initializing Journal RAG server", version=__version__)

        self.service: Optional[RAGService] = service
        self.app: Optional[FastAPI] = None
        self._running = False

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncGenerator[None, None]:
        """FastAPI lifespan context manager."""
        try:
            await self._startup()
            yield
        finally:
            await self._shutdown()

    async def _startup(self) -> None:
        self.logger.info("Starting Journal RAG components")
        try:
            if self.service is None:
                self.service = RAGService(self.settings)
            await self.service.initialize()
            self._running = True
            self.logger.info("All server components started successfully")
        except Exception as e:
            self.logger.error("Failed to start server components", error=str(e))
            raise

    async def _shutdown(self) -> None:
        self.logger.info("Shutting down Journal RAG server")
        self._running = False
        if self.service:
            await self.service.close()
        self.logger.info("Server shutdown complete")

    def _rag_router(self) -> APIRouter:
        router = APIRouter()

        @router.get("/health")
        async def rag_health():
            """Run the synthetic pipeline check."""
            report = await self.service.health_check()
            status_code = 503 if report.status == HealthStatus.UNHEALTHY else 200
            payload = report.model_dump(mode="json")
            payload["rag_enabled"] = self.settings.RAG_ENABLED
            return JSONResponse(status_code=status_code, content=payload)

        @router.get("/metrics")
        async def rag_metrics():
            snapshot = self.service.get_metrics()
            return {
                "rag_enabled": self.settings.RAG_ENABLED,
                **snapshot.model_dump(mode="json"),
                "queue": self.service.get_queue_stats().model_dump(mode="json"),
            }

        return router

    def create_app(self) -> FastAPI:
        """Create and configure the FastAPI application."""
        app = FastAPI(
            title="Journal RAG",
            description="Retrieval-augmented context for journaling and goal coaching",
            version=__version__,
            lifespan=self.lifespan,
        )

        @app.exception_handler(RateLimitExceededError)
        async def rate_limit_exception_handler(request: Request, exc: RateLimitExceededError):
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

        @app.exception_handler(JournalRAGError)
        async def journal_rag_exception_handler(request: Request, exc: JournalRAGError):
            return JSONResponse(status_code=400, content=exc.to_dict())

        @app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error"}
            )

        @app.get("/health")
        async def health_check():
            """Liveness check."""
            return {
                "status": "healthy" if self._running else "starting",
                "version": __version__,
                "rag_enabled": self.settings.RAG_ENABLED,
            }

        app.include_router(self._rag_router(), prefix="/rag", tags=["rag"])

        self.app = app
        return app

    async def start(self) -> None:
        """Start the server using uvicorn."""
        app = self.create_app()

        config = uvicorn.Config(
            app,
            host=self.settings.SERVER_HOST,
            port=self.settings.SERVER_PORT,
            log_level=self.settings.LOG_LEVEL.lower(),
            access_log=self.settings.DEBUG,
        )

        server = uvicorn.Server(config)
        await server.serve()

    @property
    def is_running(self) -> bool:
        return self._running
