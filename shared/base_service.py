"""
Base service class for the Mehm API Gateway.
"""

import os
import time
from typing import Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import BaseConfig
from shared.errors import ErrorResponse
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector

SERVICE_VERSION = "1.0.0"
REQUEST_ID_HEADER = "X-Request-ID"


class BaseService:
    """FastAPI skeleton shared by gateway services.

    Provides CORS, per-request correlation and metrics, ``/health`` and
    ``/metrics``, and renders framework errors with the ``{"message"}``
    envelope.
    """

    def __init__(self, service_name: str, config: BaseConfig):
        self.service_name = service_name
        self.config = config
        self.port = config.port
        self._start_time = time.time()

        configure_logging(service_name, config.log_level)
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()
        self._setup_exception_handlers()

    def _create_app(self) -> FastAPI:
        # Interactive docs are disabled
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            version=SERVICE_VERSION,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )

    def _setup_middleware(self):
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Credentials", "Cookie", "Content-Type"],
            expose_headers=[REQUEST_ID_HEADER],
        )

        @self.app.middleware("http")
        async def request_context(request: Request, call_next):
            request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
            started = time.perf_counter()
            try:
                response = await call_next(request)
                duration = time.perf_counter() - started
                route = _route_name(request)

                self.metrics.record_http_request(request.method, route, response.status_code, duration)
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2),
                )
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                clear_context()

    def _setup_routes(self):
        @self.app.get("/health", include_in_schema=False)
        async def health_check():
            dependencies = await self._check_dependencies()
            self.metrics.record_health_check("ok")
            return {
                "service": self.service_name,
                "status": "ok",
                "environment": self.config.gateway_env,
                "uptime_seconds": round(time.time() - self._start_time, 3),
                "dependencies": dependencies,
                "version": SERVICE_VERSION,
                "commit": os.getenv("GIT_COMMIT", "unknown"),
            }

        @self.app.get("/metrics", include_in_schema=False)
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(content=generate_latest(self.metrics.registry), media_type=CONTENT_TYPE_LATEST)

    def _setup_exception_handlers(self):
        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            """Unknown routes and methods get the standard envelope."""
            return JSONResponse(
                status_code=exc.status_code,
                content=ErrorResponse(message=str(exc.detail).lower()).model_dump(),
                headers=getattr(exc, "headers", None),
            )

        @self.app.exception_handler(Exception)
        async def unhandled_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=exc)
            self.metrics.record_error("INTERNAL_ERROR", _route_name(request))
            return JSONResponse(
                status_code=500,
                content=ErrorResponse(message="internal server error").model_dump(),
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def run(self):
        """Run the service."""
        import uvicorn

        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )


def _route_name(request: Request) -> Optional[str]:
    """Name of the matched route, e.g. ``get_mehm``."""
    route = request.scope.get("route")
    return getattr(route, "name", None)
