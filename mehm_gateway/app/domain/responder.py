"""
Turns gateway failures and backend responses into client responses.
"""

from typing import AsyncIterator, Optional

import httpx
from fastapi.responses import JSONResponse, StreamingResponse

from shared.errors import GatewayError
from shared.logging import get_logger
from shared.metrics import MetricsCollector


class ErrorResponder:
    """Writes the ``{"message": ...}`` envelope or relays a backend response verbatim."""

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.metrics = metrics
        self.logger = get_logger("gateway.responder")

    def respond(self, exc: GatewayError, route_name: Optional[str] = None) -> JSONResponse:
        log = self.logger.error if exc.status_code >= 500 else self.logger.warning
        log(
            "Request failed",
            route=route_name,
            code=exc.code,
            status_code=exc.status_code,
            message=exc.message,
            details=exc.details,
        )
        if self.metrics:
            self.metrics.record_error(exc.code, route_name)

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response().model_dump(),
        )

    def relay(self, upstream: httpx.Response) -> StreamingResponse:
        """Stream the backend status and body to the caller without buffering it."""
        return StreamingResponse(
            self._relay_body(upstream),
            status_code=upstream.status_code,
            media_type="application/json",
        )

    async def _relay_body(self, upstream: httpx.Response) -> AsyncIterator[bytes]:
        # The upstream response is closed however the stream ends
        try:
            async for chunk in upstream.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            self.logger.error("Upstream body interrupted", status_code=upstream.status_code, error=str(exc))
            raise
        finally:
            await upstream.aclose()
