"""
HTTP forwarding client for the upstream user and mehm services.
"""

import json
from typing import Any, Dict, Mapping, Optional

import httpx

from shared.errors import InternalEncodingError, UpstreamUnreachableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector


class UpstreamClient:
    """Issues exactly one outbound call per inbound request.

    Requests are never retried; connection failures surface immediately as
    a 502.
    """

    def __init__(
        self,
        base_urls: Mapping[str, str],
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.base_urls = {name: url.rstrip("/") for name, url in base_urls.items()}
        self.metrics = metrics
        self.logger = get_logger("gateway.upstream_client")
        self._client = httpx.AsyncClient(transport=transport)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def url_for(self, backend: str, path: str) -> str:
        try:
            base_url = self.base_urls[backend]
        except KeyError as exc:
            raise InternalEncodingError(f"unknown backend {backend}") from exc
        return f"{base_url}{path}"

    def build_request(
        self,
        backend: str,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Request:
        """Build the outbound request; encoding problems map to a 500."""
        headers: Dict[str, str] = {}
        content: Optional[bytes] = None
        if json_body is not None:
            try:
                content = json.dumps(json_body).encode("utf-8")
            except (TypeError, ValueError) as exc:
                raise InternalEncodingError(details={"error": str(exc)}) from exc
            headers["Content-Type"] = "application/json"

        try:
            return self._client.build_request(
                method,
                self.url_for(backend, path),
                params=params or None,
                content=content,
                headers=headers,
            )
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            raise InternalEncodingError(str(exc)) from exc

    async def forward(
        self,
        backend: str,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send the request and return the response with its body still unread.

        The caller owns the returned response and must close it once the
        body has been relayed.
        """
        request = self.build_request(backend, method, path, params=params, json_body=json_body)

        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as exc:
            self.logger.error(
                "Upstream unreachable",
                backend=backend,
                method=method,
                path=path,
                error=str(exc),
            )
            if self.metrics:
                self.metrics.record_upstream_request(backend, "error")
            raise UpstreamUnreachableError(backend, str(exc) or type(exc).__name__) from exc

        self.logger.info(
            "Upstream responded",
            backend=backend,
            method=method,
            path=path,
            status_code=response.status_code,
        )
        if self.metrics:
            self.metrics.record_upstream_request(backend, str(response.status_code))
        return response
