"""
API Gateway service for the mehm platform.
"""

from typing import Dict, Iterable, Optional

import httpx

from shared.base_service import BaseService
from shared.config import GatewayConfig, get_config
from mehm_gateway.app.adapters import UpstreamClient
from mehm_gateway.app.auth import TokenAuthenticator
from mehm_gateway.app.domain import (
    ROUTES,
    Backend,
    ErrorResponder,
    RequestDispatcher,
    RouteDescriptor,
)


class GatewayService(BaseService):
    """API Gateway service implementation."""

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        routes: Iterable[RouteDescriptor] = ROUTES,
    ):
        config = config or get_config()
        super().__init__("gateway", config)

        self.authenticator = TokenAuthenticator(config.secret_key, config.algorithms)
        self.upstream_client = UpstreamClient(
            {
                Backend.USERS.value: config.users_host,
                Backend.MEHMS.value: config.mehms_host,
            },
            transport=transport,
            metrics=self.metrics,
        )
        self.responder = ErrorResponder(self.metrics)
        self.dispatcher = RequestDispatcher(self.authenticator, self.upstream_client, self.responder)
        self.routes = list(routes)

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.upstream_client.close()

        self._setup_gateway_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    def _setup_gateway_routes(self):
        """Bind every route descriptor to the generic dispatcher."""
        for route in self.routes:
            self.app.add_api_route(
                route.path,
                self.dispatcher.endpoint_for(route),
                methods=[route.method],
                name=route.name,
                summary=route.summary,
            )
            self.logger.debug("Route registered", method=route.method, path=route.path, rule=route.rule.value)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report the configured upstreams; they are not probed."""
        return {name: "configured" for name in self.upstream_client.base_urls}


def create_app(config: Optional[GatewayConfig] = None, **kwargs):
    """Create FastAPI application."""
    service = GatewayService(config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()
