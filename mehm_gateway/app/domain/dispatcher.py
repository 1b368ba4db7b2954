"""
Generic request pipeline shared by every gateway route.
"""

from typing import Awaitable, Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.errors import AuthorizationError, GatewayError
from shared.logging import get_logger, set_route, set_user_context
from ..adapters import UpstreamClient
from ..auth import Identity, TokenAuthenticator
from .responder import ErrorResponder
from .routes import AuthRule, RouteDescriptor, RouteInput


class RequestDispatcher:
    """Runs authenticate, role check, extract, owner check, forward and relay for a route.

    Any failure is answered right where it is detected and stops the
    pipeline; nothing is forwarded after an error.
    """

    def __init__(
        self,
        authenticator: TokenAuthenticator,
        upstream: UpstreamClient,
        responder: ErrorResponder,
    ):
        self.authenticator = authenticator
        self.upstream = upstream
        self.responder = responder
        self.logger = get_logger("gateway.dispatcher")

    def endpoint_for(self, route: RouteDescriptor) -> Callable[[Request], Awaitable[Response]]:
        async def endpoint(request: Request) -> Response:
            return await self.dispatch(route, request)

        endpoint.__name__ = route.name
        endpoint.__doc__ = route.summary
        return endpoint

    async def dispatch(self, route: RouteDescriptor, request: Request) -> Response:
        set_route(route.name)
        try:
            identity = self._authenticate(route, request)
            self._authorize_role(route, identity)
            inputs = await route.extract(request)
            self._authorize_owner(route, inputs, identity)

            if route.local is not None:
                return JSONResponse(route.local(inputs, identity))

            outbound = route.outbound(inputs, identity)
            upstream = await self.upstream.forward(
                outbound.backend.value,
                route.method,
                outbound.path,
                params=outbound.params,
                json_body=outbound.json_body,
            )
        except GatewayError as exc:
            return self.responder.respond(exc, route.name)

        return self.responder.relay(upstream)

    def _authenticate(self, route: RouteDescriptor, request: Request) -> Optional[Identity]:
        if route.rule is AuthRule.NONE:
            return None
        identity = self.authenticator.authenticate(request.headers.get("Authorization"))
        set_user_context(identity.id)
        return identity

    def _authorize_role(self, route: RouteDescriptor, identity: Optional[Identity]) -> None:
        if route.rule is AuthRule.ADMIN_ONLY and not identity.is_admin:
            raise AuthorizationError("admin-only")

    def _authorize_owner(self, route: RouteDescriptor, inputs: RouteInput, identity: Optional[Identity]) -> None:
        if route.rule is not AuthRule.SELF_OR_ADMIN or identity.is_admin:
            return
        owner_id = route.owner(inputs)
        if owner_id != identity.id:
            self.logger.warning("Ownership check failed", route=route.name, target=owner_id)
            raise AuthorizationError("not authorized")
