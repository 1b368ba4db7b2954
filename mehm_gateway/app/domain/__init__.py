"""
Domain logic for the Gateway Service: the route table, input validation and
the generic request pipeline that drives every route.
"""

from .dispatcher import RequestDispatcher
from .responder import ErrorResponder
from .routes import ROUTES, AuthRule, Backend, OutboundRequest, RouteDescriptor, RouteInput

__all__ = [
    "AuthRule",
    "Backend",
    "ErrorResponder",
    "OutboundRequest",
    "RequestDispatcher",
    "ROUTES",
    "RouteDescriptor",
    "RouteInput",
]
