"""
Declarative route table for the gateway.

Each exposed route is described once: its method and path, its single
authorization rule, how its input is extracted and how the outbound request
is built from that input and the caller's identity.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import Request
from pydantic import BaseModel

from ..auth import Identity
from .inputs import (
    CommentEdit,
    MehmEdit,
    MehmListQuery,
    NewComment,
    UserDeletion,
    parse_body,
    parse_query,
    path_id,
    query_id,
    read_body,
)


class AuthRule(str, Enum):
    NONE = "none"
    AUTHENTICATED = "authenticated-only"
    SELF_OR_ADMIN = "self-or-admin"
    ADMIN_ONLY = "admin-only"


class Backend(str, Enum):
    USERS = "users"
    MEHMS = "mehms"


@dataclass(frozen=True)
class RouteInput:
    """Validated inbound parameters of one request."""

    target_id: Optional[int] = None
    payload: Optional[BaseModel] = None


@dataclass(frozen=True)
class OutboundRequest:
    """Request to a backend; the only body ever sent is ``json_body``."""

    backend: Backend
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    json_body: Optional[Dict[str, Any]] = None


Extractor = Callable[[Request], Awaitable[RouteInput]]
OutboundBuilder = Callable[[RouteInput, Identity], OutboundRequest]
LocalResponder = Callable[[RouteInput, Optional[Identity]], Any]
OwnerResolver = Callable[[RouteInput], str]


@dataclass(frozen=True)
class RouteDescriptor:
    """Static binding of method and path to an authorization rule and transformation."""

    name: str
    method: str
    path: str
    rule: AuthRule
    extract: Extractor
    outbound: Optional[OutboundBuilder] = None
    local: Optional[LocalResponder] = None
    owner: Optional[OwnerResolver] = None
    summary: str = ""

    def __post_init__(self):
        if (self.outbound is None) == (self.local is None):
            raise ValueError(f"route {self.name} must either forward or answer locally")
        if (self.rule is AuthRule.SELF_OR_ADMIN) != (self.owner is not None):
            raise ValueError(f"route {self.name}: an owner resolver belongs to self-or-admin routes only")


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _caller(identity: Identity) -> Dict[str, str]:
    return {"userId": identity.id, "isAdmin": _flag(identity.is_admin)}


def with_identity(payload: BaseModel, identity: Identity) -> Dict[str, Any]:
    """Re-encode a validated body with caller fields taken from the verified identity."""
    body = payload.model_dump(by_alias=True, mode="json")
    body["userId"] = identity.id
    body["isAdmin"] = identity.is_admin
    return body


# Extractors

async def _no_input(request: Request) -> RouteInput:
    return RouteInput()


async def _mehm_listing(request: Request) -> RouteInput:
    return RouteInput(payload=parse_query(request, MehmListQuery))


async def _path_target(request: Request) -> RouteInput:
    return RouteInput(target_id=path_id(request))


async def _mehm_edit(request: Request) -> RouteInput:
    target_id = path_id(request)
    return RouteInput(target_id=target_id, payload=await read_body(request, MehmEdit))


async def _elevation_target(request: Request) -> RouteInput:
    return RouteInput(target_id=query_id(request, "id"))


async def _user_deletion(request: Request) -> RouteInput:
    return RouteInput(payload=await read_body(request, UserDeletion))


async def _new_comment(request: Request) -> RouteInput:
    raw = await request.body()
    if raw.strip():
        return RouteInput(payload=parse_body(raw, NewComment))
    # Without a body the fields may come from the query string
    return RouteInput(payload=parse_query(request, NewComment))


async def _comment_edit(request: Request) -> RouteInput:
    return RouteInput(payload=await read_body(request, CommentEdit))


async def _comment_removal(request: Request) -> RouteInput:
    return RouteInput(target_id=query_id(request, "commentId"))


# Outbound builders

def _list_mehms(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(Backend.MEHMS, "/mehms", params=inputs.payload.to_params())


def _get_mehm(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(Backend.MEHMS, f"/mehms/get/{inputs.target_id}", params={"userId": identity.id})


def _like_mehm(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(Backend.MEHMS, f"/mehms/{inputs.target_id}/like", params={"userId": identity.id})


def _remove_mehm(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(Backend.MEHMS, f"/mehms/{inputs.target_id}/remove", params=_caller(identity))


def _update_mehm(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(
        Backend.MEHMS,
        f"/mehms/{inputs.target_id}/update",
        params=_caller(identity),
        json_body=with_identity(inputs.payload, identity),
    )


def _all_users(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(Backend.USERS, "/all")


def _toggle_elevation(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(Backend.USERS, "/elevate", params={"id": str(inputs.target_id)})


def _delete_user(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(Backend.USERS, "/delete", params={"id": inputs.payload.id})


def _deletion_owner(inputs: RouteInput) -> str:
    return inputs.payload.id


def _get_comment(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(Backend.MEHMS, f"/comments/get/{inputs.target_id}")


def _post_comment(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(
        Backend.MEHMS,
        "/comments/new",
        params={"userId": identity.id},
        json_body=with_identity(inputs.payload, identity),
    )


def _edit_comment(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(
        Backend.MEHMS,
        "/comments/update",
        params=_caller(identity),
        json_body=with_identity(inputs.payload, identity),
    )


def _remove_comment(inputs: RouteInput, identity: Identity) -> OutboundRequest:
    return OutboundRequest(
        Backend.MEHMS,
        "/comments/remove",
        params={"commentId": str(inputs.target_id), **_caller(identity)},
    )


def _profile(inputs: RouteInput, identity: Optional[Identity]) -> Dict[str, Any]:
    return identity.to_dict()


ROUTES: List[RouteDescriptor] = [
    RouteDescriptor(
        name="list_mehms",
        method="GET",
        path="/api/mehms",
        rule=AuthRule.AUTHENTICATED,
        extract=_mehm_listing,
        outbound=_list_mehms,
        summary="Read a page of mehms",
    ),
    RouteDescriptor(
        name="get_mehm",
        method="GET",
        path="/api/mehms/{id}",
        rule=AuthRule.AUTHENTICATED,
        extract=_path_target,
        outbound=_get_mehm,
        summary="View a mehm including the caller's like state",
    ),
    RouteDescriptor(
        name="like_mehm",
        method="POST",
        path="/api/mehms/{id}/like",
        rule=AuthRule.AUTHENTICATED,
        extract=_path_target,
        outbound=_like_mehm,
        summary="Toggle the caller's like on a mehm",
    ),
    RouteDescriptor(
        name="remove_mehm",
        method="POST",
        path="/api/mehms/{id}/remove",
        rule=AuthRule.AUTHENTICATED,
        extract=_path_target,
        outbound=_remove_mehm,
        summary="Delete a mehm; ownership is checked by the mehm service",
    ),
    RouteDescriptor(
        name="update_mehm",
        method="POST",
        path="/api/mehms/{id}/update",
        rule=AuthRule.ADMIN_ONLY,
        extract=_mehm_edit,
        outbound=_update_mehm,
        summary="Edit a mehm's title and description",
    ),
    RouteDescriptor(
        name="profile",
        method="GET",
        path="/api/user",
        rule=AuthRule.AUTHENTICATED,
        extract=_no_input,
        local=_profile,
        summary="Echo the caller's identity",
    ),
    RouteDescriptor(
        name="all_users",
        method="GET",
        path="/api/user/all",
        rule=AuthRule.ADMIN_ONLY,
        extract=_no_input,
        outbound=_all_users,
        summary="List every user",
    ),
    RouteDescriptor(
        name="toggle_elevation",
        method="GET",
        path="/api/user/elevate",
        rule=AuthRule.ADMIN_ONLY,
        extract=_elevation_target,
        outbound=_toggle_elevation,
        summary="Toggle a user's admin status",
    ),
    RouteDescriptor(
        name="delete_user",
        method="POST",
        path="/api/user/delete",
        rule=AuthRule.SELF_OR_ADMIN,
        extract=_user_deletion,
        outbound=_delete_user,
        owner=_deletion_owner,
        summary="Delete yourself, or anyone when admin",
    ),
    RouteDescriptor(
        name="get_comment",
        method="GET",
        path="/api/comments/{id}",
        rule=AuthRule.AUTHENTICATED,
        extract=_path_target,
        outbound=_get_comment,
        summary="Read a comment",
    ),
    RouteDescriptor(
        name="post_comment",
        method="POST",
        path="/api/comments/new",
        rule=AuthRule.AUTHENTICATED,
        extract=_new_comment,
        outbound=_post_comment,
        summary="Comment on a mehm",
    ),
    RouteDescriptor(
        name="edit_comment",
        method="POST",
        path="/api/comments/update",
        rule=AuthRule.AUTHENTICATED,
        extract=_comment_edit,
        outbound=_edit_comment,
        summary="Edit a comment; ownership is checked by the mehm service",
    ),
    RouteDescriptor(
        name="remove_comment",
        method="POST",
        path="/api/comments/remove",
        rule=AuthRule.AUTHENTICATED,
        extract=_comment_removal,
        outbound=_remove_comment,
        summary="Delete a comment; ownership is checked by the mehm service",
    ),
]
