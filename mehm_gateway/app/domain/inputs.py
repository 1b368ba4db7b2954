"""
Inbound parameter extraction and validation.

Query and path problems answer 400. For JSON bodies, decode failures (not
JSON, wrong types, missing fields) and text length violations answer 422,
while numeric range violations answer 400.
"""

import re
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from shared.errors import MalformedRequestError, ValidationError

_ID_PATTERN = re.compile(r"[0-9]+")
_RANGE_ERRORS = {"greater_than", "greater_than_equal", "less_than", "less_than_equal"}
_LENGTH_ERRORS = {"string_too_short", "string_too_long"}

ModelT = TypeVar("ModelT", bound=BaseModel)


class Genre(str, Enum):
    PROGRAMMING = "PROGRAMMING"
    DHBW = "DHBW"
    OTHER = "OTHER"


class SortKey(str, Enum):
    CREATED_DATE = "createdDate"
    LIKES = "likes"


class MehmListQuery(BaseModel):
    """Pagination, search and filter parameters for the mehm listing."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    skip: Optional[int] = Field(default=None, ge=0)
    take: Optional[int] = Field(default=None, ge=1, le=30)
    text_search: Optional[str] = Field(default=None, max_length=32, alias="textSearch")
    genre: Optional[str] = None
    sort: Optional[SortKey] = None

    @field_validator("genre")
    @classmethod
    def _known_genre(cls, value: Optional[str]) -> Optional[str]:
        # An empty genre means "no filter"
        if value is None or value == "":
            return value
        if value not in Genre.__members__:
            raise ValueError(f"invalid genre {value}")
        return value

    def to_params(self) -> Dict[str, Any]:
        """Only the parameters the caller supplied are forwarded."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class _Body(BaseModel):
    # extra="ignore" drops any client-supplied userId/isAdmin
    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)


class NewComment(_Body):
    mehm_id: int = Field(alias="mehmId", ge=1)
    comment: str = Field(min_length=1, max_length=256)


class CommentEdit(_Body):
    id: int = Field(ge=1)
    comment: str = Field(min_length=1, max_length=256)


class MehmEdit(_Body):
    description: str = Field(min_length=1, max_length=128)
    title: str = Field(min_length=1, max_length=32)


class UserDeletion(_Body):
    id: str = Field(min_length=1)


def describe_errors(exc: PydanticValidationError) -> str:
    """Flatten pydantic errors into a single human readable message."""
    parts = []
    for error in exc.errors(include_url=False):
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def body_error_status(exc: PydanticValidationError) -> int:
    """Choose 400 or 422 for a failed body validation by error class."""
    kinds = {error["type"] for error in exc.errors(include_url=False)}
    if kinds - _RANGE_ERRORS - _LENGTH_ERRORS:
        return 422
    if kinds & _RANGE_ERRORS:
        return 400
    return 422


def parse_id(raw: Optional[str], name: str) -> int:
    """Parse a strictly positive decimal identifier."""
    if raw is None or raw == "":
        raise MalformedRequestError(f"missing required parameter {name}")
    if not _ID_PATTERN.fullmatch(raw) or int(raw) < 1:
        raise ValidationError(f"{raw} is not a valid {name}", status_code=400)
    return int(raw)


def path_id(request: Request, name: str = "id") -> int:
    return parse_id(request.path_params.get(name), name)


def query_id(request: Request, name: str) -> int:
    return parse_id(request.query_params.get(name), name)


def parse_query(request: Request, model: Type[ModelT]) -> ModelT:
    """Validate the query string against ``model``; every failure is a 400."""
    try:
        return model.model_validate(dict(request.query_params), strict=False)
    except PydanticValidationError as exc:
        raise ValidationError(describe_errors(exc), status_code=400) from exc


def parse_body(raw: bytes, model: Type[ModelT]) -> ModelT:
    """Decode and validate a JSON body against ``model``."""
    try:
        return model.model_validate_json(raw or b"")
    except PydanticValidationError as exc:
        raise ValidationError(describe_errors(exc), status_code=body_error_status(exc)) from exc


async def read_body(request: Request, model: Type[ModelT]) -> ModelT:
    return parse_body(await request.body(), model)
