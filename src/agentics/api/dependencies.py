"""FastAPI dependencies: facade lookup, feature flag, caller identity."""

from __future__ import annotations

from typing import Any, Optional

import pydantic
from fastapi import Header, Request

from agentics.core.exceptions import AuthError, NotFoundError, ValidationError
from agentics.facade import Agentics


def get_agentics(request: Request) -> Agentics:
    return request.app.state.agentics


def require_feature(request: Request) -> None:
    """Answer 404 for every route while the feature flag is off."""
    if not get_agentics(request).config.feature_enabled:
        raise NotFoundError()


def require_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity, resolved upstream and forwarded as X-User-Id."""
    if x_user_id is None or not x_user_id.strip():
        raise AuthError()
    return x_user_id.strip()


def internal_token(x_internal_token: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_internal_token


async def read_json(request: Request) -> Any:
    """Decode the request body after auth checks have run.

    Raises:
        ValidationError: Empty or non-JSON body.
    """
    try:
        return await request.json()
    except ValueError as e:
        raise ValidationError(message="invalid payload", error_code="INVALID_JSON") from e


def parse_body(model: type[pydantic.BaseModel], data: Any) -> Any:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(
            message="invalid payload",
            details={"errors": e.errors(include_url=False)},
        ) from e
