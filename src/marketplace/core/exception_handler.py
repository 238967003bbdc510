"""Project-wide DRF exception handler.

Every error response has the shape::

    {"type": "<category>", "errors": [{"code": "...", "detail": "..."}]}

Domain exceptions that escape a view are mapped to an HTTP status by
category; DRF's own exceptions keep their status code.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from marketplace.core.exceptions import (
    GatewayError,
    InsufficientStock,
    InvalidTransition,
    MarketplaceError,
    NotAuthorized,
    NotFound,
    OrderValidationError,
)

logger = structlog.get_logger(__name__)

DOMAIN_STATUS_CODES: list[tuple[type[MarketplaceError], int]] = [
    (OrderValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (NotAuthorized, status.HTTP_403_FORBIDDEN),
    (InsufficientStock, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (GatewayError, status.HTTP_502_BAD_GATEWAY),
]


def status_for(exc: MarketplaceError) -> int:
    for category, status_code in DOMAIN_STATUS_CODES:
        if isinstance(exc, category):
            return status_code
    return getattr(exc, "status_code", status.HTTP_400_BAD_REQUEST)


def error_body(error_type: str, errors: list[dict[str, Any]]) -> dict[str, Any]:
    return {"type": error_type, "errors": errors}


def validation_error_response(
    detail: str, attr: str | None = None, code: str = "invalid"
) -> Response:
    """A single-field ``validation_error`` raised outside a serializer."""
    return Response(
        error_body("validation_error", [{"code": code, "detail": detail, "attr": attr}]),
        status=status.HTTP_400_BAD_REQUEST,
    )


def pydantic_error_response(exc: PydanticValidationError) -> Response:
    """Translate a DTO validation failure into a ``validation_error`` body."""
    errors = [
        {
            "code": error["type"],
            "detail": error["msg"],
            "attr": ".".join(str(part) for part in error["loc"]) or None,
        }
        for error in exc.errors()
    ]
    return Response(
        error_body("validation_error", errors), status=status.HTTP_400_BAD_REQUEST
    )


def domain_error_response(exc: MarketplaceError) -> Response:
    """Translate a domain exception into the standard error response."""
    return Response(
        error_body(
            "domain_error",
            [{"code": exc.code, "detail": str(exc), "attr": None}],
        ),
        status=status_for(exc),
    )


def standard_exception_handler(exc: Exception, context: dict) -> Response | None:
    if isinstance(exc, MarketplaceError):
        return domain_error_response(exc)

    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if response.status_code == status.HTTP_400_BAD_REQUEST and isinstance(data, dict):
        errors = [
            {
                "code": "invalid",
                "detail": " ".join(str(m) for m in messages)
                if isinstance(messages, list)
                else str(messages),
                "attr": field,
            }
            for field, messages in data.items()
        ]
        response.data = error_body("validation_error", errors)
        return response

    detail = data.get("detail", data) if isinstance(data, dict) else data
    code = getattr(detail, "code", None) or "error"
    response.data = error_body(
        "client_error" if response.status_code < 500 else "server_error",
        [{"code": code, "detail": str(detail), "attr": None}],
    )
    return response
