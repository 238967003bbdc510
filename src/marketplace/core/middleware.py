import re
import time
import uuid
from contextvars import ContextVar
from typing import Callable

import structlog
from django.http import HttpRequest, HttpResponse

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = structlog.get_logger()

# Client-supplied ids end up in every log line; anything else is replaced.
_SAFE_REQUEST_ID = re.compile(r"[A-Za-z0-9._:-]{1,128}")


class CorrelationIdMiddleware:
    """Tags every request, and every log line it produces, with an id.

    The id comes from the ``X-Request-ID`` header when it is well formed
    and is a fresh UUID4 otherwise.  It is echoed back in the response so
    a customer's checkout can be traced across web and worker logs.  A
    checkout ``Idempotency-Key`` is bound alongside it.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = request.META.get("HTTP_X_REQUEST_ID", "")
        if not _SAFE_REQUEST_ID.fullmatch(cid):
            cid = str(uuid.uuid4())
        correlation_id_var.set(cid)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=cid)
        idempotency_key = request.META.get("HTTP_IDEMPOTENCY_KEY")
        if idempotency_key:
            structlog.contextvars.bind_contextvars(idempotency_key=idempotency_key[:128])

        started = time.monotonic()
        logger.info("request_started", method=request.method, path=request.path)

        response = self.get_response(request)

        user = getattr(request, "user", None)
        logger.info(
            "request_finished",
            method=request.method,
            path=request.path,
            status_code=response.status_code,
            user_id=user.pk if user is not None and user.is_authenticated else None,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )

        response["X-Request-ID"] = cid
        return response
