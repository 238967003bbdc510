import time
from typing import Any, Dict

import structlog
from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

from marketplace.core.models import OutboxEvent
from marketplace.payments.gateway import get_gateway

logger = structlog.get_logger()

# More unrelayed events than this means the Celery relay is not keeping up.
OUTBOX_BACKLOG_WARNING = 1000


def health_check(request: HttpRequest) -> JsonResponse:
    """Liveness of the stores checkout depends on.

    Database and cache failures make the service unhealthy (503).  The
    outbox backlog and the active payment gateway are reported for
    operators but never fail the check.
    """
    services: Dict[str, Dict[str, Any]] = {}
    overall_healthy = True

    # Check database
    try:
        start = time.monotonic()
        conn = connections["default"]
        conn.ensure_connection()
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        services["database"] = {
            "status": "up",
            "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        }
    except Exception:
        services["database"] = {"status": "down"}
        overall_healthy = False
        logger.error("health_check_db_failure")

    # Check cache (Redis also backs verification codes and realtime fan-out)
    try:
        start = time.monotonic()
        cache.set("_health_check", "ok", 10)
        if cache.get("_health_check") != "ok":
            raise ConnectionError("Cache read failed")
        services["cache"] = {
            "status": "up",
            "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        }
    except Exception:
        services["cache"] = {"status": "down"}
        overall_healthy = False
        logger.error("health_check_cache_failure")

    if overall_healthy:
        services["outbox"] = _outbox_backlog()
    services["payment_gateway"] = {"adapter": type(get_gateway()).__name__}

    logger.info(
        "health_check_completed", status="healthy" if overall_healthy else "unhealthy"
    )

    return JsonResponse(
        {
            "status": "healthy" if overall_healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if overall_healthy else 503,
    )


def _outbox_backlog() -> Dict[str, Any]:
    try:
        counts = OutboxEvent.objects.backlog()
    except DatabaseError:
        logger.warning("health_check_outbox_unavailable")
        return {"status": "unknown"}
    lagging = counts["pending"] > OUTBOX_BACKLOG_WARNING
    if lagging:
        logger.warning("health_check_outbox_backlog", **counts)
    return {"status": "lagging" if lagging else "up", **counts}
