"""
orders.views.health

GET /api/health/ -> liveness + database reachability.
"""

from __future__ import annotations

import logging

from django.db import DatabaseError, connection
from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET

from ._core import VER

log = logging.getLogger("orders.api")


@require_GET
def health(request: HttpRequest) -> JsonResponse:
    db_ok = True
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError:
        log.exception("[health] database unreachable")
        db_ok = False

    return JsonResponse(
        {"ok": db_ok, "ver": VER, "data": {"database": db_ok}, "error": None},
        status=200 if db_ok else 503,
    )
