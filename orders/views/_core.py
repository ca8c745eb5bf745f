"""
orders.views._core

Shared pieces for the order API views:
- VER (sent with every response so the storefront can log which build answered)
- the JSON envelope: {"ok", "ver", "data", "error"}
- OrdersAPIView: maps domain errors and DRF errors onto the envelope
- small request helpers (validated input, guest email, staff check)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response
from rest_framework.views import APIView

from ..exceptions import OrderError, ValidationError
from ..services import get_services

log = logging.getLogger("orders.api")

VER = "orders.v2026-10-12"


def envelope(ok: bool, data: Any = None, error: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"ok": bool(ok), "ver": VER, "data": data, "error": error}


def ok(data: Any = None, status: int = 200) -> Response:
    return Response(envelope(True, data=data), status=status)


def fail(err: OrderError) -> Response:
    return Response(envelope(False, error=err.to_dict()), status=err.http_status)


def validated(serializer_cls, data, **kwargs) -> Dict[str, Any]:
    """Run an input serializer; shape errors become ValidationError (400)."""
    ser = serializer_cls(data=data, **kwargs)
    if not ser.is_valid():
        raise ValidationError("Invalid request.", code="invalid_request", detail=ser.errors)
    return dict(ser.validated_data)


def guest_email_of(request) -> str:
    value = request.query_params.get("guest_email") or ""
    if not value and isinstance(request.data, dict):
        value = request.data.get("guest_email") or ""
    return str(value).strip().lower()


def require_staff(request) -> None:
    user = request.user
    if not (user and user.is_authenticated):
        raise drf_exceptions.NotAuthenticated()
    if not user.is_staff:
        raise drf_exceptions.PermissionDenied("Staff only.")


class OrdersAPIView(APIView):
    def services(self):
        return get_services()

    def handle_exception(self, exc):
        if isinstance(exc, OrderError):
            if exc.http_status >= 500:
                log.error("[orders][%s] %s: %s", type(self).__name__, exc.code, exc.message)
            else:
                log.info("[orders][%s] %s: %s", type(self).__name__, exc.code, exc.message)
            return fail(exc)

        response = super().handle_exception(exc)
        if isinstance(exc, drf_exceptions.APIException):
            detail = response.data
            message = detail.get("detail") if isinstance(detail, dict) else None
            response.data = envelope(
                False,
                error={
                    "code": getattr(exc, "default_code", "error"),
                    "message": str(message or exc),
                },
            )
        return response
