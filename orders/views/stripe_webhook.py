"""
orders.views.stripe_webhook

Stripe webhook receiver (Django authoritative).

Flow
- verify Stripe-Signature against STRIPE_WEBHOOK_SECRET
- hand the event to ReconciliationService.handle_event
- answer with the usual envelope

Status codes (Stripe retries anything that is not 2xx)
- 200  handled, ignored type, or unresolvable correlation (retrying cannot help)
- 400  bad payload / bad signature
- 500  webhook secret missing, or handling failed (Stripe re-delivers)

ENV VARS
- STRIPE_WEBHOOK_SECRET (required)

========= CHANGE LOG =========
2026-10-05 • ADD: Signature verification + checkout/payment_intent handling via reconciliation.
2026-10-10 • CHANGE: Unresolvable events answer 200 ok=false (logged) instead of 400.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import stripe
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from ..exceptions import OrderError, ProviderError, ReconciliationError
from ..services import get_services
from ._core import VER

log = logging.getLogger("orders.webhook")


def _json_response(
    ok: bool,
    data: Optional[Dict[str, Any]] = None,
    error: Optional[Dict[str, Any]] = None,
    status: int = 200,
) -> JsonResponse:
    return JsonResponse(
        {"ok": bool(ok), "ver": VER, "data": data, "error": error},
        status=status,
    )


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    payload = request.body
    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")
    svc = get_services()

    try:
        event = svc.gateway.construct_event(payload, sig_header)
    except ProviderError as e:
        log.error("[stripe] webhook not configured: %s", e.message)
        return _json_response(False, error=e.to_dict(), status=500)
    except ValueError:
        log.warning("[stripe] invalid payload")
        return _json_response(False, error={"code": "invalid_payload", "message": "Invalid payload."}, status=400)
    except stripe.SignatureVerificationError:
        log.warning("[stripe] invalid signature")
        return _json_response(False, error={"code": "invalid_signature", "message": "Invalid signature."}, status=400)

    event_id = event.get("id")
    event_type = event.get("type")
    log.info("[stripe] event id=%s type=%s", event_id, event_type)

    try:
        result = svc.reconciliation.handle_event(event)
    except ReconciliationError as e:
        log.warning("[stripe] unresolvable event id=%s type=%s: %s", event_id, event_type, e.message)
        return _json_response(False, data={"id": event_id, "type": event_type}, error=e.to_dict())
    except OrderError as e:
        log.exception("[stripe] handling failed id=%s type=%s", event_id, event_type)
        return _json_response(False, data={"id": event_id, "type": event_type}, error=e.to_dict(), status=500)
    except Exception:
        log.exception("[stripe] unexpected failure id=%s type=%s", event_id, event_type)
        return _json_response(
            False,
            data={"id": event_id, "type": event_type},
            error={"code": "server_error", "message": "Webhook handling failed."},
            status=500,
        )

    return _json_response(True, data={"id": event_id, **result})
