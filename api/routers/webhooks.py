"""
FlowWing -- Webhook Router

Receives webhooks from Stripe and hands them to the WebhookEventProcessor.

Stripe webhook: POST /api/webhook
  Events subscribed: checkout.session.completed, payment_intent.succeeded,
  payment_intent.payment_failed (anything else is acknowledged and ignored)

Security:
  - The body is read as raw bytes; the signature covers the exact bytes,
    so it must not be parsed and re-serialized first
  - Every webhook is signature-verified before anything is written
  - All webhook processing is idempotent (safe to receive duplicates)

Response codes (Stripe retries anything non-2xx):
  200 {"received": true}  -- processed, including deliberate no-ops
  400 {"error": ...}      -- signature invalid; retrying will not help
  500 {"error": ...}      -- storage or unexpected failure; Stripe retries
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from services.dependencies import get_webhook_event_processor
from services.payment_errors import InvalidSignature, StorageError

logger = logging.getLogger("flowwing.webhooks_router")

router = APIRouter(prefix="/api", tags=["webhooks"])


@router.post("/webhook")
async def receive_stripe_webhook(
  request: Request,
  processor=Depends(get_webhook_event_processor),
):
  """Receive and process one Stripe webhook delivery."""
  raw_body = await request.body()
  signature_header = request.headers.get("stripe-signature")

  try:
    processor.handle_webhook(raw_body, signature_header)

  except InvalidSignature as signature_error:
    logger.warning("Stripe webhook signature verification FAILED: %s", signature_error)
    return JSONResponse(
      status_code=400,
      content={"error": f"Webhook signature verification failed: {signature_error}"},
    )

  except StorageError as storage_error:
    logger.error("Stripe webhook processing failed at storage (Stripe will retry): %s", storage_error)
    return JSONResponse(status_code=500, content={"error": "Storage failure"})

  except Exception as processing_error:
    logger.exception("Stripe webhook processing error: %s", processing_error)
    return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})

  return JSONResponse(status_code=200, content={"received": True})
