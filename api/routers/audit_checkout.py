"""
FlowWing -- Audit Checkout Router

  POST /api/audit-checkout
    Public (no auth). Body: {"email", "company_name", "social_handles"}.
    Creates a pending audit record and a Stripe Checkout session, and
    returns the hosted checkout URL for the browser to follow.

  GET /api/audit/offer
    Product name and flat price for the signup form.

  GET /api/audit/payment-status?audit_id=...
    Post-checkout confirmation for the landing page (bounded re-check).
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import config
from services.dependencies import (
  get_audit_checkout_service,
  get_payment_verification_poller,
)
from services.payment_errors import GatewayError, InvalidRequest, StorageError

logger = logging.getLogger("flowwing.audit_checkout_router")

router = APIRouter(prefix="/api", tags=["audit-checkout"])


def _error_response(http_status_code, error_message):
  """Build the {error: ...} body the audit form expects."""
  return JSONResponse(status_code=http_status_code, content={"error": error_message})


@router.post("/audit-checkout")
async def create_audit_checkout(
  request: Request,
  checkout_service=Depends(get_audit_checkout_service),
):
  """
  Start a paid audit.

  Request body (JSON):
    {
      "email": "owner@example.com",
      "company_name": "Acme",
      "social_handles": {"instagram": "@acme", "website": "https://acme.test"}
    }

  Response:
    {"url": "https://checkout.stripe.com/...", "audit_id": "...", "session_id": "cs_..."}
  """
  try:
    body = await request.json()
  except ValueError:
    return _error_response(400, "Request body must be valid JSON")

  if not isinstance(body, dict):
    return _error_response(400, "Request body must be a JSON object")

  try:
    checkout = await checkout_service.initiate_audit_checkout(
      email=body.get("email"),
      company_name=body.get("company_name"),
      social_handles=body.get("social_handles"),
    )
  except InvalidRequest as invalid_request:
    return _error_response(400, str(invalid_request))
  except StorageError as storage_error:
    logger.error("Audit checkout failed at storage: %s", storage_error)
    return _error_response(500, "Could not start your audit. Please try again in a moment.")
  except GatewayError as gateway_error:
    logger.error("Audit checkout failed at Stripe: %s", gateway_error)
    return _error_response(502, "Could not create payment. Please try again in a moment.")

  return JSONResponse(
    status_code=200,
    content={
      "url": checkout["redirect_url"],
      "audit_id": checkout["record_id"],
      "session_id": checkout["session_id"],
    },
  )


@router.get("/audit/payment-status")
async def get_audit_payment_status(
  audit_id: str = None,
  poller=Depends(get_payment_verification_poller),
):
  """
  Confirm the payment for an audit after the Stripe redirect.

  Waits at most one short, fixed delay. "verified" with "confirmed": false
  means the payment is still being processed, not that it failed.
  """
  try:
    result = await poller.confirm_payment(audit_id)
  except InvalidRequest as invalid_request:
    return _error_response(400, str(invalid_request))

  return JSONResponse(status_code=200, content=result)


class AuditOffer(BaseModel):
  product_name: str
  description: str
  amount_cents: int
  currency: str
  display_price: str


@router.get("/audit/offer", response_model=AuditOffer)
async def get_audit_offer():
  """The audit product and flat price the signup form shows before checkout."""
  return AuditOffer(
    product_name=config.AUDIT_PRODUCT_NAME,
    description=config.AUDIT_PRODUCT_DESCRIPTION,
    amount_cents=config.AUDIT_PRICE_CENTS_USD,
    currency=config.AUDIT_CURRENCY,
    display_price=f"${config.AUDIT_PRICE_CENTS_USD / 100:,.2f}",
  )
