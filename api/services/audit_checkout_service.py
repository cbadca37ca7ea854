"""
FlowWing -- Audit Checkout Service

Starts a paid Social Media Audit:

  1. Validate the request (email + company name required)
  2. Insert the audit record with status=pending
  3. Find or create the Stripe customer for the email
  4. Create a one-time Checkout session tagged with the audit id
  5. Hand back the hosted checkout URL

The record is written before the session exists, so a webhook that beats
our own HTTP response still finds it. If step 3 or 4 fails the record
stays pending and unreferenced; find_orphaned_pending_records() lists
those for review.
"""

import datetime
import logging
import uuid

import config
from services.payment_errors import InvalidRequest

logger = logging.getLogger("flowwing.audit_checkout")

AUDIT_PAYMENT_METADATA_TYPE = "audit_payment"
STRIPE_SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


def build_audit_line_items():
  """The single flat-priced line item for a Social Media Audit."""
  return [{
    "price_data": {
      "currency": config.AUDIT_CURRENCY,
      "product_data": {
        "name": config.AUDIT_PRODUCT_NAME,
        "description": config.AUDIT_PRODUCT_DESCRIPTION,
      },
      "unit_amount": config.AUDIT_PRICE_CENTS_USD,
    },
    "quantity": 1,
  }]


def build_audit_success_url(record_id):
  # Stripe substitutes the placeholder with the real session id on redirect.
  return (
    f"{config.PUBLIC_BASE_URL}{config.AUDIT_THANK_YOU_PATH}"
    f"?audit_id={record_id}&session_id={STRIPE_SESSION_ID_PLACEHOLDER}"
  )


def build_audit_cancel_url():
  return f"{config.PUBLIC_BASE_URL}{config.AUDIT_CHECKOUT_CANCEL_PATH}"


def validate_audit_checkout_request(email, company_name, social_handles):
  """
  Normalize and validate checkout input.

  Returns (email, company_name, social_handles) stripped of surrounding
  whitespace. Raises InvalidRequest on missing or malformed fields.
  """
  email = email.strip() if isinstance(email, str) else ""
  company_name = company_name.strip() if isinstance(company_name, str) else ""

  if not email or not company_name:
    raise InvalidRequest("Email and company name are required")

  if "@" not in email or len(email) < 3 or len(email) > 320:
    raise InvalidRequest("Email address appears invalid")

  if len(company_name) > 255:
    raise InvalidRequest("Company name must be at most 255 characters")

  if social_handles is not None and not isinstance(social_handles, dict):
    raise InvalidRequest("'social_handles' must be an object")

  return email, company_name, social_handles


class AuditCheckoutService:
  """Creates pending audit records and their Stripe Checkout sessions."""

  def __init__(self, payment_gateway, audit_record_store):
    self.payment_gateway = payment_gateway
    self.audit_record_store = audit_record_store

  async def initiate_audit_checkout(self, email, company_name, social_handles=None):
    """
    Create the pending record, then the checkout session that references it.

    Returns:
      {
        "redirect_url": "https://checkout.stripe.com/...",
        "record_id": "<uuid>",
        "session_id": "cs_...",
      }

    Raises: InvalidRequest, StorageError (no session created),
      GatewayError (record left pending).
    """
    email, company_name, social_handles = validate_audit_checkout_request(
      email, company_name, social_handles,
    )

    logger.info("Audit checkout requested: company_name=%s", company_name)

    record_id = str(uuid.uuid4())
    self.audit_record_store.insert_pending_record(
      record_id=record_id,
      email=email,
      company_name=company_name,
      social_handles=social_handles,
    )

    try:
      customer = await self.payment_gateway.find_or_create_customer(
        email=email,
        name=company_name,
        idempotency_key=f"audit-customer-{record_id}",
      )

      session = await self.payment_gateway.create_checkout_session(
        customer_id=customer["id"],
        line_items=build_audit_line_items(),
        success_url=build_audit_success_url(record_id),
        cancel_url=build_audit_cancel_url(),
        metadata={
          "type": AUDIT_PAYMENT_METADATA_TYPE,
          "audit_id": record_id,
        },
        mode="payment",
        payment_intent_metadata={"audit_id": record_id},
        idempotency_key=f"audit-checkout-{record_id}",
      )
    except Exception:
      logger.warning(
        "Checkout session creation failed; audit record left pending: audit_id=%s",
        record_id,
      )
      raise

    logger.info(
      "Audit checkout session created: audit_id=%s, session_id=%s",
      record_id, session["session_id"],
    )

    return {
      "redirect_url": session["url"],
      "record_id": record_id,
      "session_id": session["session_id"],
    }

  def find_orphaned_pending_records(self, older_than_seconds=None):
    """
    List pending audit records old enough that their checkout never completed.

    Report only: nothing is changed. Intended for a cron job or an operator
    deciding whether to follow up with the customer.
    """
    if older_than_seconds is None:
      older_than_seconds = config.ORPHANED_PENDING_RECORD_AGE_SECONDS

    stale_records = self.audit_record_store.list_pending_records_older_than(older_than_seconds)
    if stale_records:
      logger.warning(
        "Found %d pending audit records older than %s",
        len(stale_records),
        datetime.timedelta(seconds=older_than_seconds),
      )
    return stale_records
