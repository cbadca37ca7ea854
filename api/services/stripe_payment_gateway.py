"""
FlowWing -- Stripe Payment Gateway

Stripe integration through the official `stripe` SDK. Network calls use the
SDK's *_async methods; webhook verification is stripe.Webhook.construct_event
against the exact raw request body.

Calls used:
  stripe.Customer.list / create / retrieve
  stripe.checkout.Session.create / retrieve
  stripe.Webhook.construct_event

The API key and version are passed per request, so nothing is written to the
module-global stripe.api_key.
"""

import logging

import stripe

import config
from services.payment_errors import GatewayError, InvalidSignature
from services.payment_gateway_interface import PaymentGatewayInterface

logger = logging.getLogger("flowwing.stripe")

SUPPORTED_CHECKOUT_MODES = ("payment", "subscription")


def _stripe_error_message(stripe_error):
  return getattr(stripe_error, "user_message", None) or str(stripe_error)


class StripePaymentGateway(PaymentGatewayInterface):
  """Stripe payment gateway backed by the stripe SDK."""

  def __init__(self, secret_key=None, webhook_secret=None, webhook_tolerance_seconds=None):
    self.secret_key = secret_key if secret_key is not None else config.STRIPE_SECRET_KEY
    self.webhook_secret = (
      webhook_secret if webhook_secret is not None else config.STRIPE_WEBHOOK_SECRET
    )
    self.webhook_tolerance_seconds = (
      webhook_tolerance_seconds
      if webhook_tolerance_seconds is not None
      else config.STRIPE_WEBHOOK_TOLERANCE_SECONDS
    )

  def _request_options(self, idempotency_key=None):
    options = {
      "api_key": self.secret_key,
      "stripe_version": config.STRIPE_API_VERSION,
    }
    if idempotency_key:
      options["idempotency_key"] = idempotency_key
    return options

  # -----------------------------------------------------------------------
  # Customers
  # -----------------------------------------------------------------------

  async def find_or_create_customer(self, email, name, idempotency_key=None):
    """
    Reuse the newest customer with this email, or create one.

    Looking up first keeps repeat buyers on a single Stripe customer.
    """
    try:
      existing_customers = await stripe.Customer.list_async(
        email=email, limit=1, **self._request_options(),
      )
      customers = existing_customers.get("data") or []
      if customers:
        logger.info("Found existing Stripe customer: customer_id=%s", customers[0].get("id"))
        return customers[0]

      customer = await stripe.Customer.create_async(
        email=email,
        name=name,
        metadata={"source": "audit_tool"},
        **self._request_options(idempotency_key),
      )
    except stripe.StripeError as stripe_error:
      logger.error("Stripe customer lookup/create failed: %s", _stripe_error_message(stripe_error))
      raise GatewayError(f"Stripe error: {_stripe_error_message(stripe_error)}") from stripe_error

    logger.info("Created Stripe customer: customer_id=%s", customer.get("id"))
    return customer

  async def retrieve_customer(self, customer_id):
    try:
      return await stripe.Customer.retrieve_async(customer_id, **self._request_options())
    except stripe.StripeError as stripe_error:
      raise GatewayError(f"Stripe error: {_stripe_error_message(stripe_error)}") from stripe_error

  # -----------------------------------------------------------------------
  # Checkout sessions
  # -----------------------------------------------------------------------

  async def create_checkout_session(
    self,
    customer_id,
    line_items,
    success_url,
    cancel_url,
    metadata,
    mode="payment",
    payment_intent_metadata=None,
    idempotency_key=None,
  ):
    """
    Create a Stripe Checkout session.

    mode="payment" is a one-time charge; mode="subscription" expects
    recurring price ids in line_items. payment_intent_metadata only
    applies to one-time payments.
    """
    if mode not in SUPPORTED_CHECKOUT_MODES:
      raise ValueError(f"Unsupported checkout mode: {mode!r}")

    session_params = {
      "customer": customer_id,
      "mode": mode,
      "line_items": line_items,
      "success_url": success_url,
      "cancel_url": cancel_url,
      "metadata": metadata,
    }
    if mode == "payment" and payment_intent_metadata:
      session_params["payment_intent_data"] = {"metadata": payment_intent_metadata}

    try:
      session = await stripe.checkout.Session.create_async(
        **session_params,
        **self._request_options(idempotency_key),
      )
    except stripe.StripeError as stripe_error:
      logger.error("Stripe checkout session create failed: %s", _stripe_error_message(stripe_error))
      raise GatewayError(f"Stripe error: {_stripe_error_message(stripe_error)}") from stripe_error

    session_id = session.get("id")
    session_url = session.get("url")
    if not session_id or not session_url:
      raise GatewayError("Stripe checkout session is missing its id or url")

    logger.info(
      "Stripe checkout session created: session_id=%s, mode=%s, customer_id=%s",
      session_id, mode, customer_id,
    )

    return {
      "session_id": session_id,
      "url": session_url,
      "status": session.get("status") or "open",
    }

  async def retrieve_checkout_session(self, session_id):
    try:
      return await stripe.checkout.Session.retrieve_async(session_id, **self._request_options())
    except stripe.StripeError as stripe_error:
      raise GatewayError(f"Stripe error: {_stripe_error_message(stripe_error)}") from stripe_error

  # -----------------------------------------------------------------------
  # Webhooks
  # -----------------------------------------------------------------------

  def construct_webhook_event(self, raw_body, signature_header):
    """
    Verify the Stripe-Signature header against the exact raw body, then parse it.

    Purely local: no network call.
    """
    if not self.webhook_secret:
      logger.error("Stripe webhook secret is not configured")
      raise InvalidSignature("Webhook secret not configured")

    if not signature_header:
      raise InvalidSignature("No signature")

    try:
      event = stripe.Webhook.construct_event(
        raw_body,
        signature_header,
        self.webhook_secret,
        tolerance=self.webhook_tolerance_seconds,
      )
    except stripe.SignatureVerificationError as signature_error:
      raise InvalidSignature(str(signature_error)) from signature_error
    except ValueError as decode_error:
      raise InvalidSignature("Webhook body is not valid JSON") from decode_error

    if not event.get("type"):
      raise InvalidSignature("Webhook body is not a Stripe event")

    return event


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_stripe_gateway_singleton = None


def get_stripe_payment_gateway():
  """Get the Stripe payment gateway singleton."""
  global _stripe_gateway_singleton
  if _stripe_gateway_singleton is None:
    _stripe_gateway_singleton = StripePaymentGateway()
  return _stripe_gateway_singleton
