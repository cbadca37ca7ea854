"""
FlowWing -- Payment Gateway Interface

Abstract base class for the payment provider client. The checkout service
and the webhook processor only talk to this interface, so tests can hand
them a fake instead of a live Stripe account.

Every network method raises GatewayError on failure. Signature checking
raises InvalidSignature.
"""

from abc import ABC, abstractmethod


class PaymentGatewayInterface(ABC):
  """Abstract base for payment gateways."""

  @abstractmethod
  async def find_or_create_customer(self, email, name, idempotency_key=None):
    """
    Return the provider customer for this email, creating one if none exists.

    Args:
      email: Customer email address (the lookup key).
      name: Display name used only when a new customer is created.
      idempotency_key: Key so a retried create does not produce a duplicate.

    Returns: the provider's customer object as a dict (at minimum {"id": ...}).
    """
    ...

  @abstractmethod
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
    Create a hosted checkout session.

    Args:
      customer_id: Provider customer id from find_or_create_customer.
      line_items: List of line item dicts in provider format.
      success_url: Where the buyer lands after paying.
      cancel_url: Where the buyer lands after backing out.
      metadata: Correlation data echoed back on checkout webhooks.
      mode: "payment" (one-time) or "subscription" (recurring).
      payment_intent_metadata: Metadata copied onto the payment itself
        (one-time mode only), echoed back on payment webhooks.
      idempotency_key: Key so a retried create returns the same session.

    Returns: dict with at minimum:
      {
        "session_id": "...",   # provider's checkout session id
        "url": "...",          # hosted page the buyer is redirected to
      }
    """
    ...

  @abstractmethod
  async def retrieve_checkout_session(self, session_id):
    """Fetch a checkout session by id. Returns the provider object as a dict."""
    ...

  @abstractmethod
  async def retrieve_customer(self, customer_id):
    """Fetch a customer by id. Returns the provider object as a dict."""
    ...

  @abstractmethod
  def construct_webhook_event(self, raw_body, signature_header):
    """
    Verify a webhook delivery and return its parsed event.

    Args:
      raw_body: Raw request body bytes, exactly as received.
      signature_header: Value of the provider's signature header.

    Returns: the event as a dict ({"id", "type", "data": {"object": ...}}).
    Raises: InvalidSignature if the delivery cannot be authenticated.
    """
    ...
