"""
FlowWing -- Stripe Webhook Event Processor

Turns verified Stripe events into audit record transitions.

Stripe delivers at least once, may retry after we already succeeded, and
does not order checkout.session.completed against payment_intent.succeeded.
So every handler here is a single conditional write against the store,
and the result is the same whichever order or how many times events arrive:

  checkout.session.completed (paid)         -> payment_received (+ payment intent id)
  checkout.session.completed (unpaid)       -> nothing yet; a delayed method is settling
  checkout.session.async_payment_succeeded  -> payment_received (+ payment intent id)
  checkout.session.async_payment_failed     -> payment_failed, only from pending
  payment_intent.succeeded                  -> payment_received (+ payment intent id)
  payment_intent.payment_failed             -> payment_failed, only from pending
  anything else                             -> acknowledged, nothing written

Failure policy:
  InvalidSignature          -> raised to the router (400, Stripe stops)
  StorageError              -> raised to the router (500, Stripe retries)
  PaymentReferenceConflict  -> logged and acknowledged (a retry cannot fix it)
"""

import logging

from services.audit_checkout_service import AUDIT_PAYMENT_METADATA_TYPE
from services.payment_errors import PaymentReferenceConflict

logger = logging.getLogger("flowwing.webhooks")

EVENT_KIND_CHECKOUT_COMPLETED = "checkout_completed"
EVENT_KIND_CHECKOUT_PAYMENT_FAILED = "checkout_payment_failed"
EVENT_KIND_PAYMENT_SUCCEEDED = "payment_succeeded"
EVENT_KIND_PAYMENT_FAILED = "payment_failed"

STRIPE_EVENT_TYPE_TO_KIND = {
  "checkout.session.completed": EVENT_KIND_CHECKOUT_COMPLETED,
  "checkout.session.async_payment_succeeded": EVENT_KIND_CHECKOUT_COMPLETED,
  "checkout.session.async_payment_failed": EVENT_KIND_CHECKOUT_PAYMENT_FAILED,
  "payment_intent.succeeded": EVENT_KIND_PAYMENT_SUCCEEDED,
  "payment_intent.payment_failed": EVENT_KIND_PAYMENT_FAILED,
}

# Checkout session payment_status values that mean the money is in.
SETTLED_CHECKOUT_PAYMENT_STATUSES = ("paid", "no_payment_required")

OUTCOME_APPLIED = "applied"
OUTCOME_NOOP = "noop"
OUTCOME_IGNORED = "ignored"

DEFAULT_PAYMENT_FAILURE_NOTE = "Payment failed"
DELAYED_PAYMENT_FAILURE_NOTE = "Delayed payment failed"


def _payment_intent_id(value):
  """A payment_intent field is either an id string or an expanded object."""
  if isinstance(value, dict):
    return value.get("id")
  return value or None


class WebhookEventProcessor:
  """Verifies webhook deliveries and applies them to the audit record store."""

  def __init__(self, payment_gateway, audit_record_store):
    self.payment_gateway = payment_gateway
    self.audit_record_store = audit_record_store

  def handle_webhook(self, raw_body, signature_header):
    """
    Verify, parse, and apply one webhook delivery.

    Returns {"acknowledged": True, "event_type": ..., "outcome": ...} for
    every verified event that was processed, including no-ops.
    """
    # Raises InvalidSignature before anything touches the store.
    event = self.payment_gateway.construct_webhook_event(raw_body, signature_header)

    event_id = event.get("id", "")
    event_type = event.get("type", "")
    event_object = (event.get("data") or {}).get("object") or {}

    logger.info("Stripe webhook received: event_type=%s, event_id=%s", event_type, event_id)

    outcome = self.dispatch_event(event_type, event_object, event_id)

    return {"acknowledged": True, "event_type": event_type, "outcome": outcome}

  def dispatch_event(self, event_type, event_object, event_id=""):
    event_kind = STRIPE_EVENT_TYPE_TO_KIND.get(event_type)

    if event_kind == EVENT_KIND_CHECKOUT_COMPLETED:
      return self._handle_checkout_completed(event_object, event_type, event_id)
    if event_kind == EVENT_KIND_CHECKOUT_PAYMENT_FAILED:
      return self._handle_checkout_payment_failed(event_object, event_type, event_id)
    if event_kind == EVENT_KIND_PAYMENT_SUCCEEDED:
      return self._handle_payment_succeeded(event_object, event_id)
    if event_kind == EVENT_KIND_PAYMENT_FAILED:
      return self._handle_payment_failed(event_object, event_id)

    logger.info("Stripe webhook: unhandled event_type=%s (ignoring)", event_type)
    return OUTCOME_IGNORED

  # =========================================================================
  # Event handlers
  # =========================================================================

  def _audit_id_from_session(self, session, event_type, event_id):
    metadata = session.get("metadata") or {}
    audit_id = metadata.get("audit_id")
    if metadata.get("type") != AUDIT_PAYMENT_METADATA_TYPE or not audit_id:
      logger.warning(
        "%s without audit metadata: session_id=%s, event_id=%s",
        event_type, session.get("id"), event_id,
      )
      return None
    return audit_id

  def _handle_checkout_completed(self, session, event_type, event_id):
    """
    checkout.session.completed / async_payment_succeeded: checkout finished.

    A completed session paid with a delayed method (bank debit and the like)
    reports payment_status="unpaid"; the record stays pending until
    async_payment_succeeded or payment_intent.succeeded arrives.
    """
    audit_id = self._audit_id_from_session(session, event_type, event_id)
    if not audit_id:
      return OUTCOME_IGNORED

    payment_status = session.get("payment_status")
    if payment_status not in SETTLED_CHECKOUT_PAYMENT_STATUSES:
      logger.info(
        "%s: payment not settled yet (payment_status=%s), audit_id=%s stays pending",
        event_type, payment_status, audit_id,
      )
      return OUTCOME_NOOP

    payment_reference_id = _payment_intent_id(session.get("payment_intent"))
    return self._apply_payment_received(audit_id, payment_reference_id, event_type)

  def _handle_checkout_payment_failed(self, session, event_type, event_id):
    """checkout.session.async_payment_failed: the delayed payment bounced."""
    audit_id = self._audit_id_from_session(session, event_type, event_id)
    if not audit_id:
      return OUTCOME_IGNORED

    return self._apply_payment_failed(
      audit_id,
      DELAYED_PAYMENT_FAILURE_NOTE,
      _payment_intent_id(session.get("payment_intent")),
      event_type,
    )

  def _handle_payment_succeeded(self, payment_intent, event_id):
    """
    payment_intent.succeeded: the charge went through.

    Can arrive before, after, or instead of checkout.session.completed.
    """
    audit_id = (payment_intent.get("metadata") or {}).get("audit_id")
    if not audit_id:
      logger.info(
        "payment_intent.succeeded for a non-audit payment: payment_intent=%s",
        payment_intent.get("id"),
      )
      return OUTCOME_IGNORED

    return self._apply_payment_received(audit_id, payment_intent.get("id"), "payment_intent.succeeded")

  def _handle_payment_failed(self, payment_intent, event_id):
    """
    payment_intent.payment_failed: a charge attempt was declined.

    Only a pending record can fail. A failure for a record that is already
    paid is stale and left alone.
    """
    audit_id = (payment_intent.get("metadata") or {}).get("audit_id")
    if not audit_id:
      logger.info(
        "payment_intent.payment_failed for a non-audit payment: payment_intent=%s",
        payment_intent.get("id"),
      )
      return OUTCOME_IGNORED

    last_payment_error = payment_intent.get("last_payment_error") or {}
    failure_note = last_payment_error.get("message") or DEFAULT_PAYMENT_FAILURE_NOTE

    return self._apply_payment_failed(
      audit_id, failure_note, payment_intent.get("id"), "payment_intent.payment_failed",
    )

  # =========================================================================
  # Shared transitions
  # =========================================================================

  def _apply_payment_failed(self, audit_id, failure_note, payment_reference_id, source_event_type):
    was_applied = self.audit_record_store.mark_payment_failed(audit_id, failure_note)
    if was_applied:
      logger.info(
        "Audit payment failed: audit_id=%s, payment_intent=%s, via=%s",
        audit_id, payment_reference_id, source_event_type,
      )
      return OUTCOME_APPLIED

    logger.info(
      "%s ignored (record not pending or unknown): audit_id=%s",
      source_event_type, audit_id,
    )
    return OUTCOME_NOOP

  def _apply_payment_received(self, audit_id, payment_reference_id, source_event_type):
    try:
      was_applied = self.audit_record_store.mark_payment_received(audit_id, payment_reference_id)
    except PaymentReferenceConflict:
      logger.error(
        "%s: payment reference %s already belongs to another audit record; "
        "audit_id=%s left unchanged. MANUAL REVIEW REQUIRED.",
        source_event_type, payment_reference_id, audit_id,
      )
      return OUTCOME_NOOP

    if was_applied:
      logger.info(
        "Audit payment received: audit_id=%s, payment_reference=%s, via=%s",
        audit_id, payment_reference_id, source_event_type,
      )
      return OUTCOME_APPLIED

    logger.info(
      "%s: no change for audit_id=%s (already recorded, not pending, or unknown id)",
      source_event_type, audit_id,
    )
    return OUTCOME_NOOP
