"""
FlowWing -- Payment Verification Poller

Answers "did my payment go through?" for the post-checkout landing page.

Stripe redirects the buyer as soon as checkout succeeds, which can be
before the webhook has updated the record. So: check once, wait a fixed
delay, check once more, then stop. If the webhook still has not landed we
show a soft "confirmation will follow by email" result instead of a
failure; the stored record stays the source of truth.
"""

import asyncio
import logging

import config
from services import audit_lifecycle
from services.payment_errors import InvalidRequest, StorageError

logger = logging.getLogger("flowwing.payment_verification")

PAYMENT_CONFIRMED_MESSAGE = "Your payment has been confirmed."
PAYMENT_PROCESSING_MESSAGE = (
  "Your payment is being processed. You'll receive confirmation via email shortly."
)
PAYMENT_UNVERIFIABLE_MESSAGE = (
  "Unable to verify payment. Please check your email for confirmation."
)


class PaymentVerificationPoller:
  """Bounded re-check of an audit record's payment status."""

  def __init__(self, audit_record_store, retry_delay_seconds=None, sleep=asyncio.sleep):
    self.audit_record_store = audit_record_store
    self.retry_delay_seconds = (
      retry_delay_seconds
      if retry_delay_seconds is not None
      else config.PAYMENT_VERIFICATION_RETRY_DELAY_SECONDS
    )
    self._sleep = sleep

  async def confirm_payment(self, record_id):
    """
    Returns:
      {
        "verified": bool,     # show the thank-you page
        "confirmed": bool,    # the webhook has recorded the payment
        "status": str|None,   # stored status at the last read
        "message": str,
      }

    Raises InvalidRequest if record_id is missing. Storage failures and
    unknown ids come back as verified=False, never as exceptions.
    """
    if not record_id or not str(record_id).strip():
      raise InvalidRequest("audit_id is required")

    try:
      record = self.audit_record_store.get_record_by_id(record_id)
      if record is None:
        return self._unverifiable(record_id, "no such audit record")
      if audit_lifecycle.is_payment_confirmed(record):
        return self._confirmed(record)

      # Webhook not processed yet; give it one bounded chance to land.
      await self._sleep(self.retry_delay_seconds)

      record = self.audit_record_store.get_record_by_id(record_id)
      if record is None:
        return self._unverifiable(record_id, "audit record disappeared")
      if audit_lifecycle.is_payment_confirmed(record):
        return self._confirmed(record)

    except StorageError as storage_error:
      return self._unverifiable(record_id, storage_error)

    logger.info(
      "Payment not yet confirmed after retry: audit_id=%s, status=%s",
      record_id, record.get("status"),
    )
    return {
      "verified": True,
      "confirmed": False,
      "status": record.get("status"),
      "message": PAYMENT_PROCESSING_MESSAGE,
    }

  def _confirmed(self, record):
    return {
      "verified": True,
      "confirmed": True,
      "status": record.get("status"),
      "message": PAYMENT_CONFIRMED_MESSAGE,
    }

  def _unverifiable(self, record_id, reason):
    logger.warning("Payment verification failed: audit_id=%s: %s", record_id, reason)
    return {
      "verified": False,
      "confirmed": False,
      "status": None,
      "message": PAYMENT_UNVERIFIABLE_MESSAGE,
    }
