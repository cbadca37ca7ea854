"""
FlowWing -- Audit payment error taxonomy

Services raise these; routers translate them into HTTP responses.

  InvalidRequest            -- bad caller input (400), never touches storage
  InvalidSignature          -- webhook failed authentication (400), never retried
  StorageError              -- database failure (500); webhooks surface it so
                               the provider retries
  PaymentReferenceConflict  -- the payment reference already belongs to
                               another audit record (unique constraint)
  GatewayError              -- payment provider call failed (502)
"""


class AuditPaymentError(RuntimeError):
  """Base class for every error raised by the audit payment workflow."""


class InvalidRequest(AuditPaymentError):
  """Missing or malformed caller input."""


class InvalidSignature(AuditPaymentError):
  """Webhook signature missing, malformed, stale, or not matching."""


class StorageError(AuditPaymentError):
  """The audit record store could not complete a read or write."""


class PaymentReferenceConflict(StorageError):
  """A payment reference was about to be attached to a second audit record."""


class GatewayError(AuditPaymentError):
  """A call to the payment provider failed or returned something unusable."""
