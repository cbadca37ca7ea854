"""
FlowWing -- Audit request lifecycle

  pending -> payment_received -> planning -> in_progress -> review -> completed
         \\-> payment_failed

Payment outcomes (payment_received, payment_failed) only ever start from
pending. Everything after payment_received is staff-driven and strictly
forward. payment_failed and completed are terminal.
"""

STATUS_PENDING = "pending"
STATUS_PAYMENT_RECEIVED = "payment_received"
STATUS_PAYMENT_FAILED = "payment_failed"
STATUS_PLANNING = "planning"
STATUS_IN_PROGRESS = "in_progress"
STATUS_REVIEW = "review"
STATUS_COMPLETED = "completed"

# Main line, in order. payment_failed is the only side branch.
ORDERED_MAIN_LINE_STATUSES = (
  STATUS_PENDING,
  STATUS_PAYMENT_RECEIVED,
  STATUS_PLANNING,
  STATUS_IN_PROGRESS,
  STATUS_REVIEW,
  STATUS_COMPLETED,
)

ALL_STATUSES = ORDERED_MAIN_LINE_STATUSES + (STATUS_PAYMENT_FAILED,)

# Statuses in which the audit has been paid for.
PAID_STATUSES = ORDERED_MAIN_LINE_STATUSES[1:]


def allowed_origin_statuses(target_status):
  """
  Return the statuses a record may be in for a move to target_status.

  Payment outcomes may only originate at pending. Staff steps may be taken
  from any earlier paid status, so a skipped step is allowed but going
  back never is.
  """
  if target_status not in ALL_STATUSES:
    raise ValueError(f"Unknown audit status: {target_status!r}")

  if target_status in (STATUS_PAYMENT_RECEIVED, STATUS_PAYMENT_FAILED):
    return (STATUS_PENDING,)

  if target_status == STATUS_PENDING:
    return ()

  target_position = ORDERED_MAIN_LINE_STATUSES.index(target_status)
  return ORDERED_MAIN_LINE_STATUSES[1:target_position]


def is_forward_transition(current_status, target_status):
  """True if moving a record from current_status to target_status is allowed."""
  return current_status in allowed_origin_statuses(target_status)


def is_payment_confirmed(record):
  """True if the stored record shows a confirmed payment."""
  if not record:
    return False
  return (
    record.get("status") == STATUS_PAYMENT_RECEIVED
    or bool(record.get("stripe_payment_id"))
  )
