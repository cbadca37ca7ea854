"""FlowWing audit operations CLI.

Operator commands against the audit_signups table. Run from cron or by hand.

Usage:
    python manage.py orphaned-audits [--older-than SECONDS]
        List pending audits whose checkout never completed. Changes nothing.

    python manage.py advance-status AUDIT_ID STATUS
        Move a paid audit forward (planning, in_progress, review, completed).
"""

import argparse
import sys

import config
from services import audit_lifecycle


def report_orphaned_audits(checkout_service, older_than_seconds=None, out=None):
  """Print one line per orphaned pending audit. Returns how many were found."""
  out = out or sys.stdout
  orphaned_records = checkout_service.find_orphaned_pending_records(older_than_seconds)
  for record in orphaned_records:
    print(
      f"{record['id']}\t{record.get('created_at')}\t{record.get('email')}\t{record.get('company_name')}",
      file=out,
    )
  print(f"{len(orphaned_records)} orphaned pending audit(s).", file=out)
  return len(orphaned_records)


def advance_audit_status(audit_record_store, audit_id, target_status, out=None):
  """Move one audit forward. Returns True if the record changed."""
  out = out or sys.stdout
  record = audit_record_store.get_record_by_id(audit_id)
  if record is None:
    print(f"No audit with id {audit_id}.", file=out)
    return False

  if not audit_record_store.advance_status(audit_id, target_status):
    print(
      f"Audit {audit_id} is '{record['status']}'; it cannot move to '{target_status}'.",
      file=out,
    )
    return False

  print(f"Audit {audit_id}: {record['status']} -> {target_status}", file=out)
  return True


def _build_parser():
  parser = argparse.ArgumentParser(description="FlowWing audit operations")
  subparsers = parser.add_subparsers(dest="command", required=True)

  orphan_parser = subparsers.add_parser(
    "orphaned-audits", help="List pending audits whose checkout never completed",
  )
  orphan_parser.add_argument(
    "--older-than",
    type=int,
    default=config.ORPHANED_PENDING_RECORD_AGE_SECONDS,
    help="Minimum age in seconds (default: %(default)s)",
  )

  advance_parser = subparsers.add_parser("advance-status", help="Move a paid audit forward")
  advance_parser.add_argument("audit_id")
  advance_parser.add_argument(
    "status",
    choices=audit_lifecycle.ORDERED_MAIN_LINE_STATUSES[2:],
  )

  return parser


def main(argv=None, audit_record_store=None, payment_gateway=None):
  """Entry point. Returns a process exit code."""
  args = _build_parser().parse_args(argv)

  if audit_record_store is None:
    from services.audit_record_store import get_audit_record_store
    audit_record_store = get_audit_record_store()

  if args.command == "orphaned-audits":
    from services.audit_checkout_service import AuditCheckoutService
    if payment_gateway is None:
      from services.stripe_payment_gateway import get_stripe_payment_gateway
      payment_gateway = get_stripe_payment_gateway()
    checkout_service = AuditCheckoutService(payment_gateway, audit_record_store)
    report_orphaned_audits(checkout_service, args.older_than)
    return 0

  if args.command == "advance-status":
    return 0 if advance_audit_status(audit_record_store, args.audit_id, args.status) else 1

  return 2


if __name__ == "__main__":
  sys.exit(main())
