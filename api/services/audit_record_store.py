"""
FlowWing -- Audit Record Store

Persistence for audit purchase requests (the `audit_signups` table).

Every status change is a single conditional UPDATE keyed by id whose WHERE
clause carries the allowed origin statuses. Two webhook deliveries racing
on the same record cannot both win: the database applies one, the other
matches zero rows. Callers read the affected-row count, never
read-then-write.

Rows are plain dicts with the column names below.
"""

import json
import logging
from abc import ABC, abstractmethod

import mysql.connector
from mysql.connector import errorcode

from services import audit_lifecycle
from services.payment_errors import PaymentReferenceConflict, StorageError

logger = logging.getLogger("flowwing.audit_store")

AUDIT_SIGNUP_COLUMNS = (
  "id, email, company_name, social_handles, status, stripe_payment_id, "
  "notes, created_at, updated_at"
)


class AuditRecordStoreInterface(ABC):
  """Abstract base for audit record persistence."""

  @abstractmethod
  def insert_pending_record(self, record_id, email, company_name, social_handles):
    """Insert a new record with status=pending. Returns the stored row."""
    ...

  @abstractmethod
  def get_record_by_id(self, record_id):
    """Return the row for record_id, or None."""
    ...

  @abstractmethod
  def mark_payment_received(self, record_id, payment_reference_id):
    """
    Conditionally move pending -> payment_received and set the reference.

    Also back-fills a missing reference on an already-paid record. Never
    overwrites an existing reference. Returns True if a row changed.
    """
    ...

  @abstractmethod
  def mark_payment_failed(self, record_id, failure_note=None):
    """Conditionally move pending -> payment_failed. Returns True if a row changed."""
    ...

  @abstractmethod
  def advance_status(self, record_id, target_status):
    """Conditionally move a record forward along the lifecycle. Returns True if changed."""
    ...

  @abstractmethod
  def list_pending_records_older_than(self, age_seconds):
    """Return pending rows whose created_at is older than age_seconds."""
    ...


def _get_database():
  """Lazy import to allow unit testing without live DB."""
  import database
  return database


def _sql_in_placeholders(values):
  return ", ".join(["%s"] * len(values))


class MySQLAuditRecordStore(AuditRecordStoreInterface):
  """audit_signups on MySQL, via the shared connection pool."""

  def insert_pending_record(self, record_id, email, company_name, social_handles):
    db = _get_database()
    social_handles_json = json.dumps(social_handles) if social_handles is not None else None

    try:
      db.execute_insert_or_update(
        """
        INSERT INTO audit_signups
          (id, email, company_name, social_handles, status,
           created_at, updated_at)
        VALUES (%s, %s, %s, %s, %s, UTC_TIMESTAMP(6), UTC_TIMESTAMP(6))
        """,
        (
          record_id,
          email,
          company_name,
          social_handles_json,
          audit_lifecycle.STATUS_PENDING,
        ),
      )
    except mysql.connector.Error as db_error:
      logger.error("Audit record insert failed: audit_id=%s: %s", record_id, db_error)
      raise StorageError(f"Could not create audit record: {db_error}") from db_error

    logger.info("Audit record created: audit_id=%s, status=pending", record_id)

    return {
      "id": record_id,
      "email": email,
      "company_name": company_name,
      "social_handles": social_handles,
      "status": audit_lifecycle.STATUS_PENDING,
      "stripe_payment_id": None,
      "notes": None,
    }

  def get_record_by_id(self, record_id):
    db = _get_database()
    try:
      row = db.execute_query_returning_one_row(
        f"SELECT {AUDIT_SIGNUP_COLUMNS} FROM audit_signups WHERE id = %s",
        (record_id,),
      )
    except mysql.connector.Error as db_error:
      logger.error("Audit record lookup failed: audit_id=%s: %s", record_id, db_error)
      raise StorageError(f"Could not read audit record: {db_error}") from db_error

    if row and isinstance(row.get("social_handles"), (str, bytes)):
      row["social_handles"] = json.loads(row["social_handles"])
    return row

  def mark_payment_received(self, record_id, payment_reference_id):
    paid_statuses = audit_lifecycle.PAID_STATUSES
    query = f"""
      UPDATE audit_signups
      SET status = CASE WHEN status = %s THEN %s ELSE status END,
          stripe_payment_id = COALESCE(stripe_payment_id, %s),
          updated_at = UTC_TIMESTAMP(6)
      WHERE id = %s
        AND (
          status = %s
          OR (status IN ({_sql_in_placeholders(paid_statuses)})
              AND stripe_payment_id IS NULL
              AND %s IS NOT NULL)
        )
    """
    params = (
      audit_lifecycle.STATUS_PENDING,
      audit_lifecycle.STATUS_PAYMENT_RECEIVED,
      payment_reference_id,
      record_id,
      audit_lifecycle.STATUS_PENDING,
      *paid_statuses,
      payment_reference_id,
    )
    return self._execute_conditional_update(query, params, record_id, "payment_received")

  def mark_payment_failed(self, record_id, failure_note=None):
    query = """
      UPDATE audit_signups
      SET status = %s,
          notes = %s,
          updated_at = UTC_TIMESTAMP(6)
      WHERE id = %s AND status = %s
    """
    params = (
      audit_lifecycle.STATUS_PAYMENT_FAILED,
      failure_note,
      record_id,
      audit_lifecycle.STATUS_PENDING,
    )
    return self._execute_conditional_update(query, params, record_id, "payment_failed")

  def advance_status(self, record_id, target_status):
    origin_statuses = audit_lifecycle.allowed_origin_statuses(target_status)
    if not origin_statuses:
      return False

    query = f"""
      UPDATE audit_signups
      SET status = %s,
          updated_at = UTC_TIMESTAMP(6)
      WHERE id = %s AND status IN ({_sql_in_placeholders(origin_statuses)})
    """
    params = (target_status, record_id, *origin_statuses)
    return self._execute_conditional_update(query, params, record_id, target_status)

  def list_pending_records_older_than(self, age_seconds):
    db = _get_database()
    try:
      return db.execute_query_returning_all_rows(
        f"""
        SELECT {AUDIT_SIGNUP_COLUMNS} FROM audit_signups
        WHERE status = %s
          AND created_at < UTC_TIMESTAMP(6) - INTERVAL %s SECOND
        ORDER BY created_at ASC
        """,
        (audit_lifecycle.STATUS_PENDING, int(age_seconds)),
      )
    except mysql.connector.Error as db_error:
      logger.error("Pending audit record listing failed: %s", db_error)
      raise StorageError(f"Could not list pending audit records: {db_error}") from db_error

  def _execute_conditional_update(self, query, params, record_id, target_label):
    db = _get_database()
    try:
      affected_row_count = db.execute_insert_or_update(query, params)
    except mysql.connector.IntegrityError as integrity_error:
      if integrity_error.errno == errorcode.ER_DUP_ENTRY:
        logger.error(
          "Payment reference already belongs to another audit record: audit_id=%s: %s",
          record_id, integrity_error,
        )
        raise PaymentReferenceConflict(
          "Payment reference is already attached to another audit record"
        ) from integrity_error
      raise StorageError(f"Could not update audit record: {integrity_error}") from integrity_error
    except mysql.connector.Error as db_error:
      logger.error(
        "Audit record update failed: audit_id=%s, target=%s: %s",
        record_id, target_label, db_error,
      )
      raise StorageError(f"Could not update audit record: {db_error}") from db_error

    return affected_row_count > 0


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_audit_record_store_singleton = None


def get_audit_record_store():
  """Get the MySQL audit record store singleton."""
  global _audit_record_store_singleton
  if _audit_record_store_singleton is None:
    _audit_record_store_singleton = MySQLAuditRecordStore()
  return _audit_record_store_singleton
