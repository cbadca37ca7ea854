import os
import sys

import pytest

# Add the api directory to the path so we can import services and routers
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.dirname(__file__))

from fakes import FakePaymentGateway, InMemoryAuditRecordStore  # noqa: E402


@pytest.fixture
def audit_store():
  return InMemoryAuditRecordStore()


@pytest.fixture
def payment_gateway():
  return FakePaymentGateway()


@pytest.fixture
def pending_audit(audit_store):
  """A freshly inserted pending audit record."""
  return audit_store.insert_pending_record(
    record_id="11111111-1111-4111-8111-111111111111",
    email="a@b.com",
    company_name="Acme",
    social_handles={"instagram": "@acme"},
  )
