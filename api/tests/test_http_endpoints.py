"""
HTTP-level tests for the audit payment endpoints.

Runs the real FastAPI app through TestClient with the Stripe gateway and
MySQL store replaced via app.dependency_overrides.
"""

from unittest.mock import patch

import mysql.connector
import pytest
from fastapi.testclient import TestClient

from app import app
from fakes import (
  FakePaymentGateway,
  checkout_completed_event,
  payment_failed_event,
  payment_succeeded_event,
  sign_stripe_payload,
)
from services.dependencies import (
  get_audit_record_store,
  get_payment_gateway,
  get_payment_verification_poller,
  get_webhook_event_processor,
)
from services.payment_verification_poller import PaymentVerificationPoller


@pytest.fixture
def client(payment_gateway, audit_store):
  app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
  app.dependency_overrides[get_audit_record_store] = lambda: audit_store
  app.dependency_overrides[get_payment_verification_poller] = (
    lambda: PaymentVerificationPoller(audit_store, retry_delay_seconds=0)
  )
  with TestClient(app) as test_client:
    yield test_client
  app.dependency_overrides.clear()


def _post_webhook(client, raw_body, signature_header="sign"):
  headers = {"Content-Type": "application/json"}
  if signature_header == "sign":
    signature_header = sign_stripe_payload(raw_body)
  if signature_header is not None:
    headers["Stripe-Signature"] = signature_header
  return client.post("/api/webhook", content=raw_body, headers=headers)


# ===========================================================================
# POST /api/audit-checkout
# ===========================================================================

class TestAuditCheckoutEndpoint:

  def test_returns_checkout_url_and_audit_id(self, client, audit_store):
    response = client.post("/api/audit-checkout", json={
      "email": "owner@acme.test",
      "company_name": "Acme",
      "social_handles": {"instagram": "@acme"},
    })

    assert response.status_code == 200
    body = response.json()
    assert body["url"].startswith("https://checkout.stripe.test/")
    assert body["session_id"] == "cs_test_1"
    assert audit_store.get_record_by_id(body["audit_id"])["status"] == "pending"

  def test_missing_fields_are_400(self, client, audit_store):
    response = client.post("/api/audit-checkout", json={"email": "owner@acme.test"})
    assert response.status_code == 400
    assert response.json() == {"error": "Email and company name are required"}
    assert audit_store.records == {}

  def test_invalid_json_is_400(self, client):
    response = client.post(
      "/api/audit-checkout",
      content=b"{not json",
      headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert "error" in response.json()

  def test_non_object_body_is_400(self, client):
    response = client.post("/api/audit-checkout", json=["a@b.com", "Acme"])
    assert response.status_code == 400

  def test_storage_failure_is_500(self, client, audit_store):
    audit_store.fail_inserts = True
    response = client.post("/api/audit-checkout", json={"email": "a@b.com", "company_name": "Acme"})
    assert response.status_code == 500
    assert "error" in response.json()

  def test_gateway_failure_is_502_and_leaves_pending_record(self, client, audit_store):
    app.dependency_overrides[get_payment_gateway] = lambda: FakePaymentGateway(fail_on={"session"})

    response = client.post("/api/audit-checkout", json={"email": "a@b.com", "company_name": "Acme"})

    assert response.status_code == 502
    assert response.json()["error"].startswith("Could not create payment")
    assert [r["status"] for r in audit_store.records.values()] == ["pending"]


# ===========================================================================
# POST /api/webhook
# ===========================================================================

class TestStripeWebhookEndpoint:

  def test_signed_event_is_applied(self, client, audit_store, pending_audit):
    response = _post_webhook(client, checkout_completed_event(pending_audit["id"], "pi_http"))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    record = audit_store.get_record_by_id(pending_audit["id"])
    assert record["status"] == "payment_received"
    assert record["stripe_payment_id"] == "pi_http"

  def test_redelivery_is_acknowledged(self, client, audit_store, pending_audit):
    raw_body = checkout_completed_event(pending_audit["id"], "pi_http")
    assert _post_webhook(client, raw_body).status_code == 200
    assert _post_webhook(client, raw_body).status_code == 200
    assert audit_store.write_count == 1

  def test_out_of_order_events_converge(self, client, audit_store, pending_audit):
    _post_webhook(client, payment_succeeded_event(pending_audit["id"], "pi_1"))
    _post_webhook(client, checkout_completed_event(pending_audit["id"], "pi_1"))
    _post_webhook(client, payment_failed_event(pending_audit["id"], "pi_1"))

    record = audit_store.get_record_by_id(pending_audit["id"])
    assert record["status"] == "payment_received"
    assert record["stripe_payment_id"] == "pi_1"

  def test_missing_signature_is_400(self, client, audit_store, pending_audit):
    response = _post_webhook(client, checkout_completed_event(pending_audit["id"]), signature_header=None)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Webhook signature verification failed")
    assert audit_store.get_record_by_id(pending_audit["id"])["status"] == "pending"

  def test_signature_over_different_bytes_is_400(self, client, audit_store, pending_audit):
    raw_body = checkout_completed_event(pending_audit["id"])
    header = sign_stripe_payload(raw_body + b" ")
    assert _post_webhook(client, raw_body, signature_header=header).status_code == 400
    assert audit_store.write_count == 0

  def test_unhandled_event_type_is_200(self, client):
    from fakes import build_stripe_event
    response = _post_webhook(client, build_stripe_event("invoice.paid", {"id": "in_1"}))
    assert response.status_code == 200

  def test_storage_failure_is_500_so_stripe_retries(self, client, audit_store, pending_audit):
    audit_store.fail_updates = True
    response = _post_webhook(client, checkout_completed_event(pending_audit["id"]))

    assert response.status_code == 500
    assert response.json() == {"error": "Storage failure"}

  def test_unexpected_failure_is_500(self, client):
    class ExplodingProcessor:
      def handle_webhook(self, raw_body, signature_header):
        raise RuntimeError("boom")

    app.dependency_overrides[get_webhook_event_processor] = lambda: ExplodingProcessor()
    response = _post_webhook(client, b"{}")

    assert response.status_code == 500
    assert response.json() == {"error": "Webhook processing failed"}


# ===========================================================================
# GET /api/audit/payment-status
# ===========================================================================

class TestPaymentStatusEndpoint:

  def test_confirmed_payment(self, client, audit_store, pending_audit):
    audit_store.mark_payment_received(pending_audit["id"], "pi_1")
    response = client.get("/api/audit/payment-status", params={"audit_id": pending_audit["id"]})

    assert response.status_code == 200
    assert response.json()["confirmed"] is True

  def test_pending_payment_is_soft(self, client, pending_audit):
    response = client.get("/api/audit/payment-status", params={"audit_id": pending_audit["id"]})
    body = response.json()
    assert response.status_code == 200
    assert body["verified"] is True
    assert body["confirmed"] is False
    assert body["status"] == "pending"

  def test_missing_audit_id_is_400(self, client):
    assert client.get("/api/audit/payment-status").status_code == 400


# ===========================================================================
# GET /audit/thank-you
# ===========================================================================

class TestThankYouPage:

  def test_direct_access_redirects_home(self, client):
    response = client.get("/audit/thank-you", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/"

  def test_confirmed_payment_shows_thank_you(self, client, audit_store, pending_audit):
    audit_store.mark_payment_received(pending_audit["id"], "pi_1")
    response = client.get(
      "/audit/thank-you",
      params={"audit_id": pending_audit["id"], "session_id": "cs_test_1"},
    )

    assert response.status_code == 200
    assert "Audit Request Received!" in response.text
    assert 'class="notice"' not in response.text

  def test_unconfirmed_payment_shows_processing_notice(self, client, pending_audit):
    response = client.get("/audit/thank-you", params={"audit_id": pending_audit["id"]})

    assert response.status_code == 200
    assert "Audit Request Received!" in response.text
    assert 'class="notice"' in response.text
    assert "being processed" in response.text

  def test_unknown_audit_redirects_home(self, client):
    response = client.get(
      "/audit/thank-you",
      params={"audit_id": "no-such-audit"},
      follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/"

  def test_storage_failure_redirects_home(self, client, audit_store, pending_audit):
    audit_store.fail_reads = True
    response = client.get(
      "/audit/thank-you",
      params={"audit_id": pending_audit["id"]},
      follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/"

  def test_failed_payment_is_not_shown_as_received(self, client, audit_store, pending_audit):
    audit_store.mark_payment_failed(pending_audit["id"], "declined")
    response = client.get("/audit/thank-you", params={"audit_id": pending_audit["id"]})
    assert 'class="notice"' in response.text


# ===========================================================================
# Health and offer
# ===========================================================================

class TestHealthEndpoint:

  def test_ready_when_database_and_stripe_are_available(self, client):
    with patch("database.execute_query_returning_one_row", return_value={"alive": 1}), \
         patch("config.STRIPE_SECRET_KEY", "sk_test"), \
         patch("config.STRIPE_WEBHOOK_SECRET", "whsec_test"):
      response = client.get("/api/health")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "ok"
    assert body["database_reachable"] is True
    assert "checkout.session.completed" in body["webhook_event_types"]
    assert "payment_intent.payment_failed" in body["webhook_event_types"]

  def test_missing_webhook_secret_is_degraded(self, client):
    with patch("database.execute_query_returning_one_row", return_value={"alive": 1}), \
         patch("config.STRIPE_SECRET_KEY", "sk_test"), \
         patch("config.STRIPE_WEBHOOK_SECRET", ""):
      response = client.get("/api/health")

    assert response.status_code == 503
    assert response.json()["stripe_credentials_present"] is False

  def test_unreachable_database_is_degraded(self, client):
    with patch("database.execute_query_returning_one_row", side_effect=mysql.connector.InterfaceError(msg="refused")), \
         patch("config.STRIPE_SECRET_KEY", "sk_test"), \
         patch("config.STRIPE_WEBHOOK_SECRET", "whsec_test"):
      response = client.get("/api/health")

    assert response.status_code == 503
    assert response.json()["database_reachable"] is False


class TestAuditOfferEndpoint:

  def test_flat_price_offer(self, client):
    body = client.get("/api/audit/offer").json()
    assert body == {
      "product_name": "Social Media Audit",
      "description": "Comprehensive analysis of your social media presence with actionable recommendations",
      "amount_cents": 10000,
      "currency": "usd",
      "display_price": "$100.00",
    }
