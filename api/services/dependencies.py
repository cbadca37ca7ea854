"""
FlowWing -- FastAPI dependency providers

Routers receive their services through Depends(). Production wiring uses
the Stripe gateway and MySQL store singletons; tests swap them through
app.dependency_overrides[get_payment_gateway] / [get_audit_record_store].
"""

from fastapi import Depends

from services.audit_checkout_service import AuditCheckoutService
from services.audit_record_store import get_audit_record_store as _get_mysql_audit_record_store
from services.payment_verification_poller import PaymentVerificationPoller
from services.stripe_payment_gateway import get_stripe_payment_gateway
from services.webhook_event_processor import WebhookEventProcessor


def get_payment_gateway():
  return get_stripe_payment_gateway()


def get_audit_record_store():
  return _get_mysql_audit_record_store()


def get_audit_checkout_service(
  payment_gateway=Depends(get_payment_gateway),
  audit_record_store=Depends(get_audit_record_store),
):
  return AuditCheckoutService(payment_gateway, audit_record_store)


def get_webhook_event_processor(
  payment_gateway=Depends(get_payment_gateway),
  audit_record_store=Depends(get_audit_record_store),
):
  return WebhookEventProcessor(payment_gateway, audit_record_store)


def get_payment_verification_poller(
  audit_record_store=Depends(get_audit_record_store),
):
  return PaymentVerificationPoller(audit_record_store)
