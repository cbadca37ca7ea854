"""
FlowWing Audit Payments API

Paid Social Media Audit checkout, Stripe webhooks, and payment confirmation.

Endpoints:
  /api/health                        -- readiness: database + Stripe credentials
  /api/audit/offer                   -- audit product and price for the signup form
  /api/audit-checkout                -- start a paid audit (Stripe Checkout)
  /api/webhook                       -- Stripe webhook receiver
  /api/audit/payment-status          -- post-checkout payment confirmation
  /audit/thank-you                   -- post-checkout landing page
  /api/docs                          -- Swagger UI documentation

Run with:
    uvicorn app:app --host 127.0.0.1 --port 8190
"""

import datetime
import logging
from typing import List

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import config
from routers import audit_checkout, audit_thank_you, webhooks
from services.webhook_event_processor import STRIPE_EVENT_TYPE_TO_KIND

logging.basicConfig(
  level=config.LOG_LEVEL,
  format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger("flowwing.api")

app = FastAPI(
  title="FlowWing Audit Payments API",
  description="Checkout, payment webhooks, and payment confirmation "
              "for the FlowWing Social Media Audit.",
  version=config.API_VERSION,
  docs_url="/api/docs",
  redoc_url="/api/redoc",
  openapi_url="/api/openapi.json",
)

app.include_router(audit_checkout.router)
app.include_router(webhooks.router)
app.include_router(audit_thank_you.router)


class AuditPaymentsHealth(BaseModel):
  status: str                     # "ok" or "degraded"
  version: str
  checked_at: str
  database_reachable: bool
  stripe_credentials_present: bool
  webhook_event_types: List[str]  # what the Stripe dashboard endpoint must subscribe to


def _database_reachable():
  import database
  try:
    row = database.execute_query_returning_one_row("SELECT 1 AS alive")
  except Exception as db_error:
    logger.warning("Health check: database unreachable: %s", db_error)
    return False
  return bool(row) and row.get("alive") == 1


@app.get("/api/health", response_model=AuditPaymentsHealth)
async def health_check():
  """
  Readiness for the payment flow.

  503 when checkout or webhook processing would fail: the database is
  unreachable or the Stripe secret/webhook secret is missing.
  """
  database_reachable = _database_reachable()
  stripe_credentials_present = bool(config.STRIPE_SECRET_KEY and config.STRIPE_WEBHOOK_SECRET)
  healthy = database_reachable and stripe_credentials_present

  health = AuditPaymentsHealth(
    status="ok" if healthy else "degraded",
    version=config.API_VERSION,
    checked_at=datetime.datetime.now(datetime.timezone.utc).isoformat(),
    database_reachable=database_reachable,
    stripe_credentials_present=stripe_credentials_present,
    webhook_event_types=sorted(STRIPE_EVENT_TYPE_TO_KIND),
  )
  return JSONResponse(status_code=200 if healthy else 503, content=health.model_dump())


if __name__ == "__main__":
  import uvicorn
  logger.info("Starting FlowWing Audit Payments API on %s:%d", config.API_HOST, config.API_PORT)
  uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
