"""
FlowWing -- Audit Thank-You Page

  GET /audit/thank-you?audit_id=...&session_id=...

Stripe sends the buyer here after checkout (success_url). The page
confirms the payment against our own record, not against the redirect:
the query string alone proves nothing.

  - no audit_id            -> redirect to the site home (direct access)
  - payment confirmed      -> thank-you page
  - webhook still pending  -> thank-you page with "confirmation by email" note
  - record unknown / error -> redirect to the site home, never a "payment failed" page

session_id is informational only and is logged, never trusted.
"""

import html
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, RedirectResponse

import config
from services.dependencies import get_payment_verification_poller

logger = logging.getLogger("flowwing.audit_thank_you")

router = APIRouter(tags=["audit-pages"])


@router.get("/audit/thank-you")
async def serve_audit_thank_you_page(
  audit_id: str = None,
  session_id: str = None,
  poller=Depends(get_payment_verification_poller),
):
  if not audit_id or not audit_id.strip():
    return RedirectResponse(url=config.SITE_HOME_PATH, status_code=303)

  logger.info("Thank-you page requested: audit_id=%s, session_id=%s", audit_id, session_id)

  verification = await poller.confirm_payment(audit_id)

  if not verification["verified"]:
    logger.warning("Thank-you page could not verify audit_id=%s; sending home", audit_id)
    return RedirectResponse(url=config.SITE_HOME_PATH, status_code=303)

  return HTMLResponse(
    content=_render_thank_you_page(
      confirmed=verification["confirmed"],
      message=verification["message"],
    ),
  )


# =========================================================================
# HTML Templates
# =========================================================================

def _base_page_head():
  """Common HTML head for the audit landing pages."""
  return """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>FlowWing - Personal Brand Audit</title>
  <style>
    * { box-sizing: border-box; margin: 0; padding: 0; }
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, sans-serif;
      background: #f7f7fb;
      color: #222;
      min-height: 100vh;
      display: flex;
      justify-content: center;
      align-items: flex-start;
      padding: 40px 20px;
    }
    .card {
      background: white;
      border-radius: 12px;
      box-shadow: 0 2px 12px rgba(0,0,0,0.08);
      max-width: 560px;
      width: 100%;
      padding: 40px;
    }
    h1 { font-size: 26px; margin-bottom: 16px; text-align: center; }
    p { line-height: 1.6; margin-bottom: 12px; }
    .notice {
      background: #fff8e6;
      border-left: 4px solid #f0a500;
      padding: 14px 16px;
      margin: 20px 0;
      border-radius: 0 8px 8px 0;
    }
    .steps { margin: 24px 0; padding-left: 20px; }
    .steps li { margin-bottom: 8px; line-height: 1.5; }
    .success-icon { font-size: 48px; text-align: center; margin-bottom: 20px; color: #16a34a; }
    .home-link { display: block; text-align: center; margin-top: 24px; color: #6d28d9; }
  </style>
</head>
<body>
<div class="card">
"""


def _base_page_footer():
  """Common HTML footer for the audit landing pages."""
  return f"""
  <a class="home-link" href="{html.escape(config.SITE_HOME_PATH)}">Back to FlowWing</a>
</div>
</body>
</html>"""


def _render_thank_you_page(confirmed, message):
  """Render the post-checkout thank-you page."""
  pending_notice = ""
  if not confirmed:
    pending_notice = f"""
  <div class="notice">{html.escape(message)}</div>
"""

  return f"""{_base_page_head()}
  <div class="success-icon">&#10003;</div>
  <h1>Audit Request Received!</h1>

  <p style="text-align: center;">
    We're analyzing your personal brand presence and will send you a
    comprehensive report within the next 24-48 hours.
  </p>
  {pending_notice}
  <ol class="steps">
    <li>Check your inbox for a confirmation email.</li>
    <li>Our team reviews your profiles and content.</li>
    <li>You receive your audit report with actionable recommendations.</li>
  </ol>
{_base_page_footer()}"""
