# weddingpay/services/emailer.py
from __future__ import annotations

import os
import json
import requests
from typing import Optional, Dict, Any

from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.notifications')

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


def send_email(
    to_email: str,
    subject: str,
    html: str,
    text: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: int = 10,
) -> bool:
    """
    Minimal SendGrid v3 send. Returns True on 2xx.
    If SENDGRID_API_KEY is missing, returns False and logs a warning.
    """
    api_key = os.environ.get("SENDGRID_API_KEY")
    if not api_key:
        logger.warning("SENDGRID_API_KEY not set; skipping email", subject=subject)
        return False

    if not text:
        # simple text fallback from html
        text = (html or "").replace("<br>", "\n").replace("<br/>", "\n")
        text = text.replace("<br />", "\n").replace("</p>", "\n")
        text = "".join(ch for ch in text if ch not in "<>")

    payload: Dict[str, Any] = {
        "personalizations": [{"to": [{"email": to_email}]}],
        "from": {
            "email": os.environ.get("FROM_EMAIL", "pagamentos@weddingpay.com.br"),
            "name": os.environ.get("FROM_NAME", "WeddingPay"),
        },
        "subject": subject,
        "content": [
            {"type": "text/plain", "value": text},
            {"type": "text/html",  "value": html},
        ],
    }

    if os.environ.get("SENDGRID_SANDBOX", "").lower() in {"1", "true", "yes", "on"}:
        payload["mail_settings"] = {"sandbox_mode": {"enable": True}}

    req_headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    if headers:
        req_headers.update(headers)

    try:
        resp = requests.post(SENDGRID_URL, headers=req_headers, data=json.dumps(payload), timeout=timeout)
    except requests.RequestException as e:
        logger.error("SendGrid request failed", error=str(e))
        return False

    ok = 200 <= resp.status_code < 300
    if not ok:
        logger.error("SendGrid error", http_status=resp.status_code, body=resp.text[:500])
    return ok
