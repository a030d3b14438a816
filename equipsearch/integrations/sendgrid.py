"""SendGrid email integration client.

Uses the real SendGrid API when a valid key is configured, otherwise
falls back to logging-only mock mode. Callers submit a structured form
payload and get back an ack or an error; nothing here raises.
"""

from __future__ import annotations

import html
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import BaseModel, EmailStr, Field

from equipsearch.common.enums import EmailFormType
from equipsearch.config import settings
from equipsearch.integrations.base import BaseIntegration

SUBJECTS: dict[EmailFormType, str] = {
    EmailFormType.BOOKING: "New rental booking request",
    EmailFormType.BUY_NOW: "New buy-it-now request",
    EmailFormType.CONTACT: "New contact form message",
    EmailFormType.QUOTE: "New quote request",
}


def _is_mock() -> bool:
    return settings.SENDGRID_API_KEY.startswith("mock_")


class EmailPayload(BaseModel):
    form_type: EmailFormType
    customer_name: str
    customer_email: EmailStr
    customer_phone: str | None = None
    machine_id: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


def render_html(payload: EmailPayload) -> str:
    rows = {
        "Name": payload.customer_name,
        "Email": payload.customer_email,
        "Phone": payload.customer_phone,
        "Machine": payload.machine_id,
        **payload.fields,
    }
    body = "".join(
        f"<tr><th align='left'>{html.escape(str(k))}</th><td>{html.escape(str(v))}</td></tr>"
        for k, v in rows.items()
        if v not in (None, "")
    )
    return f"<h2>{html.escape(SUBJECTS[payload.form_type])}</h2><table>{body}</table>"


class EmailClient(BaseIntegration):
    """Email client with real SendGrid API and mock fallback."""

    SENDGRID_URL = "https://api.sendgrid.com/v3"

    def __init__(self) -> None:
        super().__init__("sendgrid")

    async def health_check(self) -> bool:
        if _is_mock():
            self.logger.info("SendGrid health check: OK (mock)")
            return True
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                resp = await client.get(
                    f"{self.SENDGRID_URL}/scopes",
                    headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
                )
                return resp.status_code == 200
        except httpx.HTTPError as e:
            self.logger.error("SendGrid health check failed: %s", e)
            return False

    async def submit(self, payload: EmailPayload) -> dict[str, Any]:
        subject = SUBJECTS[payload.form_type]
        message_id = str(uuid.uuid4())
        to = settings.CONTACT_EMAIL
        sent_at = datetime.now(timezone.utc).isoformat()

        if _is_mock():
            self.logger.info("Mock email | to=%s | form=%s | from=%s", to, payload.form_type.value, payload.customer_email)
            return {"status": "sent", "message_id": message_id, "timestamp": sent_at}

        request = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": settings.FROM_EMAIL},
            "reply_to": {"email": payload.customer_email, "name": payload.customer_name},
            "subject": subject,
            "content": [{"type": "text/html", "value": render_html(payload)}],
        }
        try:
            async with httpx.AsyncClient(timeout=30) as client:
                resp = await client.post(
                    f"{self.SENDGRID_URL}/mail/send",
                    headers={
                        "Authorization": f"Bearer {settings.SENDGRID_API_KEY}",
                        "Content-Type": "application/json",
                    },
                    json=request,
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error("SendGrid email failed: %s", e)
            return {"status": "failed", "error": str(e)}

        sg_id = resp.headers.get("X-Message-Id", message_id)
        self.logger.info("Email sent via SendGrid: %s form=%s", sg_id, payload.form_type.value)
        return {"status": "sent", "message_id": sg_id, "timestamp": sent_at}
