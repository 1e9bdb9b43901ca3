from __future__ import annotations

import asyncio
import html
import logging
from typing import Any, Dict, List, Optional

import httpx

from agenda.services.exceptions import DownstreamServiceError
from agenda.services.notifications import BookingEvent

logger = logging.getLogger(__name__)


def _html_body(lines: List[str]) -> str:
    return "".join(f"<p>{html.escape(line)}</p>" if line else "<br>" for line in lines)


def render_confirmation(event: BookingEvent) -> Dict[str, str]:
    """Build subject, text and html bodies for a booking confirmation."""

    business = event.tenant_name or "your provider"
    when = f"{event.start:%Y-%m-%d} {event.start:%H:%M}-{event.end:%H:%M} UTC"
    lines = [
        f"Hi {event.client_name},",
        "",
        f"Your booking #{event.booking_id} with {business} has been received.",
        f"Service: {event.service_name}",
        f"When: {when}",
    ]
    if event.professional_name:
        lines.append(f"Professional: {event.professional_name}")
    if event.total_price is not None:
        lines.append(f"Price: {event.total_price:.2f}")
    lines += ["", "It is pending confirmation; we will let you know once it is confirmed."]
    return {
        "subject": f"Booking #{event.booking_id} received - {event.service_name}",
        "text": "\n".join(lines),
        "html": _html_body(lines),
    }


def render_tenant_notice(event: BookingEvent) -> Dict[str, str]:
    """Build the new-booking notice sent to the business."""

    when = f"{event.start:%Y-%m-%d} {event.start:%H:%M}-{event.end:%H:%M} UTC"
    lines = [
        "New booking received",
        "",
        "Client:",
        f"- Name: {event.client_name}",
        f"- Email: {event.client_email}",
        f"- Phone: {event.client_phone or '-'}",
        "",
        "Booking:",
        f"- ID: #{event.booking_id}",
        f"- Service: {event.service_name}",
        f"- Professional: {event.professional_name or 'unassigned'}",
        f"- When: {when}",
    ]
    if event.total_price is not None:
        lines.append(f"- Price: {event.total_price:.2f}")
    if event.notes:
        lines.append(f"- Notes: {event.notes}")
    return {
        "subject": f"New booking #{event.booking_id} - {event.service_name}",
        "text": "\n".join(lines),
        "html": _html_body(lines),
    }


class EmailServiceClient:
    """Async HTTP client for the transactional email API."""

    def __init__(
        self,
        base_url: str | None,
        *,
        sender: str,
        api_key: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = str(base_url).rstrip("/") if base_url else None
        self._sender = sender
        self._timeout = timeout
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
        self.dry_run = not self._base_url
        self.sent: List[Dict[str, Any]] = []
        self._client: Optional[httpx.AsyncClient] = None

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def send(self, to: List[str], subject: str, text: str, html: str) -> Dict[str, Any]:
        payload = {
            "from": self._sender,
            "to": to,
            "subject": subject,
            "text": text,
            "html": html,
        }
        if self.dry_run:
            await asyncio.sleep(0)
            self.sent.append(payload)
            logger.info("Email API not configured; recorded email to %s: %s", to, subject)
            return {"id": None, "dry_run": True}

        client = await self._ensure_client()
        try:
            response = await client.post("/emails", json=payload)
            response.raise_for_status()
            self.sent.append(payload)
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Email API returned error %s", exc.response.status_code)
            raise DownstreamServiceError(
                "Email API returned an error response",
                status_code=exc.response.status_code,
                cause=exc,
            ) from exc
        except httpx.RequestError as exc:
            logger.error("Unable to reach email API: %s", exc)
            raise DownstreamServiceError(
                "Unable to reach email API", status_code=None, cause=exc
            ) from exc

    async def send_booking_confirmation(self, event: BookingEvent) -> None:
        if not event.client_email:
            logger.warning("Booking %s has no client email; skipping confirmation", event.booking_id)
            return
        content = render_confirmation(event)
        await self.send([event.client_email], content["subject"], content["text"], content["html"])
        logger.info("Confirmation email for booking %s sent to %s", event.booking_id, event.client_email)

    async def send_tenant_booking_notice(self, event: BookingEvent) -> None:
        if not event.tenant_email:
            return
        content = render_tenant_notice(event)
        await self.send([event.tenant_email], content["subject"], content["text"], content["html"])
        logger.info("Tenant notice for booking %s sent to %s", event.booking_id, event.tenant_email)
