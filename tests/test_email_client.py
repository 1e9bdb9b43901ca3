import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from agenda.clients.email import EmailServiceClient, render_confirmation, render_tenant_notice
from agenda.services.exceptions import DownstreamServiceError
from agenda.services.notifications import BookingEvent, EventKind


def _event(**overrides) -> BookingEvent:
    payload = dict(
        kind=EventKind.NEW_BOOKING,
        tenant_id="TEN-00001",
        booking_id="BKG-00007",
        client_name="Lucia",
        client_email="lucia@example.com",
        service_name="Haircut",
        start=datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc),
        end=datetime(2030, 1, 7, 9, 30, tzinfo=timezone.utc),
        professional_name="Bruno Diaz",
        tenant_name="Demo Studio",
        total_price=25.0,
    )
    payload.update(overrides)
    return BookingEvent(**payload)


def _client_with(handler) -> EmailServiceClient:
    client = EmailServiceClient("https://mail.example.com/v1", sender="bot@example.com", api_key="k")
    client._client = httpx.AsyncClient(
        base_url="https://mail.example.com/v1",
        transport=httpx.MockTransport(handler),
        headers=client._headers,
    )
    return client


def test_render_confirmation_mentions_the_booking() -> None:
    content = render_confirmation(_event())

    assert content["subject"] == "Booking #BKG-00007 received - Haircut"
    assert "2030-01-07 09:00-09:30 UTC" in content["text"]
    assert "Professional: Bruno Diaz" in content["text"]
    assert "Demo Studio" in content["html"]


def test_html_bodies_escape_client_supplied_text() -> None:
    event = _event(
        client_name="<img src=x onerror=alert(1)>",
        service_name="Cut & <b>Style</b>",
        notes="<script>x</script>",
    )

    for content in (render_confirmation(event), render_tenant_notice(event)):
        assert "<img" not in content["html"]
        assert "<b>" not in content["html"]
        assert "&lt;img src=x onerror=alert(1)&gt;" in content["html"]
        assert "Cut &amp; &lt;b&gt;Style&lt;/b&gt;" in content["html"]
    assert "<script>" not in render_tenant_notice(event)["html"]
    assert "Hi <img src=x onerror=alert(1)>," in render_confirmation(event)["text"]


def test_tenant_notice_goes_to_the_business_address() -> None:
    client = EmailServiceClient(None, sender="bot@example.com")

    notice = _event(tenant_email="owner@demo.example", client_phone="+56 9 1234")

    asyncio.run(client.send_tenant_booking_notice(notice))
    asyncio.run(client.send_tenant_booking_notice(_event()))

    assert len(client.sent) == 1
    assert client.sent[0]["to"] == ["owner@demo.example"]
    assert client.sent[0]["subject"] == "New booking #BKG-00007 - Haircut"
    assert "- Phone: +56 9 1234" in client.sent[0]["text"]


def test_dry_run_records_messages() -> None:
    client = EmailServiceClient(None, sender="bot@example.com")

    asyncio.run(client.send_booking_confirmation(_event()))

    assert client.dry_run is True
    assert client.sent[0]["to"] == ["lucia@example.com"]


def test_confirmation_is_posted_with_credentials() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202, json={"id": "msg-1"})

    client = _client_with(handler)

    asyncio.run(client.send_booking_confirmation(_event()))
    asyncio.run(client.close())

    assert seen[0].url.path == "/v1/emails"
    assert seen[0].headers["Authorization"] == "Bearer k"
    assert len(client.sent) == 1


def test_error_responses_become_downstream_errors() -> None:
    client = _client_with(lambda request: httpx.Response(500, json={"error": "boom"}))

    with pytest.raises(DownstreamServiceError) as excinfo:
        asyncio.run(client.send(["a@example.com"], "s", "t", "<p>t</p>"))

    assert excinfo.value.status_code == 500
    assert client.sent == []


def test_missing_client_email_is_skipped() -> None:
    client = EmailServiceClient(None, sender="bot@example.com")

    asyncio.run(client.send_booking_confirmation(_event(client_email="")))

    assert client.sent == []
