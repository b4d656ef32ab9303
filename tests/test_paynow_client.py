from decimal import Decimal
from urllib.parse import parse_qsl, urlencode

import httpx
import pytest

from app.core.exceptions import UpstreamError
from app.integrations.paynow import PaynowGateway, compute_hash

KEY = "3e9fed89-60e1-4ce5-ab6e-6b1eb2d4f977"


def _gateway(handler) -> PaynowGateway:
    return PaynowGateway(
        integration_id="1201",
        integration_key=KEY,
        return_url="https://school.example.com/return",
        result_url="https://school.example.com/webhook",
        initiate_url="https://paynow.example.com/interface/initiatetransaction",
        transport=httpx.MockTransport(handler),
    )


def _reply(fields: dict, key: str = KEY) -> httpx.Response:
    fields = dict(fields)
    fields["hash"] = compute_hash(fields, key)
    return httpx.Response(200, text=urlencode(fields))


def test_compute_hash_is_uppercase_sha512_with_lowercased_key() -> None:
    digest = compute_hash({"id": "1201", "reference": "R1", "hash": "ignored"}, "ABC")
    assert digest == compute_hash({"id": "1201", "reference": "R1"}, "abc")
    assert len(digest) == 128
    assert digest == digest.upper()


@pytest.mark.asyncio
async def test_create_payment_session_posts_signed_form() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(parse_qsl(request.content.decode()))
        return _reply(
            {
                "status": "Ok",
                "browserurl": "https://paynow.example.com/pay?guid=abc",
                "pollurl": "https://paynow.example.com/poll?guid=abc",
            }
        )

    session = await _gateway(handler).create_payment_session("REF-1", "Term 1 fees", Decimal("12.5"), "a@example.com")

    assert session.redirect_url == "https://paynow.example.com/pay?guid=abc"
    assert session.poll_url == "https://paynow.example.com/poll?guid=abc"
    assert seen["id"] == "1201"
    assert seen["amount"] == "12.50"
    assert seen["status"] == "Message"
    assert seen["resulturl"] == "https://school.example.com/webhook"
    assert seen["hash"] == compute_hash(seen, KEY)


@pytest.mark.asyncio
async def test_error_reply_raises_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=urlencode({"status": "Error", "error": "Invalid amount field"}))

    with pytest.raises(UpstreamError) as excinfo:
        await _gateway(handler).create_payment_session("REF-2", "fees", Decimal("1"), "a@example.com")
    assert excinfo.value.message == "Invalid amount field"
    assert excinfo.value.status_code == 502


@pytest.mark.asyncio
async def test_reply_with_wrong_hash_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _reply({"status": "Ok", "browserurl": "x", "pollurl": "y"}, key="someone-else")

    with pytest.raises(UpstreamError):
        await _gateway(handler).create_payment_session("REF-3", "fees", Decimal("1"), "a@example.com")


@pytest.mark.asyncio
async def test_http_failure_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError) as excinfo:
        await _gateway(handler).poll_status("https://paynow.example.com/poll?guid=abc")
    assert "connection refused" in excinfo.value.message


@pytest.mark.asyncio
async def test_poll_status_parses_paid_reply() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _reply(
            {
                "reference": "REF-4",
                "paynowreference": "778899",
                "amount": "40.00",
                "status": "Paid",
                "method": "ecocash",
            }
        )

    status = await _gateway(handler).poll_status("https://paynow.example.com/poll?guid=def")
    assert status.paid is True
    assert status.gateway_reference == "778899"
    assert status.amount == Decimal("40.00")
    assert status.method == "ecocash"


def test_verify_hash_requires_hash_field() -> None:
    gateway = _gateway(lambda request: httpx.Response(200))
    fields = {"reference": "REF-5", "status": "Paid"}
    assert gateway.verify_hash(fields) is False
    fields["hash"] = compute_hash(fields, KEY)
    assert gateway.verify_hash(fields) is True
