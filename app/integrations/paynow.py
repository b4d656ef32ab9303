"""
Paynow payment gateway client.

Paynow speaks signed form posts: every message carries a `hash` field, the uppercase
SHA-512 hex of all other values concatenated in order followed by the integration key.
Replies are URL-encoded key/value pairs signed the same way.

One PaynowGateway is built in create_app() and handed to request handlers through
get_payment_gateway; nothing here holds per-request state.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Mapping, Optional
from urllib.parse import parse_qsl

import httpx
from fastapi import Request

from app.core.config import Settings
from app.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class PaymentSession:
    reference: str
    redirect_url: Optional[str]
    poll_url: Optional[str]
    instructions: Optional[str] = None


@dataclass
class PaymentStatus:
    paid: bool
    status: str
    gateway_reference: Optional[str] = None
    amount: Optional[Decimal] = None
    method: Optional[str] = None
    reference: Optional[str] = None


def compute_hash(values: Mapping[str, object], integration_key: str) -> str:
    payload = "".join(str(v) for k, v in values.items() if str(k).lower() != "hash")
    payload += integration_key.lower()
    return hashlib.sha512(payload.encode("utf-8")).hexdigest().upper()


def _parse_amount(raw: Optional[str]) -> Optional[Decimal]:
    if raw in (None, ""):
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        return None


class PaynowGateway:
    def __init__(
        self,
        integration_id: str,
        integration_key: str,
        return_url: str,
        result_url: str,
        initiate_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.integration_id = integration_id
        self.integration_key = integration_key
        self.return_url = return_url
        self.result_url = result_url
        self.initiate_url = initiate_url
        self.timeout = timeout
        # Tests swap in httpx.MockTransport
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaynowGateway":
        return cls(
            integration_id=settings.paynow_integration_id,
            integration_key=settings.paynow_integration_key,
            return_url=settings.paynow_return_url,
            result_url=settings.paynow_result_url,
            initiate_url=settings.paynow_initiate_url,
            timeout=settings.paynow_timeout_seconds,
        )

    def verify_hash(self, fields: Mapping[str, object]) -> bool:
        received = fields.get("hash")
        if not received:
            return False
        return hmac.compare_digest(str(received).upper(), compute_hash(fields, self.integration_key))

    async def _post(self, url: str, data: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, data=data or {})
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.exception(f"Paynow request to {url} failed")
            raise UpstreamError(f"Payment gateway request failed: {e}") from e
        return dict(parse_qsl(response.text, keep_blank_values=True))

    async def create_payment_session(
        self,
        reference: str,
        description: str,
        amount: Decimal,
        payer_email: str,
    ) -> PaymentSession:
        fields = {
            "id": self.integration_id,
            "reference": reference,
            "amount": f"{Decimal(amount):.2f}",
            "additionalinfo": description,
            "returnurl": self.return_url,
            "resulturl": self.result_url,
            "authemail": payer_email,
            "status": "Message",
        }
        fields["hash"] = compute_hash(fields, self.integration_key)

        reply = await self._post(self.initiate_url, data=fields)
        status = reply.get("status", "").lower()
        if status == "error":
            raise UpstreamError(reply.get("error") or "Payment gateway returned an error")
        if status != "ok":
            raise UpstreamError(f"Unexpected payment gateway status: {reply.get('status')}")
        if not self.verify_hash(reply):
            raise UpstreamError("Payment gateway reply failed hash verification")

        logger.info(f"Paynow session created for {reference}")
        return PaymentSession(
            reference=reference,
            redirect_url=reply.get("browserurl"),
            poll_url=reply.get("pollurl"),
            instructions=reply.get("instructions"),
        )

    async def poll_status(self, poll_url: str) -> PaymentStatus:
        reply = await self._post(poll_url)
        status = reply.get("status", "")
        if status.lower() == "error":
            raise UpstreamError(reply.get("error") or "Payment gateway returned an error")
        if not self.verify_hash(reply):
            raise UpstreamError("Payment gateway status reply failed hash verification")
        return PaymentStatus(
            paid=status.lower() == "paid",
            status=status,
            gateway_reference=reply.get("paynowreference") or None,
            amount=_parse_amount(reply.get("amount")),
            method=reply.get("method") or None,
            reference=reply.get("reference") or None,
        )


def get_payment_gateway(request: Request) -> PaynowGateway:
    return request.app.state.payment_gateway
