"""Typeform API client and webhook signature check."""

import base64
import hashlib
import hmac
import logging

import httpx

from screenops.config import settings

logger = logging.getLogger(__name__)


class TypeformError(Exception):
    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Typeform API error {status}: {body[:200]}")


class TypeformClient:
    """Reads form definitions from the Typeform Create API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = settings.typeform_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.typeform_base_url).rstrip("/")
        self._transport = transport

    async def get_form(self, form_id: str) -> dict:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=15.0,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.api_key}"},
        ) as client:
            resp = await client.get(f"/forms/{form_id}")
        if resp.is_error:
            raise TypeformError(resp.status_code, resp.text)
        return resp.json()


def verify_signature(body: bytes, signature_header: str | None, secret: str) -> bool:
    """Check `Typeform-Signature: sha256=<base64 HMAC-SHA256(body)>`."""
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    expected = "sha256=" + base64.b64encode(digest).decode()
    return hmac.compare_digest(expected.encode(), signature_header.encode())
