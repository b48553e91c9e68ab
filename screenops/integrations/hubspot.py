"""HubSpot CRM client - contacts, deals and deal property options."""

import logging
from typing import Any

import httpx

from screenops.config import settings

logger = logging.getLogger(__name__)

# Deal properties written by the console
PROP_APPLICATION_STATUS = "application_status"
PROP_APPLICATION_SCORE = "application_score"
PROP_SCREENER_NOTES = "screener_notes"
PROP_SCREENERS_NAME = "screeners_name"


class HubSpotError(Exception):
    """Non-2xx response from the HubSpot API."""

    def __init__(self, status: int, body: str, path: str = ""):
        self.status = status
        self.body = body
        self.path = path
        super().__init__(f"HubSpot API error {status} on {path}: {body[:200]}")

    @property
    def is_scope_error(self) -> bool:
        return self.status == 403


class HubSpotClient:
    """Thin async wrapper over the HubSpot CRM v3 endpoints the console needs."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = settings.hubspot_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.hubspot_base_url).rstrip("/")
        self.timeout = timeout or settings.hubspot_request_timeout
        self._transport = transport

    @property
    def is_enabled(self) -> bool:
        return bool(self.api_key)

    async def _request(self, method: str, path: str, json: dict | None = None) -> dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        ) as client:
            resp = await client.request(method, path, json=json)
        if resp.is_error:
            raise HubSpotError(resp.status_code, resp.text, path)
        if not resp.content:
            return {}
        return resp.json()

    async def find_contact_id_by_email(self, email: str) -> str | None:
        """Search contacts by exact email; None when there is no match."""
        data = await self._request(
            "POST",
            "/crm/v3/objects/contacts/search",
            json={
                "filterGroups": [
                    {"filters": [{"propertyName": "email", "operator": "EQ", "value": email}]}
                ],
                "properties": ["email"],
                "limit": 1,
            },
        )
        results = data.get("results") or []
        return str(results[0]["id"]) if results else None

    async def find_latest_deal_id_for_contact(self, contact_id: str) -> str | None:
        """Most recently modified deal associated with a contact."""
        data = await self._request("GET", f"/crm/v3/objects/contacts/{contact_id}/associations/deals")
        deal_ids = [str(r["id"]) for r in data.get("results") or [] if r.get("id")]
        if not deal_ids:
            return None
        if len(deal_ids) == 1:
            return deal_ids[0]

        batch = await self._request(
            "POST",
            "/crm/v3/objects/deals/batch/read",
            json={
                "properties": ["hs_lastmodifieddate", "lastmodifieddate", "createdate"],
                "inputs": [{"id": deal_id} for deal_id in deal_ids],
            },
        )

        def modified(deal: dict) -> str:
            props = deal.get("properties") or {}
            return (
                props.get("hs_lastmodifieddate")
                or props.get("lastmodifieddate")
                or props.get("createdate")
                or deal.get("updatedAt")
                or ""
            )

        deals = sorted(batch.get("results") or [], key=modified, reverse=True)
        return str(deals[0]["id"]) if deals else deal_ids[0]

    async def update_deal_properties(self, deal_id: str, properties: dict[str, Any]) -> dict:
        logger.info("Updating HubSpot deal %s properties %s", deal_id, sorted(properties))
        return await self._request(
            "PATCH", f"/crm/v3/objects/deals/{deal_id}", json={"properties": properties}
        )

    async def update_deal_stage(self, deal_id: str, pipeline: str, stage: str) -> dict:
        logger.info("Moving HubSpot deal %s to %s/%s", deal_id, pipeline, stage)
        return await self._request(
            "PATCH",
            f"/crm/v3/objects/deals/{deal_id}",
            json={"properties": {"pipeline": pipeline, "dealstage": stage}},
        )

    async def get_deal_property_options(self, property_name: str) -> list[dict]:
        """Dropdown options ({label, value}) of a deal property."""
        data = await self._request("GET", f"/crm/v3/properties/deals/{property_name}")
        return list(data.get("options") or [])

    async def find_screener_option(self, screener_name: str) -> str | None:
        """Value of the screeners_name option whose label or value matches, ignoring case."""
        wanted = screener_name.strip().lower()
        if not wanted:
            return None
        for option in await self.get_deal_property_options(PROP_SCREENERS_NAME):
            label = str(option.get("label") or "").strip().lower()
            value = str(option.get("value") or "").strip().lower()
            if wanted in (label, value):
                return option.get("value")
        return None
