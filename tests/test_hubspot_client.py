"""Tests for the HubSpot client against a mocked transport."""

import json

import httpx
import pytest

from screenops.integrations.hubspot import HubSpotClient, HubSpotError


def _client(handler):
    return HubSpotClient(api_key="test-key", base_url="https://hubspot.test", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_contact_search_by_email():
    """The contact search posts an EQ filter and returns the first id."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"results": [{"id": 101}]})

    contact_id = await _client(handler).find_contact_id_by_email("ada@example.com")
    assert contact_id == "101"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["filterGroups"][0]["filters"][0]["value"] == "ada@example.com"


@pytest.mark.asyncio
async def test_contact_search_no_match():
    """An empty result list means no contact."""
    client = _client(lambda request: httpx.Response(200, json={"results": []}))
    assert await client.find_contact_id_by_email("nobody@example.com") is None


@pytest.mark.asyncio
async def test_single_associated_deal_returned_directly():
    """One associated deal skips the batch read."""
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"results": [{"id": "d1"}]})

    assert await _client(handler).find_latest_deal_id_for_contact("c1") == "d1"
    assert paths == ["/crm/v3/objects/contacts/c1/associations/deals"]


@pytest.mark.asyncio
async def test_latest_modified_deal_wins():
    """With several deals the most recently modified one is chosen."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/associations/deals"):
            return httpx.Response(200, json={"results": [{"id": "d1"}, {"id": "d2"}, {"id": "d3"}]})
        assert request.url.path == "/crm/v3/objects/deals/batch/read"
        return httpx.Response(
            200,
            json={
                "results": [
                    {"id": "d1", "properties": {"hs_lastmodifieddate": "2025-01-01T00:00:00Z"}},
                    {"id": "d2", "properties": {"hs_lastmodifieddate": "2025-06-01T00:00:00Z"}},
                    {"id": "d3", "properties": {"createdate": "2025-03-01T00:00:00Z"}},
                ]
            },
        )

    assert await _client(handler).find_latest_deal_id_for_contact("c1") == "d2"


@pytest.mark.asyncio
async def test_no_associated_deals():
    """A contact without deals resolves to None."""
    client = _client(lambda request: httpx.Response(200, json={"results": []}))
    assert await client.find_latest_deal_id_for_contact("c1") is None


@pytest.mark.asyncio
async def test_error_status_raises_with_scope_flag():
    """Non-2xx responses raise HubSpotError; only 403 is a scope error."""
    forbidden = _client(lambda request: httpx.Response(403, text="missing scopes"))
    with pytest.raises(HubSpotError) as exc_info:
        await forbidden.update_deal_properties("d1", {"application_status": "New"})
    assert exc_info.value.status == 403
    assert exc_info.value.is_scope_error

    broken = _client(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(HubSpotError) as exc_info:
        await broken.find_contact_id_by_email("ada@example.com")
    assert not exc_info.value.is_scope_error


@pytest.mark.asyncio
async def test_stage_update_patches_pipeline_and_stage():
    """Stage updates PATCH the deal's pipeline and dealstage."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(204)

    result = await _client(handler).update_deal_stage("d9", "default", "qualifiedtobuy")
    assert result == {}
    assert seen["method"] == "PATCH"
    assert seen["body"] == {"properties": {"pipeline": "default", "dealstage": "qualifiedtobuy"}}


@pytest.mark.asyncio
async def test_screener_option_matches_label_or_value():
    """Screener options match on label or value, ignoring case."""
    options = {"options": [{"label": "Sam Screener", "value": "sam_s"}, {"label": "Lee Lead", "value": "lee"}]}
    client = _client(lambda request: httpx.Response(200, json=options))
    assert await client.find_screener_option("sam screener") == "sam_s"
    assert await client.find_screener_option("LEE") == "lee"
    assert await client.find_screener_option("Someone Else") is None
    assert await client.find_screener_option("  ") is None


def test_disabled_without_key():
    """No API key, no client."""
    assert not HubSpotClient(api_key="").is_enabled
