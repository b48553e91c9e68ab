"""Tests for snapshotting form definitions into field and choice versions."""

import base64
import hashlib
import hmac

import httpx
import pytest
from sqlalchemy import select

from screenops.api.forms import get_typeform_client
from screenops.integrations.typeform import TypeformClient, verify_signature
from screenops.main import app
from screenops.models import ChoiceVersion, FieldVersion, Form, ScoringRule
from screenops.services.forms import build_choices, flatten_fields, normalized_field_type, sync_form


def _definition(meds_title="Taking medication?"):
    return {
        "id": "frm_1",
        "title": "Intake",
        "fields": [
            {"id": "meds", "ref": "meds", "title": meds_title, "type": "yes_no"},
            {
                "id": "grp",
                "title": "About you",
                "type": "group",
                "properties": {
                    "fields": [
                        {
                            "id": "support",
                            "title": "Support system",
                            "type": "multiple_choice",
                            "properties": {
                                "allow_multiple_selection": True,
                                "choices": [{"id": "c1", "label": "Therapist"}, {"id": "c2", "label": "Family"}],
                            },
                        }
                    ]
                },
            },
        ],
    }


def _client(definitions):
    """Serves the queued definitions one per request."""
    queue = list(definitions)

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/forms/frm_1"
        return httpx.Response(200, json=queue.pop(0))

    return TypeformClient(api_key="tf", base_url="https://typeform.test", transport=httpx.MockTransport(handler))


def test_flatten_walks_groups():
    """Nested group fields follow their parent with its id recorded."""
    flat = [(field["id"], parent, order) for field, parent, order in flatten_fields(_definition()["fields"])]
    assert flat == [("meds", None, 0), ("grp", None, 1), ("support", "grp", 0)]


def test_multi_selection_becomes_multiple_select():
    """multiple_choice with allow_multiple_selection is stored as multiple_select."""
    support = _definition()["fields"][1]["properties"]["fields"][0]
    assert normalized_field_type(support) == "multiple_select"
    assert normalized_field_type({"type": "multiple_choice"}) == "multiple_choice"


def test_opinion_scale_synthetic_choices():
    """Opinion scales get one choice per step, keyed {field_id}-{n}."""
    field = {"id": "mood", "type": "opinion_scale", "properties": {"steps": 3, "start_at_one": True}}
    assert [c["choice_id"] for c in build_choices(field)] == ["mood-1", "mood-2", "mood-3"]
    zero_based = {"id": "mood", "type": "opinion_scale", "properties": {"steps": 2}}
    assert [c["choice_label"] for c in build_choices(zero_based)] == ["0", "1"]


def test_signature_check():
    """Signatures are base64 HMAC-SHA256 with a sha256= prefix."""
    body = b'{"event_type":"form_response"}'
    good = "sha256=" + base64.b64encode(hmac.new(b"s3cret", body, hashlib.sha256).digest()).decode()
    assert verify_signature(body, good, "s3cret")
    assert not verify_signature(body, good, "other")
    assert not verify_signature(body, None, "s3cret")


@pytest.mark.asyncio
async def test_sync_versions_changed_fields_only(db):
    """A retitled field gets a new version, keeps its rules; untouched fields keep theirs."""
    client = _client([_definition(), _definition(meds_title="Any current medication?")])
    first = await sync_form(db, "frm_1", client)
    await db.commit()
    assert first.form_created
    assert first.fields_created == 3

    meds_v1 = (
        await db.execute(select(FieldVersion).where(FieldVersion.field_id == "meds"))
    ).scalar_one()
    db.add(ScoringRule(target_type="field", target_id=meds_v1.id, score_value="red", criteria={"answer": "yes"}))
    await db.commit()

    second = await sync_form(db, "frm_1", client)
    await db.commit()
    assert (second.fields_created, second.fields_unchanged) == (1, 2)

    versions = (
        await db.execute(select(FieldVersion).where(FieldVersion.field_id == "meds"))
    ).scalars().all()
    active = [v for v in versions if v.is_active]
    assert len(versions) == 2 and len(active) == 1
    assert active[0].field_title == "Any current medication?"

    rules = (
        await db.execute(select(ScoringRule).where(ScoringRule.target_id == active[0].id))
    ).scalars().all()
    assert [r.score_value for r in rules] == ["red"]

    support = (
        await db.execute(select(FieldVersion).where(FieldVersion.field_id == "support"))
    ).scalar_one()
    assert support.field_type == "multiple_select"
    labels = (
        await db.execute(select(ChoiceVersion.choice_label).where(ChoiceVersion.field_version_id == support.id))
    ).scalars().all()
    assert sorted(labels) == ["Family", "Therapist"]


def _typeform_404(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, json={"code": "FORM_NOT_FOUND"})


@pytest.mark.asyncio
async def test_form_lookup_reports_local_and_live_state(client, db, admin_headers):
    """The lookup says whether a form is registered and can include its live definition."""
    app.dependency_overrides[get_typeform_client] = lambda: _client([_definition()])
    response = await client.get("/v1/forms/frm_1", params={"definition": True}, headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert (body["exists"], body["form"]) == (False, None)
    assert body["definition"]["title"] == "Intake"

    db.add(Form(form_id="frm_1", form_title="Intake"))
    await db.commit()
    response = await client.get("/v1/forms/frm_1", headers=admin_headers)
    assert response.json()["exists"] is True
    assert response.json()["form"]["form_title"] == "Intake"
    assert "definition" not in response.json()

    app.dependency_overrides[get_typeform_client] = lambda: TypeformClient(
        api_key="tf", base_url="https://typeform.test", transport=httpx.MockTransport(_typeform_404)
    )
    response = await client.get("/v1/forms/frm_gone", params={"definition": True}, headers=admin_headers)
    assert response.status_code == 404
