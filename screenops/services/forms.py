"""Form sync - snapshot Typeform definitions into field and choice versions."""

import logging
from typing import Any

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.integrations.typeform import TypeformClient
from screenops.models import ChoiceVersion, FieldVersion, Form, ScoringRule
from screenops.storage.repositories import (
    get_active_field_versions,
    get_active_rules_for_targets,
    get_choices_for_field_versions,
    get_form_by_typeform_id,
)
from screenops.utils.canonical import same_document
from screenops.utils.clock import utcnow

logger = logging.getLogger(__name__)

# Properties whose change makes a new field version
SIGNIFICANT_PROPERTIES = (
    "choices",
    "steps",
    "start_at_one",
    "allow_multiple_selection",
    "allow_other_choice",
    "randomize",
)
CHOICE_FIELD_TYPES = {"multiple_choice", "multiple_select", "dropdown", "picture_choice"}


class FormSyncResult(BaseModel):
    form_id: str
    form_created: bool
    fields_created: int = 0
    fields_unchanged: int = 0
    fields_deactivated: int = 0


def normalized_field_type(field: dict) -> str:
    """Multi-selection multiple_choice questions are stored as multiple_select."""
    props = field.get("properties") or {}
    if field.get("type") == "multiple_choice" and (
        props.get("allow_multiple_selection") or props.get("allow_multiple_selections")
    ):
        return "multiple_select"
    return field.get("type") or "unknown"


def flatten_fields(fields: list[dict], parent_id: str | None = None) -> list[tuple[dict, str | None, int]]:
    """Depth-first (field, parent_field_id, display_order) through question groups."""
    flat = []
    for order, field in enumerate(fields):
        flat.append((field, parent_id, order))
        children = (field.get("properties") or {}).get("fields")
        if isinstance(children, list):
            flat.extend(flatten_fields(children, field.get("id")))
    return flat


def _significant(props: dict | None) -> dict:
    props = props or {}
    out: dict[str, Any] = {}
    for name in SIGNIFICANT_PROPERTIES:
        value = props.get(name)
        if value is None:
            continue
        if name == "choices" and isinstance(value, list):
            value = sorted(str(c.get("id")) for c in value if isinstance(c, dict))
        out[name] = value
    return out


def _stored_properties(field: dict) -> dict:
    return {k: v for k, v in (field.get("properties") or {}).items() if k != "fields"}


def field_changed(existing: FieldVersion, field: dict, parent_version_id: str | None) -> bool:
    return (
        existing.field_title != (field.get("title") or "")
        or existing.field_type != normalized_field_type(field)
        or existing.field_ref != field.get("ref")
        or existing.parent_field_version_id != parent_version_id
        or not same_document(_significant(existing.properties), _significant(field.get("properties")))
    )


def build_choices(field: dict) -> list[dict]:
    """Choice snapshots for a field; opinion scales get one synthetic choice per step."""
    props = field.get("properties") or {}
    if field.get("type") == "opinion_scale":
        steps = props.get("steps")
        if not isinstance(steps, int) or steps <= 0:
            logger.warning("Opinion scale %s has no usable steps", field.get("id"))
            return []
        start = 1 if props.get("start_at_one") else 0
        return [
            {"choice_id": f"{field['id']}-{n}", "choice_label": str(n), "choice_ref": str(n), "display_order": n - start}
            for n in range(start, start + steps)
        ]
    if normalized_field_type(field) in CHOICE_FIELD_TYPES:
        return [
            {
                "choice_id": str(c.get("id")),
                "choice_label": c.get("label") or "",
                "choice_ref": c.get("ref"),
                "display_order": i,
            }
            for i, c in enumerate(props.get("choices") or [])
        ]
    return []


async def _carry_rules_forward(
    db: AsyncSession,
    old: FieldVersion,
    new: FieldVersion,
    new_choices: list[ChoiceVersion],
) -> int:
    """Copy active rules from the superseded version onto the new one (choices matched by choice_id)."""
    old_choices = await get_choices_for_field_versions(db, [str(old.id)])
    old_choice_keys = {str(c.id): c.choice_id for c in old_choices}
    new_by_key = {c.choice_id: c for c in new_choices}
    rules = await get_active_rules_for_targets(db, [str(old.id), *old_choice_keys])
    copied = 0
    for rule in rules:
        if rule.target_type == "field":
            target_id = new.id
        else:
            replacement = new_by_key.get(old_choice_keys.get(str(rule.target_id), ""))
            if replacement is None:
                continue
            target_id = replacement.id
        db.add(
            ScoringRule(
                target_type=rule.target_type,
                target_id=target_id,
                score_value=rule.score_value,
                criteria=rule.criteria,
                created_by=rule.created_by,
            )
        )
        copied += 1
    return copied


async def sync_form(db: AsyncSession, form_id: str, client: TypeformClient | None = None) -> FormSyncResult:
    """
    Fetch a form definition and record new field/choice versions for whatever changed.

    Unchanged fields keep their current version; fields gone from the form are
    deactivated. Rules on a superseded version are copied onto its successor.
    """
    client = client or TypeformClient()
    definition = await client.get_form(form_id)

    form = await get_form_by_typeform_id(db, form_id)
    created = form is None
    if form is None:
        form = Form(form_id=form_id, form_title=definition.get("title") or form_id)
        db.add(form)
    form.form_title = definition.get("title") or form.form_title
    form.workspace_id = (definition.get("workspace") or {}).get("href") or form.workspace_id
    form.is_active = True
    await db.flush()

    result = FormSyncResult(form_id=form_id, form_created=created)
    active = {fv.field_id: fv for fv in await get_active_field_versions(db, str(form.id))}
    version_ids: dict[str, str] = {}
    version_date = utcnow()

    for field, parent_field_id, order in flatten_fields(definition.get("fields") or []):
        parent_version_id = version_ids.get(parent_field_id) if parent_field_id else None
        current = active.pop(field["id"], None)
        if current is not None and not field_changed(current, field, parent_version_id):
            current.display_order = order
            version_ids[field["id"]] = str(current.id)
            result.fields_unchanged += 1
            continue

        if current is not None:
            current.is_active = False
        new_version = FieldVersion(
            form_id=form.id,
            field_id=field["id"],
            field_title=field.get("title") or "",
            field_type=normalized_field_type(field),
            field_ref=field.get("ref"),
            parent_field_version_id=parent_version_id,
            properties=_stored_properties(field),
            display_order=order,
            version_date=version_date,
        )
        db.add(new_version)
        await db.flush()
        version_ids[field["id"]] = str(new_version.id)
        choices = [
            ChoiceVersion(field_version_id=new_version.id, version_date=version_date, **choice)
            for choice in build_choices(field)
        ]
        db.add_all(choices)
        await db.flush()
        if current is not None:
            copied = await _carry_rules_forward(db, current, new_version, choices)
            logger.info("Field %s re-versioned; %d rule(s) carried forward", field["id"], copied)
        result.fields_created += 1

    for stale in active.values():
        stale.is_active = False
        result.fields_deactivated += 1

    await db.flush()
    logger.info(
        "Synced form %s: %d new, %d unchanged, %d deactivated",
        form_id,
        result.fields_created,
        result.fields_unchanged,
        result.fields_deactivated,
    )
    return result
