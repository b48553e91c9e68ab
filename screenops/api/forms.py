"""Form endpoints - registered Typeform forms and their versioned fields."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.auth.middleware import CurrentUser, RubricEditor
from screenops.database import get_db
from screenops.integrations.typeform import TypeformClient, TypeformError
from screenops.models import Form
from screenops.schemas.scoring import ScoringRuleOut
from screenops.services.forms import FormSyncResult, sync_form
from screenops.storage.repositories import (
    get_active_field_versions,
    get_active_rules_for_targets,
    get_choices_for_field_versions,
    get_form_by_typeform_id,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_typeform_client() -> TypeformClient:
    return TypeformClient()


def _form_dict(form: Form) -> dict:
    return {
        "id": str(form.id),
        "form_id": form.form_id,
        "form_title": form.form_title,
        "workspace_id": form.workspace_id,
        "is_active": form.is_active,
        "updated_at": form.updated_at,
    }


def _typeform_http_error(form_id: str, exc: TypeformError) -> HTTPException:
    logger.warning("Typeform fetch for %s failed: %s", form_id, exc)
    if exc.status == 404:
        return HTTPException(status_code=404, detail="Form not found on Typeform")
    return HTTPException(status_code=502, detail="Typeform API error")


@router.get("")
async def list_forms(
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    include_inactive: bool = False,
):
    stmt = select(Form).order_by(Form.form_title)
    if not include_inactive:
        stmt = stmt.where(Form.is_active.is_(True))
    result = await db.execute(stmt)
    return {"forms": [_form_dict(f) for f in result.scalars().all()]}


@router.get("/{form_id}")
async def get_form(
    form_id: str,
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    typeform: Annotated[TypeformClient, Depends(get_typeform_client)],
    definition: bool = False,
):
    """Whether the form is registered here; optionally with its live Typeform definition."""
    form = await get_form_by_typeform_id(db, form_id)
    body = {"exists": form is not None, "form": _form_dict(form) if form else None}
    if definition:
        try:
            body["definition"] = await typeform.get_form(form_id)
        except TypeformError as exc:
            raise _typeform_http_error(form_id, exc)
    return body


@router.get("/{form_id}/fields")
async def list_form_fields(
    form_id: str,
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Active field versions with their choices and active scoring rules."""
    form = await get_form_by_typeform_id(db, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")

    fields = await get_active_field_versions(db, str(form.id))
    field_ids = [str(f.id) for f in fields]
    choices = await get_choices_for_field_versions(db, field_ids, active_only=True)
    rules = await get_active_rules_for_targets(db, field_ids + [str(c.id) for c in choices])
    rules_by_target: dict[str, list[ScoringRuleOut]] = {}
    for rule in rules:
        rules_by_target.setdefault(str(rule.target_id), []).append(ScoringRuleOut.model_validate(rule))
    choices_by_field: dict[str, list[dict]] = {}
    for choice in choices:
        choices_by_field.setdefault(str(choice.field_version_id), []).append(
            {
                "id": str(choice.id),
                "choice_id": choice.choice_id,
                "choice_label": choice.choice_label,
                "display_order": choice.display_order,
                "rules": rules_by_target.get(str(choice.id), []),
            }
        )

    return {
        "form": _form_dict(form),
        "fields": [
            {
                "id": str(f.id),
                "field_id": f.field_id,
                "field_title": f.field_title,
                "field_type": f.field_type,
                "field_ref": f.field_ref,
                "parent_field_version_id": f.parent_field_version_id,
                "properties": f.properties,
                "display_order": f.display_order,
                "version_date": f.version_date,
                "choices": choices_by_field.get(str(f.id), []),
                "rules": rules_by_target.get(str(f.id), []),
            }
            for f in fields
        ],
    }


@router.post("/{form_id}/sync", response_model=FormSyncResult)
async def sync_form_definition(
    form_id: str,
    user: RubricEditor,
    db: Annotated[AsyncSession, Depends(get_db)],
    typeform: Annotated[TypeformClient, Depends(get_typeform_client)],
):
    """Pull the latest definition from Typeform and version whatever changed."""
    try:
        result = await sync_form(db, form_id, typeform)
    except TypeformError as exc:
        raise _typeform_http_error(form_id, exc)
    await db.commit()
    return result


@router.delete("/{form_id}")
async def delete_form(
    form_id: str,
    user: RubricEditor,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Soft delete; versions and rules stay for historical scoring."""
    form = await get_form_by_typeform_id(db, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    form.is_active = False
    await db.commit()
    return {"success": True}
