#!/usr/bin/env python3
"""
Seed script: creates an administrator, a demo intake form with field/choice versions, and scoring rules.
Run after migrations: python scripts/seed.py
"""

import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from screenops.auth.roles import UserRole
from screenops.auth.security import hash_password
from screenops.database import get_engine_url_and_connect_args
from screenops.models import ChoiceVersion, FieldVersion, Form, ScoringRule, UserProfile

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "screenops-admin"  # Demo password - change after first login
DEMO_FORM_ID = "demo-intake"

# (field_id, title, type, properties, choices)
DEMO_FIELDS = [
    ("fld_email", "What is your email address?", "email", {}, []),
    ("fld_first", "First name", "short_text", {}, []),
    ("fld_last", "Last name", "short_text", {}, []),
    ("fld_meds", "Are you currently taking any psychiatric medication?", "yes_no", {}, []),
    ("fld_heart", "Do you have a history of heart conditions?", "yes_no", {}, []),
    (
        "fld_support",
        "Which supports do you have at home?",
        "multiple_select",
        {"allow_multiple_selection": True},
        ["Therapist", "Family", "Community group", "None"],
    ),
    ("fld_ready", "How ready do you feel?", "opinion_scale", {"steps": 5, "start_at_one": True}, []),
]

# (field_id, choice label or None for a field rule, score, criteria)
DEMO_RULES = [
    ("fld_meds", None, "red", {"condition_type": "equals", "answer": "yes"}),
    ("fld_heart", None, "red", {"condition_type": "equals", "answer": "yes"}),
    ("fld_support", "Therapist", "green", None),
    ("fld_support", "Community group", "green", None),
    ("fld_support", "None", "yellow", None),
    ("fld_ready", None, "yellow", {"condition_type": "equals", "condition_value": "1"}),
]


async def seed():
    url, connect_args = get_engine_url_and_connect_args()
    engine = create_async_engine(url, connect_args=connect_args)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        result = await session.execute(select(UserProfile).where(UserProfile.email == ADMIN_EMAIL))
        if result.scalar_one_or_none():
            print("Administrator already exists, leaving it as is.")
        else:
            session.add(
                UserProfile(
                    email=ADMIN_EMAIL,
                    first_name="Program",
                    last_name="Admin",
                    role=UserRole.PROGRAM_OPERATIONS_ADMINISTRATOR.value,
                    password_hash=hash_password(ADMIN_PASSWORD),
                )
            )
            await session.commit()

        result = await session.execute(select(Form).where(Form.form_id == DEMO_FORM_ID))
        if result.scalar_one_or_none():
            print("Demo form already seeded.")
            await engine.dispose()
            return

        form = Form(form_id=DEMO_FORM_ID, form_title="Retreat Application (demo)")
        session.add(form)
        await session.flush()

        versions: dict[str, FieldVersion] = {}
        choices: dict[tuple[str, str], ChoiceVersion] = {}
        for order, (field_id, title, field_type, props, labels) in enumerate(DEMO_FIELDS):
            version = FieldVersion(
                form_id=form.id,
                field_id=field_id,
                field_title=title,
                field_type=field_type,
                properties=props,
                display_order=order,
            )
            session.add(version)
            await session.flush()
            versions[field_id] = version
            for i, label in enumerate(labels):
                choice = ChoiceVersion(
                    field_version_id=version.id,
                    choice_id=f"{field_id}_{i}",
                    choice_label=label,
                    display_order=i,
                )
                session.add(choice)
                choices[(field_id, label)] = choice
        await session.flush()

        for field_id, label, score, criteria in DEMO_RULES:
            if label is None:
                target_type, target_id = "field", versions[field_id].id
            else:
                target_type, target_id = "choice", choices[(field_id, label)].id
            session.add(
                ScoringRule(target_type=target_type, target_id=target_id, score_value=score, criteria=criteria)
            )
        await session.commit()

    await engine.dispose()
    print("Seed complete!")
    print(f"Administrator: {ADMIN_EMAIL} / {ADMIN_PASSWORD}")
    print(f"Demo form id: {DEMO_FORM_ID}")
    print("Login: curl -X POST http://localhost:8000/auth/login \\")
    print('  -H "Content-Type: application/json" \\')
    print(f"  -d '{{\"email\":\"{ADMIN_EMAIL}\",\"password\":\"{ADMIN_PASSWORD}\"}}'")


if __name__ == "__main__":
    asyncio.run(seed())
