# backend/scripts/seed_demo.py
"""
Seed a demo organization with members and a small HIPAA curriculum.

Usage (from backend/):
    DATABASE_URL=... python -m scripts.seed_demo
"""

from datetime import datetime, timedelta, timezone

import hubdb  # noqa: F401  registers all models
from hubdb.database import WriteSessionLocal
from hubdb.apps.accounts import models as account_models
from hubdb.apps.assignments import services as assignment_services
from hubdb.apps.catalog import models as catalog_models
from hubdb.apps.catalog import services as catalog_services

ALL_GROUPS = [group.value for group in account_models.WorkforceGroup]

MATERIALS = [
    {
        "material_key": "phi-fundamentals",
        "title": "HIPAA Fundamentals: Understanding PHI",
        "sequence_number": 1,
        "workforce_groups": ALL_GROUPS,
        "hipaa_citations": ["45 CFR §160.103", "45 CFR §164.502(b)"],
        "estimated_minutes": 15,
        "content": [
            {"title": "What is HIPAA?", "content": "Federal rules protecting health information."},
            {"title": "The Minimum Necessary Rule", "content": "Use only the PHI the task requires."},
        ],
    },
    {
        "material_key": "breach-notification",
        "title": "Breach Notification Requirements",
        "sequence_number": 2,
        "workforce_groups": ALL_GROUPS,
        "hipaa_citations": ["45 CFR §164.402", "45 CFR §164.404"],
        "estimated_minutes": 12,
        "content": [
            {"title": "What Constitutes a Breach?", "content": "Unauthorized acquisition, access, use or disclosure."},
        ],
    },
    {
        "material_key": "clinical-treatment-disclosures",
        "title": "Clinical Staff: Treatment Disclosures",
        "sequence_number": 3,
        "workforce_groups": ["clinical"],
        "hipaa_citations": ["45 CFR §164.506", "45 CFR §164.510(b)"],
        "estimated_minutes": 10,
        "content": [
            {"title": "Treatment Use Exception", "content": "Providers may share PHI for treatment."},
        ],
    },
]

ABCD = ("A", "B", "C", "D")

QUIZZES = [
    {
        "title": "HIPAA Fundamentals Quiz 1",
        "sequence_number": 1,
        "workforce_groups": ALL_GROUPS,
        "hipaa_citations": ["45 CFR §164.502(b)", "45 CFR §164.508(a)(1)"],
        "questions": [
            (
                "A billing clerk needs a record that also holds unrelated psychiatric notes.",
                "What should the clerk do?",
                [
                    "Access the full record",
                    "Request only the billing-related information",
                    "Ask a supervisor for the notes",
                    "Open the record but skip the notes",
                ],
                "B",
                "45 CFR §164.502(b)",
            ),
            (
                "A patient phones to ask that their PHI be shared with a relative.",
                "Is a verbal request enough for a non-treatment disclosure?",
                [
                    "Yes, verbal authorization is sufficient",
                    "No, a signed written authorization is required",
                    "Yes, if compliance is copied",
                    "Only with a witness",
                ],
                "B",
                "45 CFR §164.508(a)(1)",
            ),
        ],
    },
    {
        "title": "HIPAA Fundamentals Quiz 2",
        "sequence_number": 2,
        "workforce_groups": ALL_GROUPS,
        "hipaa_citations": ["45 CFR §164.402(2)"],
        "questions": [
            (
                "A laptop with unencrypted patient data was left in a taxi and recovered two hours later.",
                "Should affected individuals be notified?",
                [
                    "No, it was recovered quickly",
                    "It depends on a documented risk assessment",
                    "No, recovered devices are never breaches",
                    "Yes, always",
                ],
                "B",
                "45 CFR §164.402(2)",
            ),
        ],
    },
]


def _options(texts):
    return [{"label": label, "text": text} for label, text in zip(ABCD, texts)]


def run():
    now = datetime.now(timezone.utc)
    db = WriteSessionLocal()
    try:
        if db.query(account_models.Organization).filter_by(slug="riverside-clinic").first():
            print("Demo organization already seeded")
            return

        org = account_models.Organization(name="Riverside Clinic", slug="riverside-clinic")
        db.add(org)
        db.flush()

        admin = account_models.User(
            organization_id=org.id,
            email="privacy.officer@riverside.example",
            first_name="Priya",
            last_name="Officer",
            role=account_models.AccountRole.ORG_ADMIN,
            status=account_models.MemberStatus.ACTIVE,
            workforce_groups=["management"],
        )
        nurse = account_models.User(
            organization_id=org.id,
            email="nurse@riverside.example",
            first_name="Noel",
            last_name="Nurse",
            status=account_models.MemberStatus.ACTIVE,
            workforce_groups=["clinical"],
        )
        front_desk = account_models.User(
            organization_id=org.id,
            email="frontdesk@riverside.example",
            first_name="Frankie",
            last_name="Desk",
            status=account_models.MemberStatus.ACTIVE,
            workforce_groups=["administrative"],
        )
        db.add_all([admin, nurse, front_desk])
        db.flush()

        materials = [catalog_services.create_material(db, now=now, **entry) for entry in MATERIALS]

        quizzes = []
        for entry in QUIZZES:
            quiz = catalog_services.create_quiz(
                db,
                title=entry["title"],
                sequence_number=entry["sequence_number"],
                workforce_groups=entry["workforce_groups"],
                hipaa_citations=entry["hipaa_citations"],
                now=now,
            )
            for number, (scenario, text, options, answer, section) in enumerate(entry["questions"], start=1):
                catalog_services.add_question(
                    db,
                    quiz=quiz,
                    question_number=number,
                    scenario=scenario,
                    question_text=text,
                    options=_options(options),
                    correct_answer=answer,
                    hipaa_section=section,
                )
            catalog_services.publish_quiz(db, quiz=quiz, now=now)
            quizzes.append(quiz)

        for group in ("clinical", "administrative", "management"):
            for material in materials:
                if group in material.workforce_groups:
                    catalog_services.release_content(
                        db,
                        organization_id=org.id,
                        content_type=catalog_models.ContentType.TRAINING_MATERIAL,
                        content_id=material.id,
                        workforce_group=group,
                        actor_user_id=admin.id,
                        now=now,
                    )
            for quiz in quizzes:
                catalog_services.release_content(
                    db,
                    organization_id=org.id,
                    content_type=catalog_models.ContentType.QUIZ,
                    content_id=quiz.id,
                    workforce_group=group,
                    actor_user_id=admin.id,
                    max_attempts=3 if group == "clinical" else None,
                    now=now,
                )

        for member, group in ((nurse, "clinical"), (front_desk, "administrative")):
            assignment_services.create_assignment(
                db,
                organization_id=org.id,
                assigned_to=member.id,
                workforce_group=group,
                due_date=(now + timedelta(days=30)).date(),
                notes="Annual HIPAA refresher",
                actor=admin,
                now=now,
            )

        db.commit()
        print(f"Seeded demo organization {org.slug} ({org.id})")
    finally:
        db.close()


if __name__ == "__main__":
    run()
