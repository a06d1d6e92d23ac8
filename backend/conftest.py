from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.setdefault("NOTIFICATIONS_EMAIL_PROVIDER", "none")

import hubdb  # noqa: E402,F401
from hubdb.database import Base  # noqa: E402
from hubdb.apps.accounts import models as account_models  # noqa: E402
from hubdb.apps.assignments import models as assignment_models  # noqa: E402
from hubdb.apps.audit import models as audit_models  # noqa: E402
from hubdb.apps.catalog import models as catalog_models  # noqa: E402
from hubdb.apps.certificates import models as certificate_models  # noqa: E402
from hubdb.apps.grading import models as grading_models  # noqa: E402
from hubdb.apps.notifications import models as notification_models  # noqa: E402
from hubdb.apps.progress import models as progress_models  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(
        bind=engine,
        tables=[
            account_models.Organization.__table__,
            account_models.User.__table__,
            catalog_models.TrainingMaterial.__table__,
            catalog_models.Quiz.__table__,
            catalog_models.QuizQuestion.__table__,
            catalog_models.ContentRelease.__table__,
            progress_models.TrainingProgressRecord.__table__,
            assignment_models.TrainingAssignment.__table__,
            grading_models.QuizAttempt.__table__,
            certificate_models.Certificate.__table__,
            audit_models.AuditEvent.__table__,
            notification_models.EmailLog.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
