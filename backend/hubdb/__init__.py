# backend/hubdb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- String relationship targets ("Quiz", "Certificate", ...) resolve no matter
  which app is imported first.

The model classes themselves live in hubdb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models            # organizations / members
from .apps.audit import models as audit_models                  # audit trail
from .apps.notifications import models as notifications_models  # email log
from .apps.catalog import models as catalog_models              # materials / quizzes / releases
from .apps.progress import models as progress_models            # material completions
from .apps.assignments import models as assignments_models      # training assignments
from .apps.grading import models as grading_models              # quiz attempts
from .apps.certificates import models as certificates_models    # certificates

__all__ = [
    "accounts_models",
    "audit_models",
    "notifications_models",
    "catalog_models",
    "progress_models",
    "assignments_models",
    "grading_models",
    "certificates_models",
]
