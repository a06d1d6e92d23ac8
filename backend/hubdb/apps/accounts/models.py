# backend/hubdb/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from hubdb.database import Base
from hubdb.utils.identifiers import generate_short_id


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class WorkforceGroup(str, enum.Enum):
    """Closed set of workforce tags used to scope curriculum and assignments."""

    ALL_STAFF = "all_staff"
    CLINICAL = "clinical"
    ADMINISTRATIVE = "administrative"
    MANAGEMENT = "management"
    IT = "it"


WORKFORCE_GROUP_LABELS = {
    WorkforceGroup.ALL_STAFF: "All Staff",
    WorkforceGroup.CLINICAL: "Clinical Staff",
    WorkforceGroup.ADMINISTRATIVE: "Administrative Staff",
    WorkforceGroup.MANAGEMENT: "Management & Leadership",
    WorkforceGroup.IT: "IT / Security Personnel",
}


def workforce_group_label(group) -> str:
    key = group.value if isinstance(group, WorkforceGroup) else str(group)
    for member, label in WORKFORCE_GROUP_LABELS.items():
        if member.value == key:
            return label
    return key


class AccountRole(str, enum.Enum):
    PLATFORM_OWNER = "PLATFORM_OWNER"   # curriculum authors / platform support
    ORG_ADMIN = "ORG_ADMIN"             # organization compliance admin
    WORKFORCE_USER = "WORKFORCE_USER"   # trainee


class MemberStatus(str, enum.Enum):
    PENDING_ASSIGNMENT = "pending_assignment"
    ACTIVE = "active"
    SUSPENDED = "suspended"


def _organization_id() -> str:
    return generate_short_id("ORG")


def _user_id() -> str:
    return generate_short_id("USR")


# ---------------------------------------------------------------------------
# ORGANIZATION
# ---------------------------------------------------------------------------


class Organization(Base):
    """
    Tenant. Every assignment, progress record, attempt and certificate is
    scoped to exactly one organization.
    """

    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=_organization_id)
    name = Column(String(255), nullable=False)
    slug = Column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
        doc="Short slug for URLs, e.g. 'riverside-clinic'",
    )
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    users = relationship("User", back_populates="organization", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Organization {self.slug}>"


# ---------------------------------------------------------------------------
# USERS (workforce members and admins)
# ---------------------------------------------------------------------------


class User(Base):
    """
    Workforce member or organization admin.

    `workforce_groups` is a JSON list of WorkforceGroup values. An empty list
    means the member is still pending assignment: every quiz stays locked and
    compliance reports "no data".
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_users_org_email"),
        Index("idx_users_role_active", "role", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=_user_id)
    organization_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)

    role = Column(
        Enum(AccountRole, name="account_role_enum"),
        nullable=False,
        default=AccountRole.WORKFORCE_USER,
        index=True,
    )
    status = Column(
        Enum(MemberStatus, name="member_status_enum", native_enum=False),
        nullable=False,
        default=MemberStatus.PENDING_ASSIGNMENT,
    )
    workforce_groups = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    organization = relationship("Organization", back_populates="users")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def groups(self) -> set[WorkforceGroup]:
        """Member's workforce groups as enum members; unknown tags are dropped."""
        out: set[WorkforceGroup] = set()
        for raw in self.workforce_groups or []:
            try:
                out.add(WorkforceGroup(raw))
            except ValueError:
                continue
        return out

    @property
    def is_org_admin(self) -> bool:
        return self.role in {AccountRole.ORG_ADMIN, AccountRole.PLATFORM_OWNER}

    def __repr__(self) -> str:
        return f"<User {self.email} org={self.organization_id} role={self.role}>"
