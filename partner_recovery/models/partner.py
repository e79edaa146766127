"""
Partner Recovery — hierarchy models: users, partner profiles, manager/agent relations.
"""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from partner_recovery.database import Base, UTCDateTime, utcnow
from partner_recovery.schemas import PartnerRole, RelationStatus


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="partner", index=True)  # admin, partner
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    def __repr__(self):
        return f"<User {self.id} {self.email} ({self.role})>"


class PartnerProfile(Base):
    """A node in the partner tree: SALES_AGENT -> BRANCH_MANAGER -> HQ."""

    __tablename__ = "partner_profiles"
    __table_args__ = (
        # a single HQ node; a second concurrent HQ insert fails and its recovery retries
        Index(
            "uq_partner_profiles_single_hq", "role", unique=True,
            sqlite_where=text("role = 'HQ'"), postgresql_where=text("role = 'HQ'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    code: Mapped[str | None] = mapped_column(String(40), nullable=True)
    display_name: Mapped[str] = mapped_column(String(200), default="")
    status: Mapped[str] = mapped_column(String(20), default="ACTIVE")

    # auto_created / created_for provenance for synthesized HQ rows
    extra_data: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    user: Mapped[User | None] = relationship(lazy="selectin")

    @property
    def is_hq(self) -> bool:
        return self.role == PartnerRole.HQ.value

    def __repr__(self):
        return f"<PartnerProfile {self.id} {self.role}>"


class PartnerRelation(Base):
    """Manager -> agent edge. Only ACTIVE edges take part in cascades."""

    __tablename__ = "partner_relations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    manager_id: Mapped[int] = mapped_column(ForeignKey("partner_profiles.id"), nullable=False, index=True)
    agent_id: Mapped[int] = mapped_column(ForeignKey("partner_profiles.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default=RelationStatus.ACTIVE.value, index=True)
    extra_data: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<PartnerRelation {self.manager_id} -> {self.agent_id} ({self.status})>"
