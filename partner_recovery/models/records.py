"""
Partner Recovery — owned customer records (leads, sales, referral links).

Each row is attributed to a manager and/or an agent. Recovery only ever
rewrites those pointers, clears commissions of a removed role, and stamps
provenance into ``metadata``.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.types import JSON

from partner_recovery.database import Base, UTCDateTime, utcnow
from partner_recovery.schemas import Provenance


class OwnedRecordMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    @declared_attr
    def manager_id(cls) -> Mapped[int | None]:
        return mapped_column(ForeignKey("partner_profiles.id"), nullable=True, index=True)

    @declared_attr
    def agent_id(cls) -> Mapped[int | None]:
        return mapped_column(ForeignKey("partner_profiles.id"), nullable=True, index=True)

    extra_data: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    def stamp(self, provenance: Provenance) -> None:
        """Merge a provenance entry into the record's metadata."""
        self.extra_data = {**(self.extra_data or {}), **provenance.model_dump(mode="json")}

    @property
    def provenance(self) -> Provenance | None:
        data = self.extra_data or {}
        if "recovered_from" not in data:
            return None
        return Provenance.model_validate(data)


class Lead(OwnedRecordMixin, Base):
    __tablename__ = "leads"

    customer_name: Mapped[str] = mapped_column(String(200), default="")
    customer_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="NEW")

    def __repr__(self):
        return f"<Lead {self.id} mgr={self.manager_id} agent={self.agent_id}>"


class Sale(OwnedRecordMixin, Base):
    __tablename__ = "sales"

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    sales_commission: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    branch_commission: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    override_commission: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    def __repr__(self):
        return f"<Sale {self.id} mgr={self.manager_id} agent={self.agent_id}>"


class Link(OwnedRecordMixin, Base):
    __tablename__ = "links"

    code: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    url: Mapped[str] = mapped_column(String(512), default="")

    def __repr__(self):
        return f"<Link {self.code} mgr={self.manager_id} agent={self.agent_id}>"
