"""
Partner Recovery — Partner contract model with its recovery state.
"""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from partner_recovery.database import Base, UTCDateTime, utcnow
from partner_recovery.models.partner import PartnerProfile
from partner_recovery.schemas import AttemptError, ContractStatus, RecoveryState


class PartnerContract(Base):
    """A partner's agreement. Recovery columns are written only by the engine."""

    __tablename__ = "partner_contracts"
    __table_args__ = (
        Index("ix_partner_contracts_pending", "status", "recovered"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int | None] = mapped_column(
        ForeignKey("partner_profiles.id"), nullable=True, index=True
    )
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=ContractStatus.ACTIVE.value)
    terminated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Recovery state
    recovered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recovered_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_attempt_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    attempt_errors: Mapped[list] = mapped_column(JSON, default=list)  # [{attempt, error, timestamp}]
    recovery_summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    profile: Mapped[PartnerProfile | None] = relationship(lazy="selectin")

    @property
    def recovery_state(self) -> RecoveryState:
        return RecoveryState(
            attempt_count=self.attempt_count or 0,
            last_attempt_at=self.last_attempt_at,
            errors=[AttemptError.model_validate(e) for e in (self.attempt_errors or [])],
        )

    @recovery_state.setter
    def recovery_state(self, state: RecoveryState) -> None:
        self.attempt_count = state.attempt_count
        self.last_attempt_at = state.last_attempt_at
        # new list object so the JSON column is flagged dirty
        self.attempt_errors = [e.model_dump(mode="json") for e in state.errors]

    def __repr__(self):
        return f"<PartnerContract {self.id} {self.status} recovered={self.recovered}>"
