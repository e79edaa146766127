"""
Partner Recovery — Audit log model.
Append-only record of every recovery outcome and operator action.
"""

from sqlalchemy import Boolean, Column, Integer, String, JSON

from partner_recovery.database import Base, UTCDateTime, utcnow


class AuditLog(Base):
    """Immutable audit trail for contract recovery."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # What happened
    category = Column(String(30), nullable=False, index=True)   # "DB_RECOVERY"
    action = Column(String(30), nullable=False)                 # "RECOVERED", "FAILED", "RETRY"

    # What it happened to
    contract_id = Column(Integer, nullable=True, index=True)
    profile_id = Column(Integer, nullable=True)
    user_id = Column(Integer, nullable=True)

    # Who did it
    performed_by_system = Column(Boolean, default=False, nullable=False)

    # Counts, error history, recovery type ...
    details = Column(JSON, default=dict)

    created_at = Column(UTCDateTime, default=utcnow)

    def __repr__(self):
        return f"<AuditLog {self.category}/{self.action} contract={self.contract_id}>"
