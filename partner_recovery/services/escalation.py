"""
Partner Recovery — Escalation notifier.

Called once a contract exhausts its retries: writes an operator-facing audit
entry with the full error history, then alerts out of band. Neither step may
raise into the recovery loop.
"""

import logging
from datetime import datetime

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import async_sessionmaker

from partner_recovery.schemas import AttemptError, AuditAction
from partner_recovery.services.audit import append_audit
from partner_recovery.services.notify import send_recovery_failed_alert

logger = logging.getLogger("recovery.escalation")


class EscalationNotice(BaseModel):
    contract_id: int
    partner_type: str | None = None
    user_id: int | None = None
    terminated_at: datetime | None = None
    attempt_count: int
    errors: list[AttemptError] = Field(default_factory=list)
    error: str


async def notify(contract_id: int, partner_type: str, error_message: str, attempt_count: int) -> None:
    """Dispatch the operator alert. Delivery problems are logged and dropped."""
    try:
        delivered = await send_recovery_failed_alert(
            contract_id, partner_type, error_message, attempt_count,
        )
        if not delivered:
            logger.warning("Escalation alert for contract %s was not delivered", contract_id)
    except Exception as e:
        logger.error("Escalation alert for contract %s failed: %s", contract_id, e)


async def escalate(
    session_factory: async_sessionmaker,
    notice: EscalationNotice,
) -> None:
    partner_type = notice.partner_type or "UNKNOWN"
    logger.error(
        "⚠️ Max retries exceeded for contract %s (%s, %d attempts), escalating",
        notice.contract_id, partner_type, notice.attempt_count,
    )

    await append_audit(
        AuditAction.FAILED,
        contract_id=notice.contract_id,
        user_id=notice.user_id,
        details={
            "contract_type": partner_type,
            "terminated_at": notice.terminated_at.isoformat() if notice.terminated_at else None,
            "attempt_count": notice.attempt_count,
            "errors": [e.model_dump(mode="json") for e in notice.errors],
            "message": (
                f"Ownership recovery failed after {notice.attempt_count} attempt(s); "
                "manual intervention required"
            ),
        },
        session_factory=session_factory,
    )

    await notify(notice.contract_id, partner_type, notice.error, notice.attempt_count)
