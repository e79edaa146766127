"""
Partner Recovery — audit log writer.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from partner_recovery.models import AuditLog
from partner_recovery.schemas import AuditAction, AuditCategory

logger = logging.getLogger("recovery.audit")


async def append_audit(
    action: AuditAction,
    *,
    contract_id: int | None = None,
    profile_id: int | None = None,
    user_id: int | None = None,
    details: dict | None = None,
    performed_by_system: bool = True,
    category: AuditCategory = AuditCategory.DB_RECOVERY,
    session: AsyncSession | None = None,
    session_factory: async_sessionmaker | None = None,
) -> AuditLog | None:
    """
    Record an audit entry.

    With ``session`` the entry joins the caller's transaction and commits or
    rolls back with it. Otherwise it is written in its own session and a
    failed write is logged, never raised.
    """
    entry = AuditLog(
        category=category.value,
        action=action.value,
        contract_id=contract_id,
        profile_id=profile_id,
        user_id=user_id,
        performed_by_system=performed_by_system,
        details=details or {},
    )

    if session is not None:
        session.add(entry)
        return entry

    if session_factory is None:
        from partner_recovery import database
        session_factory = database.async_session

    try:
        async with session_factory() as own:
            own.add(entry)
            await own.commit()
        return entry
    except Exception as e:
        logger.error("Failed to write audit entry %s/%s for contract %s: %s",
                     category.value, action.value, contract_id, e)
        return None
