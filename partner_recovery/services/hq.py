"""
Partner Recovery — HQ materialization.

Managers always recover to HQ. When no HQ profile exists one is created,
together with an admin account if needed, inside the recovery's own
transaction: if the recovery rolls back, so does the new HQ.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from partner_recovery.config import settings
from partner_recovery.models import PartnerContract, PartnerProfile, User
from partner_recovery.schemas import PartnerRole
from partner_recovery.services.ownership import find_hq_profile

logger = logging.getLogger("recovery.hq")

HQ_CODE = "HQ"


async def _admin_user(session: AsyncSession) -> User:
    result = await session.execute(
        select(User).where(User.role == "admin").order_by(User.id).limit(1)
    )
    admin = result.scalar_one_or_none()
    if admin:
        return admin

    # Reuse an account that already owns the HQ address before minting one
    result = await session.execute(select(User).where(User.email == settings.hq_admin_email))
    admin = result.scalar_one_or_none()
    if admin:
        logger.warning(
            "Promoting existing user %s (%s, role %r) to admin to own the HQ profile",
            admin.id, admin.email, admin.role,
        )
        admin.role = "admin"
    else:
        logger.info("No admin user found — creating %s", settings.hq_admin_email)
        admin = User(name=settings.hq_admin_name, email=settings.hq_admin_email, role="admin")
        session.add(admin)
    await session.flush()
    return admin


async def resolve_hq_profile(
    session: AsyncSession,
    contract: PartnerContract,
    now: datetime,
) -> PartnerProfile:
    """Return the HQ profile, synthesizing it for ``contract`` if none exists."""
    hq = await find_hq_profile(session)
    if hq:
        return hq

    logger.info("HQ profile not found — creating it for contract %s", contract.id)
    admin = await _admin_user(session)
    hq = PartnerProfile(
        user_id=admin.id,
        role=PartnerRole.HQ.value,
        code=HQ_CODE,
        display_name=settings.hq_display_name,
        status="ACTIVE",
        extra_data={
            "auto_created": True,
            "created_at": now.isoformat(),
            "created_for": "contract_termination_recovery",
            "trigger_contract_id": contract.id,
        },
    )
    session.add(hq)
    await session.flush()
    logger.info("HQ profile created: %s (admin user %s)", hq.id, admin.id)
    return hq
