"""
Partner Recovery — ownership store queries shared by the recovery strategies.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from partner_recovery.errors import ContractNotFound
from partner_recovery.models import PartnerContract, PartnerProfile, PartnerRelation
from partner_recovery.schemas import PartnerRole, RecoveryOutcome, RelationStatus
from partner_recovery.services.retry import clear_attempts

logger = logging.getLogger("recovery.store")


async def lock_contract(session: AsyncSession, contract_id: int) -> PartnerContract:
    """Re-read a contract inside the current transaction, row-locked where supported."""
    result = await session.execute(
        select(PartnerContract)
        .where(PartnerContract.id == contract_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    contract = result.scalar_one_or_none()
    if contract is None:
        logger.warning("Contract %s disappeared before recovery", contract_id)
        raise ContractNotFound(contract_id)
    return contract


async def find_manager_relation(session: AsyncSession, agent_id: int) -> PartnerRelation | None:
    """The agent's current ACTIVE edge to a manager (newest wins if several)."""
    result = await session.execute(
        select(PartnerRelation)
        .where(
            PartnerRelation.agent_id == agent_id,
            PartnerRelation.status == RelationStatus.ACTIVE.value,
        )
        .order_by(PartnerRelation.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def active_agent_relations(session: AsyncSession, manager_id: int) -> list[PartnerRelation]:
    result = await session.execute(
        select(PartnerRelation)
        .where(
            PartnerRelation.manager_id == manager_id,
            PartnerRelation.status == RelationStatus.ACTIVE.value,
        )
        .order_by(PartnerRelation.id)
    )
    return list(result.scalars().all())


async def find_hq_profile(session: AsyncSession) -> PartnerProfile | None:
    result = await session.execute(
        select(PartnerProfile)
        .where(PartnerProfile.role == PartnerRole.HQ.value)
        .order_by(PartnerProfile.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


def mark_recovered(contract: PartnerContract, outcome: RecoveryOutcome, now: datetime) -> None:
    """Flip the contract to recovered. Retry history is erased with it."""
    contract.recovered = True
    contract.recovered_at = now
    contract.recovery_summary = outcome.summary(now)
    clear_attempts(contract)
    logger.debug("Contract %s marked recovered (%s)", contract.id, outcome.recovery_type.value)
