"""
Partner Recovery — eligibility filter.

A contract is due for recovery when it is terminated, not yet recovered,
still under its retry cap, out of any backoff window, and (for sales agents
only) past the one-day notice window after termination.
"""

import logging
from datetime import datetime
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from partner_recovery.config import RecoveryConfig
from partner_recovery.models import PartnerContract, PartnerProfile
from partner_recovery.schemas import ContractStatus, PartnerRole
from partner_recovery.services.retry import next_attempt_at

logger = logging.getLogger("recovery.eligibility")

RECOVERABLE_ROLES = (PartnerRole.SALES_AGENT.value, PartnerRole.BRANCH_MANAGER.value)


class Candidate(NamedTuple):
    contract_id: int
    profile_id: int
    role: PartnerRole


def is_eligible(contract: PartnerContract, role: str, now: datetime, config: RecoveryConfig) -> bool:
    if contract.status != ContractStatus.TERMINATED.value or contract.recovered:
        return False
    if contract.terminated_at is None:
        return False
    if (contract.attempt_count or 0) >= config.max_retries:
        return False

    due = next_attempt_at(contract, config)
    if due is not None and now < due:
        logger.info("Contract %s waiting for backoff (%ds remaining)",
                    contract.id, int((due - now).total_seconds()))
        return False

    if role == PartnerRole.SALES_AGENT.value and now < contract.terminated_at + config.agent_grace:
        logger.info("Contract %s waiting for agent notice window", contract.id)
        return False

    return True


async def find_eligible_contracts(
    session: AsyncSession,
    now: datetime,
    config: RecoveryConfig,
) -> list[Candidate]:
    """Contracts due for recovery at ``now``, oldest termination first."""
    result = await session.execute(
        select(PartnerContract, PartnerProfile.role)
        .outerjoin(PartnerProfile, PartnerContract.profile_id == PartnerProfile.id)
        .where(
            PartnerContract.status == ContractStatus.TERMINATED.value,
            PartnerContract.recovered.is_(False),
            PartnerContract.attempt_count < config.max_retries,
            PartnerContract.terminated_at.is_not(None),
        )
        .order_by(PartnerContract.terminated_at, PartnerContract.id)
    )

    candidates: list[Candidate] = []
    for contract, role in result.all():
        if role is None:
            logger.info("Skipping contract %s — no partner profile", contract.id)
            continue
        if role not in RECOVERABLE_ROLES:
            logger.debug("Skipping contract %s — %s contracts are not recovered", contract.id, role)
            continue
        if is_eligible(contract, role, now, config):
            candidates.append(Candidate(contract.id, contract.profile_id, PartnerRole(role)))

    logger.info("Found %d contract(s) due for recovery", len(candidates))
    return candidates
