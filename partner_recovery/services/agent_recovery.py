"""
Partner Recovery — sales agent strategy.

A terminated agent's leads, sales and links move to the manager on the
agent's ACTIVE relation. The agent's own commission on those sales goes
away; the manager-level commission stays.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from partner_recovery.config import RecoveryConfig
from partner_recovery.models import Lead, Link, Sale
from partner_recovery.schemas import AuditAction, Provenance, RecoveryOutcome, RecoveryType
from partner_recovery.services.audit import append_audit
from partner_recovery.services.batch import apply_in_chunks
from partner_recovery.services.ownership import find_manager_relation, lock_contract, mark_recovered

logger = logging.getLogger("recovery.agent")


async def recover_sales_agent(
    session: AsyncSession,
    contract_id: int,
    now: datetime,
    config: RecoveryConfig,
) -> RecoveryOutcome | None:
    """
    Move one agent's records to their manager. Must run inside a transaction.

    Returns None when another run already recovered the contract.
    """
    contract = await lock_contract(session, contract_id)
    if contract.recovered:
        logger.info("Contract %s already recovered, skipping", contract_id)
        return None

    agent_id = contract.profile_id
    relation = await find_manager_relation(session, agent_id)

    if relation is None:
        logger.info("No manager found for agent %s — contract %s closes with nothing to move",
                    agent_id, contract_id)
        outcome = RecoveryOutcome(recovery_type=RecoveryType.NO_SUCCESSOR)
        mark_recovered(contract, outcome, now)
        await append_audit(
            AuditAction.RECOVERED,
            contract_id=contract.id,
            profile_id=agent_id,
            user_id=contract.user_id,
            details=outcome.summary(now),
            session=session,
        )
        return outcome

    manager_id = relation.manager_id
    provenance = Provenance(
        recovered_from=agent_id,
        recovered_at=now,
        recovery_type=RecoveryType.SALES_AGENT_TO_MANAGER,
    )

    def _to_manager(record) -> None:
        record.agent_id = None
        record.manager_id = manager_id
        record.stamp(provenance)

    def _sale_to_manager(sale: Sale) -> None:
        _to_manager(sale)
        sale.sales_commission = None

    outcome = RecoveryOutcome(
        recovery_type=RecoveryType.SALES_AGENT_TO_MANAGER,
        recovered_to=manager_id,
        leads=await apply_in_chunks(session, Lead, Lead.agent_id == agent_id, _to_manager, config.chunk_size),
        sales=await apply_in_chunks(session, Sale, Sale.agent_id == agent_id, _sale_to_manager, config.chunk_size),
        links=await apply_in_chunks(session, Link, Link.agent_id == agent_id, _to_manager, config.chunk_size),
    )

    mark_recovered(contract, outcome, now)
    await append_audit(
        AuditAction.RECOVERED,
        contract_id=contract.id,
        profile_id=agent_id,
        user_id=contract.user_id,
        details=outcome.summary(now),
        session=session,
    )

    logger.info(
        "✅ Agent records recovered: contract %s (agent %s -> manager %s, leads: %d, sales: %d, links: %d)",
        contract.id, agent_id, manager_id, outcome.leads, outcome.sales, outcome.links,
    )
    return outcome
