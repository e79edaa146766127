"""
Partner Recovery — branch manager strategy.

A terminated manager's own holdings move to HQ outright. Their agents are
not stranded: each ACTIVE relation is re-pointed at HQ, and the agents'
records keep the agent as owner while the manager-level attribution (and
the branch commission) moves to HQ.

Only ACTIVE manager -> agent edges are walked. The tree is at most three
levels deep (agent, manager, HQ), so there is no recursion.
"""

import logging
from datetime import datetime

from sqlalchemy import and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from partner_recovery.config import RecoveryConfig
from partner_recovery.models import Lead, Link, PartnerRelation, Sale
from partner_recovery.schemas import AuditAction, Provenance, RecoveryOutcome, RecoveryType
from partner_recovery.services.audit import append_audit
from partner_recovery.services.batch import apply_in_chunks, chunked
from partner_recovery.services.hq import resolve_hq_profile
from partner_recovery.services.ownership import active_agent_relations, lock_contract, mark_recovered

logger = logging.getLogger("recovery.manager")


def _direct_holdings(model, manager_id: int, agent_ids: list[int]):
    """Rows attributed to the manager that no cascaded agent owns."""
    if not agent_ids:
        return model.manager_id == manager_id
    return and_(
        model.manager_id == manager_id,
        or_(model.agent_id.is_(None), model.agent_id.not_in(agent_ids)),
    )


async def _migrate_direct_holdings(
    session: AsyncSession,
    manager_id: int,
    agent_ids: list[int],
    hq_id: int,
    provenance: Provenance,
    config: RecoveryConfig,
) -> tuple[int, int, int]:
    def _to_hq(record) -> None:
        record.manager_id = hq_id
        record.agent_id = None
        record.stamp(provenance)

    def _sale_to_hq(sale: Sale) -> None:
        # override commission survives; branch and sales roles are gone
        _to_hq(sale)
        sale.branch_commission = None
        sale.sales_commission = None

    leads = await apply_in_chunks(
        session, Lead, _direct_holdings(Lead, manager_id, agent_ids), _to_hq, config.chunk_size)
    sales = await apply_in_chunks(
        session, Sale, _direct_holdings(Sale, manager_id, agent_ids), _sale_to_hq, config.chunk_size)
    links = await apply_in_chunks(
        session, Link, _direct_holdings(Link, manager_id, agent_ids), _to_hq, config.chunk_size)
    return leads, sales, links


async def _cascade_to_agents(
    session: AsyncSession,
    relations: list[PartnerRelation],
    hq_id: int,
    provenance: Provenance,
    config: RecoveryConfig,
) -> tuple[int, int, int]:
    """Re-point each agent edge at HQ, then move the agents' records under HQ."""

    def _under_hq(record) -> None:
        record.manager_id = hq_id
        record.stamp(provenance)

    def _sale_under_hq(sale: Sale) -> None:
        _under_hq(sale)
        sale.branch_commission = None

    leads = sales = links = 0
    seen: set[int] = set()
    for edges in chunked(relations, config.chunk_size):
        for relation in edges:
            relation.manager_id = hq_id
            relation.extra_data = {**(relation.extra_data or {}), **provenance.model_dump(mode="json")}
        await session.flush()

        agent_ids = sorted({r.agent_id for r in edges} - seen)
        if not agent_ids:
            continue
        seen.update(agent_ids)
        leads += await apply_in_chunks(
            session, Lead, Lead.agent_id.in_(agent_ids), _under_hq, config.chunk_size)
        sales += await apply_in_chunks(
            session, Sale, Sale.agent_id.in_(agent_ids), _sale_under_hq, config.chunk_size)
        links += await apply_in_chunks(
            session, Link, Link.agent_id.in_(agent_ids), _under_hq, config.chunk_size)
    return leads, sales, links


async def recover_branch_manager(
    session: AsyncSession,
    contract_id: int,
    now: datetime,
    config: RecoveryConfig,
) -> RecoveryOutcome | None:
    """
    Move one manager's records to HQ and cascade to their agents.
    Must run inside a transaction; HQ is created in it if missing.

    Returns None when another run already recovered the contract.
    """
    contract = await lock_contract(session, contract_id)
    if contract.recovered:
        logger.info("Contract %s already recovered, skipping", contract_id)
        return None

    manager_id = contract.profile_id
    hq = await resolve_hq_profile(session, contract, now)
    provenance = Provenance(
        recovered_from=manager_id,
        recovered_at=now,
        recovery_type=RecoveryType.BRANCH_MANAGER_TO_HQ,
    )

    relations = await active_agent_relations(session, manager_id)
    agent_ids = sorted({r.agent_id for r in relations})

    leads, sales, links = await _migrate_direct_holdings(
        session, manager_id, agent_ids, hq.id, provenance, config)
    agent_leads, agent_sales, agent_links = await _cascade_to_agents(
        session, relations, hq.id, provenance, config)

    outcome = RecoveryOutcome(
        recovery_type=RecoveryType.BRANCH_MANAGER_TO_HQ,
        recovered_to=hq.id,
        leads=leads,
        sales=sales,
        links=links,
        agents=len(relations),
        agent_leads=agent_leads,
        agent_sales=agent_sales,
        agent_links=agent_links,
    )

    mark_recovered(contract, outcome, now)
    await append_audit(
        AuditAction.RECOVERED,
        contract_id=contract.id,
        profile_id=manager_id,
        user_id=contract.user_id,
        details=outcome.summary(now),
        session=session,
    )

    logger.info(
        "✅ Manager records recovered: contract %s (manager %s -> HQ %s, %d agent(s) moved under HQ, "
        "leads: %d, sales: %d, links: %d)",
        contract.id, manager_id, hq.id, outcome.agents,
        outcome.total_leads, outcome.total_sales, outcome.total_links,
    )
    return outcome
