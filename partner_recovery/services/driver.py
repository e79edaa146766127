"""
Partner Recovery — recovery driver.

One pass: pull the eligible contracts, recover each in its own timed
transaction with the strategy for its partner type, and route failures to
the retry controller. Contracts are processed one at a time. A failing
contract never stops the pass and nothing is raised to the caller.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from partner_recovery.config import RecoveryConfig
from partner_recovery.database import as_utc, utcnow
from partner_recovery.errors import UnsupportedPartnerType
from partner_recovery.schemas import PartnerRole, RecoveryOutcome, RecoveryStats
from partner_recovery.services.agent_recovery import recover_sales_agent
from partner_recovery.services.batch import run_atomic
from partner_recovery.services.eligibility import Candidate, find_eligible_contracts
from partner_recovery.services.manager_recovery import recover_branch_manager
from partner_recovery.services.notify import send_recovery_succeeded_alert
from partner_recovery.services.retry import record_failure

logger = logging.getLogger("recovery.driver")

Clock = Callable[[], datetime]
Recover = Callable[[AsyncSession, int, datetime, RecoveryConfig], Awaitable[RecoveryOutcome | None]]


class Strategy(NamedTuple):
    recover: Recover
    timeout: Callable[[RecoveryConfig], float]


STRATEGIES: dict[PartnerRole, Strategy] = {
    PartnerRole.SALES_AGENT: Strategy(recover_sales_agent, lambda c: c.agent_timeout),
    PartnerRole.BRANCH_MANAGER: Strategy(recover_branch_manager, lambda c: c.manager_timeout),
}


async def recover_contract(
    session_factory: async_sessionmaker,
    candidate: Candidate,
    now: datetime,
    config: RecoveryConfig,
) -> RecoveryOutcome | None:
    """Run one contract's strategy atomically. Raises on failure."""
    strategy = STRATEGIES.get(candidate.role)
    if strategy is None:
        raise UnsupportedPartnerType(candidate.role)

    def work(session: AsyncSession):
        return strategy.recover(session, candidate.contract_id, now, config)

    return await run_atomic(session_factory, work, timeout=strategy.timeout(config))


async def _announce_success(candidate: Candidate, outcome: RecoveryOutcome) -> None:
    try:
        await send_recovery_succeeded_alert(
            candidate.contract_id, candidate.role.value,
            outcome.total_leads, outcome.total_sales, outcome.total_links,
        )
    except Exception as e:
        logger.warning("Success alert for contract %s failed: %s", candidate.contract_id, e)


async def run_recovery_pass(
    now: datetime | None = None,
    *,
    session_factory: async_sessionmaker | None = None,
    config: RecoveryConfig | None = None,
    clock: Clock = utcnow,
) -> RecoveryStats:
    """
    Recover every contract due at ``now`` (defaults to ``clock()``).

    Returns how many contracts were recovered and how many failed this pass.
    """
    if session_factory is None:
        from partner_recovery import database
        session_factory = database.async_session
    config = config or RecoveryConfig.from_settings()
    now = as_utc(now or clock())
    stats = RecoveryStats()

    logger.info("🔄 Starting recovery pass at %s", now.isoformat())
    try:
        async with session_factory() as session:
            candidates = await find_eligible_contracts(session, now, config)
    except Exception as e:
        logger.error("❌ Could not load eligible contracts: %s", e)
        return stats

    for candidate in candidates:
        try:
            outcome = await recover_contract(session_factory, candidate, now, config)
        except Exception as exc:
            stats.contracts_failed += 1
            try:
                await record_failure(session_factory, candidate.contract_id, exc, now, config)
            except Exception as e:
                logger.error("Could not record failure for contract %s: %s", candidate.contract_id, e)
            continue

        stats.contracts_processed += 1
        if outcome is not None and config.notify_on_success:
            await _announce_success(candidate, outcome)

    logger.info(
        "✅ Recovery pass complete: %d contract(s) processed, %d failed",
        stats.contracts_processed, stats.contracts_failed,
    )
    return stats
