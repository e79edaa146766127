"""
Partner Recovery — Retry / backoff controller.

Per-contract state machine::

    UNATTEMPTED -> AWAITING_BACKOFF(n) -> ELIGIBLE -> SUCCEEDED | EXHAUSTED

A failure bumps ``attempt_count``, appends to ``attempt_errors`` and stamps
``last_attempt_at``; the contract becomes eligible again once
``backoff(attempt_count)`` has elapsed. Reaching ``max_retries`` exhausts
the contract and escalates it. Nothing here ever resets ``recovered``.
"""

import logging
from datetime import datetime
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from partner_recovery.config import RecoveryConfig
from partner_recovery.models import PartnerContract
from partner_recovery.schemas import AttemptError, RecoveryState
from partner_recovery.services.escalation import EscalationNotice, escalate

logger = logging.getLogger("recovery.retry")


class RecoveryPhase(str, Enum):
    UNATTEMPTED = "unattempted"
    AWAITING_BACKOFF = "awaiting_backoff"
    ELIGIBLE = "eligible"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


def next_attempt_at(contract: PartnerContract, config: RecoveryConfig) -> datetime | None:
    """Earliest time a failed contract may be retried; None if it never failed."""
    if not contract.attempt_count or contract.last_attempt_at is None:
        return None
    return contract.last_attempt_at + config.backoff(contract.attempt_count)


def recovery_phase(contract: PartnerContract, now: datetime, config: RecoveryConfig) -> RecoveryPhase:
    if contract.recovered:
        return RecoveryPhase.SUCCEEDED
    attempts = contract.attempt_count or 0
    if attempts >= config.max_retries:
        return RecoveryPhase.EXHAUSTED
    if attempts == 0:
        return RecoveryPhase.UNATTEMPTED
    due = next_attempt_at(contract, config)
    if due is not None and now < due:
        return RecoveryPhase.AWAITING_BACKOFF
    return RecoveryPhase.ELIGIBLE


def clear_attempts(contract: PartnerContract) -> None:
    contract.recovery_state = RecoveryState()


def error_message(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


async def record_failure(
    session_factory: async_sessionmaker,
    contract_id: int,
    error: BaseException,
    now: datetime,
    config: RecoveryConfig,
) -> RecoveryState | None:
    """
    Persist one failed attempt and escalate when the retry budget is spent.

    Runs in its own transaction since the failed attempt's was rolled back.
    Returns the new state, or None if the contract vanished or was
    recovered concurrently.
    """
    message = error_message(error)

    async with session_factory() as session:
        async with session.begin():
            result = await session.execute(
                select(PartnerContract).where(PartnerContract.id == contract_id).with_for_update()
            )
            contract = result.scalar_one_or_none()
            if contract is None or contract.recovered:
                return None

            previous = contract.recovery_state
            attempt = previous.attempt_count + 1
            state = RecoveryState(
                attempt_count=attempt,
                last_attempt_at=now,
                errors=[*previous.errors, AttemptError(attempt=attempt, error=message, timestamp=now)],
            )
            contract.recovery_state = state

            notice = EscalationNotice(
                contract_id=contract.id,
                partner_type=contract.profile.role if contract.profile else None,
                user_id=contract.user_id,
                terminated_at=contract.terminated_at,
                attempt_count=attempt,
                errors=state.errors,
                error=message,
            )

    logger.error(
        "❌ Recovery failed for contract %s (attempt %d/%d): %s",
        contract_id, attempt, config.max_retries, message,
    )

    if attempt >= config.max_retries:
        await escalate(session_factory, notice)
    else:
        logger.info(
            "Contract %s retries after %s",
            contract_id, (now + config.backoff(attempt)).isoformat(),
        )
    return state
