"""
Partner Recovery — operator API.

Trigger a pass by hand, inspect a contract's recovery state, and re-arm a
contract whose retries were exhausted.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from partner_recovery.config import RecoveryConfig
from partner_recovery.database import get_db, get_session_factory, utcnow
from partner_recovery.models import AuditLog, PartnerContract
from partner_recovery.schemas import (
    AuditAction,
    AuditEntryResponse,
    AuditListResponse,
    ContractRecoveryResponse,
    PartnerRole,
    RecoveryStats,
)
from partner_recovery.services.audit import append_audit
from partner_recovery.services.driver import run_recovery_pass
from partner_recovery.services.retry import RecoveryPhase, clear_attempts, recovery_phase

logger = logging.getLogger(__name__)
recovery_router = APIRouter(prefix="/recovery", tags=["recovery"])


def _contract_response(contract: PartnerContract, config: RecoveryConfig) -> ContractRecoveryResponse:
    state = contract.recovery_state
    role = contract.profile.role if contract.profile else None
    return ContractRecoveryResponse(
        id=contract.id,
        profile_id=contract.profile_id,
        partner_role=PartnerRole(role) if role else None,
        status=contract.status,
        terminated_at=contract.terminated_at,
        recovered=contract.recovered,
        recovered_at=contract.recovered_at,
        attempt_count=state.attempt_count,
        last_attempt_at=state.last_attempt_at,
        attempt_errors=state.errors,
        exhausted=recovery_phase(contract, utcnow(), config) == RecoveryPhase.EXHAUSTED,
        recovery_summary=contract.recovery_summary,
    )


async def _get_contract(db: AsyncSession, contract_id: int) -> PartnerContract:
    contract = (
        await db.execute(select(PartnerContract).where(PartnerContract.id == contract_id))
    ).scalar_one_or_none()
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")
    return contract


@recovery_router.post("/run", response_model=RecoveryStats)
async def run_pass(session_factory=Depends(get_session_factory)):
    """Run one recovery pass now."""
    return await run_recovery_pass(session_factory=session_factory)


@recovery_router.get("/contracts/{contract_id}", response_model=ContractRecoveryResponse)
async def get_contract_recovery(contract_id: int, db: AsyncSession = Depends(get_db)):
    contract = await _get_contract(db, contract_id)
    return _contract_response(contract, RecoveryConfig.from_settings())


@recovery_router.post("/contracts/{contract_id}/retry", response_model=ContractRecoveryResponse)
async def retry_contract(contract_id: int, db: AsyncSession = Depends(get_db)):
    """Wipe retry history so the next pass treats the contract as unattempted."""
    contract = await _get_contract(db, contract_id)
    if contract.recovered:
        raise HTTPException(status_code=409, detail="Contract already recovered")

    previous = contract.recovery_state
    clear_attempts(contract)
    await append_audit(
        AuditAction.RETRY,
        contract_id=contract.id,
        profile_id=contract.profile_id,
        user_id=contract.user_id,
        performed_by_system=False,
        details={
            "previous_attempt_count": previous.attempt_count,
            "previous_errors": [e.model_dump(mode="json") for e in previous.errors],
        },
        session=db,
    )
    await db.commit()
    logger.info("Contract %s re-armed for recovery by operator", contract.id)
    return _contract_response(contract, RecoveryConfig.from_settings())


@recovery_router.get("/audit", response_model=AuditListResponse)
async def list_audit(
    contract_id: int | None = Query(None, description="Filter by contract"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(AuditLog)
    count_stmt = select(func.count()).select_from(AuditLog)
    if contract_id is not None:
        stmt = stmt.where(AuditLog.contract_id == contract_id)
        count_stmt = count_stmt.where(AuditLog.contract_id == contract_id)

    rows = (
        await db.execute(stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit))
    ).scalars().all()
    total = (await db.execute(count_stmt)).scalar_one()
    return AuditListResponse(
        entries=[AuditEntryResponse.model_validate(r) for r in rows],
        total=total,
    )
