"""
Partner Recovery — Pydantic schemas.

Typed shapes for the JSON columns (recovery state, provenance, summaries)
plus request/response models for the operator API.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class PartnerRole(str, Enum):
    SALES_AGENT = "SALES_AGENT"
    BRANCH_MANAGER = "BRANCH_MANAGER"
    HQ = "HQ"


class ContractStatus(str, Enum):
    ACTIVE = "active"
    TERMINATED = "terminated"


class RelationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class RecoveryType(str, Enum):
    SALES_AGENT_TO_MANAGER = "SALES_AGENT_TO_MANAGER"
    BRANCH_MANAGER_TO_HQ = "BRANCH_MANAGER_TO_HQ"
    NO_SUCCESSOR = "NO_SUCCESSOR"


class AuditCategory(str, Enum):
    DB_RECOVERY = "DB_RECOVERY"


class AuditAction(str, Enum):
    RECOVERED = "RECOVERED"
    FAILED = "FAILED"
    RETRY = "RETRY"


# ── Recovery state (stored on the contract) ─────────────

class AttemptError(BaseModel):
    attempt: int = Field(..., ge=1)
    error: str
    timestamp: datetime


class RecoveryState(BaseModel):
    attempt_count: int = 0
    last_attempt_at: datetime | None = None
    errors: list[AttemptError] = Field(default_factory=list)


class Provenance(BaseModel):
    """Stamped into an owned record's metadata when it changes hands."""

    recovered_from: int
    recovered_at: datetime
    recovery_type: RecoveryType


class RecoveryOutcome(BaseModel):
    """Counts of what one recovery moved. Agent fields stay 0 on the agent path."""

    recovery_type: RecoveryType
    recovered_to: int | None = None
    leads: int = 0
    sales: int = 0
    links: int = 0
    agents: int = 0
    agent_leads: int = 0
    agent_sales: int = 0
    agent_links: int = 0

    @property
    def total_leads(self) -> int:
        return self.leads + self.agent_leads

    @property
    def total_sales(self) -> int:
        return self.sales + self.agent_sales

    @property
    def total_links(self) -> int:
        return self.links + self.agent_links

    def summary(self, recovered_at: datetime) -> dict:
        data = self.model_dump(mode="json")
        data.update(
            total_leads=self.total_leads,
            total_sales=self.total_sales,
            total_links=self.total_links,
            recovered_at=recovered_at.isoformat(),
        )
        return data


class RecoveryStats(BaseModel):
    contracts_processed: int = 0
    contracts_failed: int = 0


# ── Operator API ────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str


class ContractRecoveryResponse(BaseModel):
    id: int
    profile_id: int | None = None
    partner_role: PartnerRole | None = None
    status: str
    terminated_at: datetime | None = None
    recovered: bool
    recovered_at: datetime | None = None
    attempt_count: int
    last_attempt_at: datetime | None = None
    attempt_errors: list[AttemptError] = Field(default_factory=list)
    exhausted: bool = False
    recovery_summary: dict | None = None


class AuditEntryResponse(BaseModel):
    id: int
    category: str
    action: str
    contract_id: int | None = None
    profile_id: int | None = None
    user_id: int | None = None
    performed_by_system: bool
    details: dict | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AuditListResponse(BaseModel):
    entries: list[AuditEntryResponse]
    total: int
