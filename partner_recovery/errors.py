"""
Partner Recovery — exceptions raised inside a recovery attempt.

The driver catches all of these per contract; none reach the scheduler.
"""


class RecoveryError(Exception):
    """Base class for recovery failures."""


class RecoveryTimeout(RecoveryError):
    """A recovery transaction ran past its deadline and was rolled back."""

    def __init__(self, timeout: float):
        super().__init__(f"recovery transaction timed out after {timeout:g}s")
        self.timeout = timeout


class ContractNotFound(RecoveryError):
    def __init__(self, contract_id: int):
        super().__init__(f"contract {contract_id} not found")
        self.contract_id = contract_id


class UnsupportedPartnerType(RecoveryError):
    """No recovery strategy exists for the contract's partner role."""

    def __init__(self, role: str | None):
        super().__init__(f"no recovery strategy for partner type {role!r}")
        self.role = role
