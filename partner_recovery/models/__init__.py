from partner_recovery.models.partner import User, PartnerProfile, PartnerRelation  # noqa: F401
from partner_recovery.models.contract import PartnerContract  # noqa: F401
from partner_recovery.models.records import Lead, Sale, Link  # noqa: F401
from partner_recovery.models.audit_log import AuditLog  # noqa: F401
