"""Models package."""

from .user import User
from .admin_role import AdminRole
from .order import Order
from .file_cleanup_job import FileCleanupJob
from .referral_link import ReferralLink
from .audit_log import AuditLogEntry
from .fraud_alert import FraudAlert
