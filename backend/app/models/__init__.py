from app.models.company import Company
from app.models.user import User, UserRole
from app.models.approval_rule import ApprovalRule, ApprovalRuleStep, ApproverRole, RuleType
from app.models.expense import Expense, ExpenseStatus
from app.models.approval import ApprovalStatus, ExpenseApproval
from app.models.notification import Notification
from app.models.audit import AuditLog

__all__ = [
    "Company",
    "User", "UserRole",
    "ApprovalRule", "ApprovalRuleStep", "ApproverRole", "RuleType",
    "Expense", "ExpenseStatus",
    "ApprovalStatus", "ExpenseApproval",
    "Notification",
    "AuditLog",
]
