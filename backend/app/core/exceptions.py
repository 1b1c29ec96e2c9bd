"""Typed errors raised by the approval engine and its collaborators.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer should answer with. Services raise these; only ``app.main`` turns them
into responses.

    ApprovalEngineError
    +-- ConfigurationError          422  rule cannot be turned into a workflow
    |   +-- RuleInUseError          409  rule still referenced by expenses
    +-- NotAuthorizedError          403  no pending ledger row for this approver
    |   +-- ExpenseFinalizedError   409  expense already approved/rejected
    +-- PermissionDeniedError       403  role may not perform the action
    +-- NotFoundError               404  expense, rule or user missing
    +-- LedgerImmutableError        409  decided or deleted ledger row
    +-- CurrencyConversionError     502  no usable exchange rate
"""
from typing import Any


class ApprovalEngineError(Exception):
    code: str = "APPROVAL_ENGINE_ERROR"
    http_status: int = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            body["context"] = {k: str(v) for k, v in self.details.items()}
        return body


class ConfigurationError(ApprovalEngineError):
    code = "RULE_CONFIGURATION_INVALID"
    http_status = 422


class RuleInUseError(ConfigurationError):
    code = "RULE_IN_USE"
    http_status = 409


class NotAuthorizedError(ApprovalEngineError):
    code = "NO_PENDING_APPROVAL"
    http_status = 403


class ExpenseFinalizedError(NotAuthorizedError):
    code = "EXPENSE_FINALIZED"
    http_status = 409


class PermissionDeniedError(ApprovalEngineError):
    code = "PERMISSION_DENIED"
    http_status = 403


class NotFoundError(ApprovalEngineError):
    code = "NOT_FOUND"
    http_status = 404


class LedgerImmutableError(ApprovalEngineError):
    code = "LEDGER_APPEND_ONLY"
    http_status = 409


class CurrencyConversionError(ApprovalEngineError):
    code = "CURRENCY_CONVERSION_FAILED"
    http_status = 502
