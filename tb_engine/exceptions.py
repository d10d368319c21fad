"""
Custom exceptions for the trial-balance engine.

Provides a hierarchy of exceptions with error codes. Data-quality findings are
reported as validation results; these exceptions are reserved for structural
problems that make a computation meaningless.
"""
from typing import Any, Dict, List, Optional


class TBEngineError(Exception):
    """
    Base exception for all engine errors.

    Attributes:
        error_code: Unique error code (e.g., TBE-001)
        message: Human-readable error message
        details: Additional error context
    """
    error_code: str = "TBE-000"

    def __init__(
        self,
        message: str = "An unexpected engine error occurred",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured reporting."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# Ledger Replay Errors (TBE-1XX)
class LedgerError(TBEngineError):
    """Error while replaying journal entries over a trial balance."""
    error_code = "TBE-100"

    def __init__(self, message: str = "Failed to apply adjustments", **kwargs):
        super().__init__(message, **kwargs)


class UnbalancedEntryError(LedgerError):
    """Journal entry debits and credits differ beyond tolerance."""
    error_code = "TBE-101"

    def __init__(self, entry_id: str, total_debit, total_credit, **kwargs):
        difference = total_debit - total_credit
        message = (
            f"Journal entry {entry_id} is unbalanced: "
            f"debits {total_debit} != credits {total_credit}"
        )
        super().__init__(
            message,
            details={
                "entry_id": entry_id,
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
                "difference": str(difference),
            },
            **kwargs,
        )


class UnknownAccountError(LedgerError):
    """Journal entry references accounts absent from the base trial balance."""
    error_code = "TBE-102"

    def __init__(self, entry_id: str, account_ids: List[str], **kwargs):
        message = (
            f"Journal entry {entry_id} references unknown accounts: "
            f"{', '.join(account_ids)}"
        )
        super().__init__(
            message,
            details={"entry_id": entry_id, "account_ids": list(account_ids)},
            **kwargs,
        )


class LedgerIntegrityError(LedgerError):
    """Net impact of applied adjustments does not sum to zero."""
    error_code = "TBE-103"

    def __init__(self, net_total, **kwargs):
        message = f"Adjustment net impact does not sum to zero (net {net_total})"
        super().__init__(message, details={"net_total": str(net_total)}, **kwargs)


# Journal Workflow Errors (TBE-2XX)
class JournalEntryError(TBEngineError):
    """Error in a journal entry operation."""
    error_code = "TBE-200"

    def __init__(self, message: str = "Journal entry operation failed", **kwargs):
        super().__init__(message, **kwargs)


class InvalidStatusTransitionError(JournalEntryError):
    """Requested workflow transition is not allowed."""
    error_code = "TBE-201"

    def __init__(self, entry_id: str, current: str, requested: str, **kwargs):
        message = f"Cannot move journal entry {entry_id} from {current} to {requested}"
        super().__init__(
            message,
            details={"entry_id": entry_id, "current": current, "requested": requested},
            **kwargs,
        )


class InvalidEntryError(JournalEntryError):
    """Journal entry failed validation for the requested operation."""
    error_code = "TBE-202"

    def __init__(self, entry_id: str, errors: List[str], **kwargs):
        message = f"Journal entry {entry_id} is invalid: {'; '.join(errors)}"
        super().__init__(message, details={"entry_id": entry_id, "errors": list(errors)}, **kwargs)


class LineNotFoundError(JournalEntryError):
    """Journal entry line index out of range."""
    error_code = "TBE-203"

    def __init__(self, entry_id: str, index: int, **kwargs):
        message = f"Journal entry {entry_id} has no line at position {index}"
        super().__init__(message, details={"entry_id": entry_id, "index": index}, **kwargs)


# Rule Configuration Errors (TBE-3XX)
class RuleConfigurationError(TBEngineError):
    """Classification rule set is malformed."""
    error_code = "TBE-300"

    def __init__(self, message: str = "Invalid classification rule configuration", **kwargs):
        super().__init__(message, **kwargs)


# Contract Errors (TBE-4XX)
class ContractError(TBEngineError):
    """Engine input could not be converted to domain objects."""
    error_code = "TBE-400"

    def __init__(self, message: str = "Invalid engine input", **kwargs):
        super().__init__(message, **kwargs)
