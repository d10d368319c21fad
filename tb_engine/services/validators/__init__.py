"""Validators package."""
from tb_engine.services.validators.accounting_equation import AccountingEquationValidator
from tb_engine.services.validators.battery import InvariantValidator, summarize
from tb_engine.services.validators.reconciliation import ReconciliationValidator
from tb_engine.services.validators.statement_structure import StatementStructureValidator
from tb_engine.services.validators.trial_balance import TrialBalanceValidator

__all__ = [
    "AccountingEquationValidator",
    "InvariantValidator",
    "ReconciliationValidator",
    "StatementStructureValidator",
    "TrialBalanceValidator",
    "summarize",
]
