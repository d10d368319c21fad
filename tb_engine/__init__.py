"""
IFRS trial-balance engine.

Classifies imported ledger accounts into IFRS statement line items, replays
journal entry adjustments over the immutable import and validates the
accounting invariants of the result.
"""

__version__ = "1.0.0"
