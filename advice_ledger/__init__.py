"""
Advice ledger - private career questions stored on a plain key-value backend.
"""

from .core.ledger import AdviceLedger, LedgerView
from .core.schema import AdviceRecord, CATEGORIES

__all__ = [
    'AdviceLedger',
    'LedgerView',
    'AdviceRecord',
    'CATEGORIES'
]
