"""
FINSTMT – Financial Statement Derivation Engine

Derives point-in-time account balances from an append-only ledger and
assembles Balance Sheet, Profit & Loss and Trial Balance reports with
accounting equation checks, ratio analysis and statement versioning.
"""

__version__ = "0.1.0"
__author__ = "Conrad"
