"""
Personal Ledger - Source Package

A personal-finance ledger: wallets, categorized transactions and
budgets, kept mutually consistent by the ledger engine.

DESIGN PRINCIPLES:
1. A wallet balance moves only through its transactions
2. Fail early, fail visibly
3. No silent corrections
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Ledger Team"
