"""
Bankline

Account management and inter-account money transfers over HTTP, backed by a
relational ledger store. Balances are kept as integer minor units.
"""

__version__ = "1.0.0"
