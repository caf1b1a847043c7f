"""Domain models and types for the balance ledger.

This package contains in-memory (Pydantic) models for accounts, transactions,
transfers and derived balances, plus the balance ledger itself. They are
independent from persistence so that business logic and testing can evolve
without DB coupling.
"""

__all__ = [
    "account",
    "account_locks",
    "balance_ledger",
    "balances",
    "base_types",
    "errors",
    "pricing",
    "transaction",
    "transfer",
]
