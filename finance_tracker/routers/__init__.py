"""API routers package."""

from finance_tracker.routers import imports, transactions

__all__ = [
    "imports",
    "transactions",
]
