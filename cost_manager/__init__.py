"""Cost Manager: multi-currency expense ledger with rate-aware reports."""

__version__ = "0.1.0"
