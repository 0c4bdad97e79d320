"""PayU payment initiation, callback reconciliation and status verification."""

__version__ = "0.1.0"
