"""Tournament wallet ledger: balances, seat entry and audited admin adjustments."""

__version__ = "1.0.0"
