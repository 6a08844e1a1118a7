"""Pump.fun launch scanner with a paper-trading ledger."""

__version__ = "0.3.0"
