"""Spot-trading backend pieces: candle storage and sync, CSV import, lot ledger, balances, instances and trade commands."""

__version__ = "0.1.0"