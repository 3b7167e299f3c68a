"""Savings, loan and withdrawal ledger for member cooperatives."""

__version__ = "0.1.0"
