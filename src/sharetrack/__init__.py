"""Expense-sharing and allocation engine for shared credit-card invoices."""

__version__ = "0.1.0"
