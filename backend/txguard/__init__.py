"""
TxGuard Security Insights.

Pre-signing risk review for EVM wallet transactions.
"""

__version__ = "1.0.0"
