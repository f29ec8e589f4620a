"""
Ledger state for the simulated chain
"""

from .balances import UINT128_MAX, BalanceTable, Coin

__all__ = [
    "BalanceTable",
    "Coin",
    "UINT128_MAX",
]
