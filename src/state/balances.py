"""
Bank ledger for the simulated chain.

Implements BalanceTable[Address, Denom] -> Amount, bounded to the chain's
native 128-bit unsigned balance width.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Tuple


# Type aliases
Address = str  # bech32-style account or contract address
Denom = str  # coin denomination, e.g. "uawesome"
Amount = int  # Non-negative integer below 2**128

UINT128_MAX = 2**128 - 1


@dataclass(frozen=True)
class Coin:
    """A single-denomination amount attached to a call or sent by the bank."""

    amount: Amount
    denom: Denom

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


class BalanceTable:
    """
    Balance table mapping (address, denom) -> amount.

    Zero balances are not stored; `get` returns 0 for any unknown pair.
    """

    def __init__(self):
        self._balances: Dict[Tuple[Address, Denom], Amount] = {}

    def get(self, address: Address, denom: Denom) -> Amount:
        """Get balance for (address, denom). Returns 0 if not found."""
        return self._balances.get((address, denom), 0)

    def set(self, address: Address, denom: Denom, amount: Amount) -> None:
        """
        Set balance for (address, denom).

        Raises:
            ValueError: If amount is negative or exceeds the uint128 width
        """
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        if amount > UINT128_MAX:
            raise ValueError(f"Balance overflows uint128: {amount}")
        if amount == 0:
            # Remove zero balances to keep table sparse
            self._balances.pop((address, denom), None)
        else:
            self._balances[(address, denom)] = amount

    def add(self, address: Address, denom: Denom, delta: Amount) -> None:
        """
        Add delta to balance (delta may be negative).

        Raises:
            ValueError: If resulting balance would be negative or overflow
        """
        current = self.get(address, denom)
        new_balance = current + delta
        if new_balance < 0:
            raise ValueError(
                f"Insufficient balance: {current} + {delta} = {new_balance} < 0"
            )
        self.set(address, denom, new_balance)

    def transfer(self, sender: Address, recipient: Address, denom: Denom, amount: Amount) -> None:
        """
        Move `amount` of `denom` from sender to recipient.

        The table is unchanged if the transfer fails.

        Raises:
            ValueError: If amount is not positive or the sender is short
        """
        if amount <= 0:
            raise ValueError(f"Transfer amount must be positive: {amount}")
        if self.get(sender, denom) < amount:
            raise ValueError(
                f"Insufficient funds: {sender} has {self.get(sender, denom)}{denom}, needs {amount}{denom}"
            )
        if self.get(recipient, denom) + amount > UINT128_MAX:
            raise ValueError(f"Balance overflows uint128 for {recipient}")
        self.add(sender, denom, -amount)
        self.add(recipient, denom, amount)

    def get_all_balances(self) -> Dict[Tuple[Address, Denom], Amount]:
        """Return a copy of all non-zero balances keyed by (address, denom)."""
        return dict(self._balances)

    def restore(self, snapshot: Mapping[Tuple[Address, Denom], Amount]) -> None:
        """Replace the table contents with a snapshot from `get_all_balances`."""
        self._balances = dict(snapshot)

    def __repr__(self) -> str:
        return f"BalanceTable({len(self._balances)} entries)"
