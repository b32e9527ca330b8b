"""
fungible.py - Fungible Ledger Substrate

The FungibleLedger holds every account's $BLKCHK balance and the global
total_issued counter. It is the only place those two pieces of state live.

Key responsibilities:
    - credit/debit for issuance and redemption (supply changes)
    - transfer/approve/transfer_from between third parties (supply unchanged)
    - snapshot/restore so callers can roll back a failed unit of work
    - verify_supply() to check total_issued against the sum of balances

The ceiling on issuance is enforced by the ConversionEngine before it calls
credit(); this class only guarantees that balances never go negative and that
total_issued always equals the sum of balances.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple
import logging

from .core import (
    Address, BalanceMap,
    TOKEN_NAME, TOKEN_SYMBOL, TOKEN_DECIMALS, MAX_SUPPLY,
    InsufficientBalance, InsufficientAllowance,
    format_amount,
)
from .guards import verify_supply

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Frozen copy of balances, allowances and supply taken by FungibleLedger.snapshot()."""
    balances: Tuple[Tuple[Address, int], ...]
    allowances: Tuple[Tuple[Tuple[Address, Address], int], ...]
    total_issued: int


def _require_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"amount must be an int, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"amount must be non-negative, got {amount}")


class FungibleLedger:
    """
    Balance mapping plus supply counter for the fungible unit.

    Accounts are implicit: any identity reads as zero until first credited,
    and an account is never removed, only decays to zero.

    Thread Safety:
        Not thread-safe. The owning engine serializes all access.

    Example:
        ledger = FungibleLedger()
        ledger.credit("alice", UNIT // 64)
        ledger.transfer("alice", "bob", UNIT // 128)
        assert ledger.total_issued == UNIT // 64
    """

    name = TOKEN_NAME
    symbol = TOKEN_SYMBOL
    decimals = TOKEN_DECIMALS

    def __init__(self, max_supply: int = MAX_SUPPLY):
        self.max_supply = max_supply
        self._balances: BalanceMap = {}
        self._allowances: Dict[Tuple[Address, Address], int] = {}
        self._total_issued: int = 0

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    @property
    def total_issued(self) -> int:
        """Sum of all balances."""
        return self._total_issued

    def balance_of(self, account: Address) -> int:
        """Balance of account (0 if never credited)."""
        return self._balances.get(account, 0)

    def allowance(self, owner: Address, spender: Address) -> int:
        """Amount spender may still move out of owner's account."""
        return self._allowances.get((owner, spender), 0)

    def balances(self) -> BalanceMap:
        """Copy of every non-zero balance."""
        return {a: b for a, b in self._balances.items() if b}

    def verify_supply(self) -> Dict[str, Any]:
        """
        Check that total_issued equals the sum of balances and is within the ceiling.

        Returns the report produced by guards.verify_supply().
        """
        return verify_supply(self._balances, self._total_issued, self.max_supply)

    # ========================================================================
    # ISSUANCE AND REDEMPTION (Mutating)
    # ========================================================================

    def credit(self, account: Address, amount: int) -> int:
        """
        Issue amount to account, increasing total_issued by the same.

        Returns:
            The account's new balance.
        """
        _require_amount(amount)
        new_balance = self._balances.get(account, 0) + amount
        self._balances[account] = new_balance
        self._total_issued += amount
        return new_balance

    def debit(self, account: Address, amount: int) -> int:
        """
        Burn amount from account, decreasing total_issued by the same.

        Raises:
            InsufficientBalance: If account holds less than amount. Nothing changes.
        """
        _require_amount(amount)
        current = self._balances.get(account, 0)
        if current < amount:
            raise InsufficientBalance(
                f"{account} holds {format_amount(current)}, needs {format_amount(amount)}"
            )
        self._balances[account] = current - amount
        self._total_issued -= amount
        return current - amount

    # ========================================================================
    # THIRD-PARTY TRANSFERS (Mutating, supply-neutral)
    # ========================================================================

    def transfer(self, sender: Address, to: Address, amount: int) -> None:
        """
        Move amount from sender to to.

        Raises:
            InsufficientBalance: If sender holds less than amount.
        """
        _require_amount(amount)
        current = self._balances.get(sender, 0)
        if current < amount:
            raise InsufficientBalance(
                f"{sender} holds {format_amount(current)}, cannot send {format_amount(amount)}"
            )
        self._balances[sender] = current - amount
        self._balances[to] = self._balances.get(to, 0) + amount
        logger.debug("transfer %s %s -> %s", format_amount(amount), sender, to)

    def approve(self, owner: Address, spender: Address, amount: int) -> None:
        """Set spender's allowance over owner's account to exactly amount."""
        _require_amount(amount)
        self._allowances[(owner, spender)] = amount

    def transfer_from(self, spender: Address, owner: Address, to: Address, amount: int) -> None:
        """
        Move amount from owner to to, spending spender's allowance.

        Raises:
            InsufficientAllowance: If the allowance is below amount.
            InsufficientBalance: If owner holds less than amount.
        """
        _require_amount(amount)
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise InsufficientAllowance(
                f"{spender} may spend {format_amount(allowed)} of {owner}, "
                f"needs {format_amount(amount)}"
            )
        self.transfer(owner, to, amount)
        self._allowances[(owner, spender)] = allowed - amount

    # ========================================================================
    # ROLLBACK
    # ========================================================================

    def snapshot(self) -> LedgerSnapshot:
        """Capture the full state so a failed unit of work can be undone."""
        return LedgerSnapshot(
            balances=tuple(self._balances.items()),
            allowances=tuple(self._allowances.items()),
            total_issued=self._total_issued,
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        """Replace the current state with a previously captured snapshot."""
        self._balances = dict(snapshot.balances)
        self._allowances = dict(snapshot.allowances)
        self._total_issued = snapshot.total_issued

    def accounts(self) -> List[Address]:
        """Every identity ever credited, sorted for deterministic iteration."""
        return sorted(self._balances)
