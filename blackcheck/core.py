"""
Core types and constants for the Check conversion ledger.

This module provides the foundational data structures shared by every component:
1. Constants: fixed-point unit, rank bounds, supply ceiling, token metadata
2. Protocols: ItemRegistry (external item authority) and ItemReceiver (push hook)
3. Immutable data structures: Item, ConversionRecord
4. Exceptions: ConversionError and the domain-specific error types
5. Formatting: format_amount for fixed-point amounts

Nothing in this module mutates state.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import (
    Dict, Optional, Protocol, Sequence, Tuple, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Fungible amounts are unsigned integers with 18 fractional digits.
TOKEN_DECIMALS = 18
UNIT = 10 ** TOKEN_DECIMALS

TOKEN_NAME = "Black Check"
TOKEN_SYMBOL = "$BLKCHK"

# Rank index of an item. Rank 6 is a single check, rank 7 the black check.
MIN_RANK = 0
MAX_RANK = 7

# The whole supply is exactly one black check.
MAX_SUPPLY = UNIT

# Divisor applied to 2**rank for every rank below MAX_RANK.
RANK_DIVISOR = 4096

# Aggregation takes this many items of AGGREGATE_RANK into one MAX_RANK item.
AGGREGATE_RANK = MAX_RANK - 1
AGGREGATE_COUNT = 2 ** AGGREGATE_RANK

# Default identities of the two parties in custody transfers.
DEFAULT_ENGINE_ADDRESS = "black_check"
DEFAULT_REGISTRY_ADDRESS = "checks"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Identity of an account holder, custodian or operator.
Address = str

# Mapping from identity to fungible balance in base units.
BalanceMap = Dict[Address, int]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ConversionError(Exception):
    """Base exception for all conversion ledger errors."""
    pass


class SupplyCeilingExceeded(ConversionError):
    """Raised when an issuance would push total_issued above MAX_SUPPLY."""
    pass


class InsufficientBalance(ConversionError):
    """Raised when a debit exceeds the account's balance."""
    pass


class InsufficientAllowance(ConversionError):
    """Raised when a delegated transfer exceeds the spender's allowance."""
    pass


class InvalidOrder(ConversionError):
    """Raised when a merge's item ordering precondition is violated."""
    pass


class NotAuthorized(ConversionError):
    """Raised when the caller lacks transfer rights on an item."""
    pass


class OnlyRegistry(NotAuthorized):
    """Raised when the receive hook is invoked by anyone but the item registry."""
    pass


class ItemNotFound(ConversionError):
    """Raised when an item does not exist or has been consumed by a merge."""
    pass


class RegistryRejected(ConversionError):
    """Raised when the item registry refuses a transfer or a merge."""
    pass


class UnsolicitedValueRejected(ConversionError):
    """Raised when bare native value is sent to the engine."""
    pass


class ReentrantCall(ConversionError):
    """Raised when an engine operation is entered while another is still running."""
    pass


# ============================================================================
# ENUMS
# ============================================================================

class RecordKind(Enum):
    """
    Classification of an applied engine operation.

    DEPOSIT:   items moved into custody, fungible amount issued.
    REDEEM:    item released from custody, fungible amount burned.
    MERGE:     two items in custody merged pairwise.
    AGGREGATE: AGGREGATE_COUNT items merged into one black check.
    TRANSFER:  fungible balance moved between accounts.
    APPROVAL:  fungible allowance set.
    """
    DEPOSIT = "deposit"
    REDEEM = "redeem"
    MERGE = "merge"
    AGGREGATE = "aggregate"
    TRANSFER = "transfer"
    APPROVAL = "approval"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Item:
    """
    Snapshot of a collectible as reported by the item registry.

    Attributes:
        item_id: Unique identifier within the registry.
        rank: Discrete rarity tier in [MIN_RANK, MAX_RANK]. Never decreases.
        exists: False once the item was consumed as the burn side of a merge.
    """
    item_id: int
    rank: int
    exists: bool = True

    def __repr__(self) -> str:
        state = "" if self.exists else ", consumed"
        return f"Item(#{self.item_id}, rank={self.rank}{state})"


@dataclass(frozen=True, slots=True)
class ConversionRecord:
    """
    An applied, immutable record of one engine operation.

    Attributes:
        kind: Which operation was applied.
        caller: Identity that invoked the operation.
        account: Identity whose balance changed (credited, debited or receiving).
        item_ids: Items involved, in the order the caller supplied them.
        amount: Fungible amount issued, burned or moved (0 for merges).
        total_issued: Supply after the operation committed.
        sequence_number: Monotonic position within the engine's record log.
    """
    kind: RecordKind
    caller: Address
    account: Optional[Address]
    item_ids: Tuple[int, ...]
    amount: int
    total_issued: int
    sequence_number: int

    def __repr__(self) -> str:
        items = ",".join(f"#{i}" for i in self.item_ids)
        return (
            f"Record[{self.sequence_number}]({self.kind.value} by {self.caller}"
            f" items=[{items}] amount={format_amount(self.amount)}"
            f" supply={format_amount(self.total_issued)})"
        )


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class ItemReceiver(Protocol):
    """Anything that accepts items pushed to it through safe_transfer."""

    def on_item_received(
        self,
        sender: Address,
        operator: Address,
        from_: Address,
        item_id: int,
        data: bytes = b"",
    ) -> None:
        """
        React to custody of item_id having been moved to this receiver.

        Raising aborts the transfer; the registry restores the previous custodian.
        """
        ...


@runtime_checkable
class ItemRegistry(Protocol):
    """
    Interface to the external registry that owns item lifecycle and custody.

    The registry is authoritative for existence, rank, ownership and
    approvals, and performs every structural change atomically: a call
    either completes or raises without side effects.
    """

    @property
    def address(self) -> Address:
        """Identity the registry presents when calling receivers."""
        ...

    def get_item(self, item_id: int) -> Item:
        """Return the item; consumed items come back with exists=False. Unknown ids raise ItemNotFound."""
        ...

    def owner_of(self, item_id: int) -> Address:
        """Return the current custodian, raising ItemNotFound if absent."""
        ...

    def get_approved(self, item_id: int) -> Optional[Address]:
        """Return the identity holding the single-item grant, if any."""
        ...

    def is_approved_for_all(self, owner: Address, operator: Address) -> bool:
        """Return True if owner granted operator blanket transfer rights."""
        ...

    def is_authorized(self, owner: Address, operator: Address, item_id: int) -> bool:
        """Return True if operator may move item_id on behalf of owner."""
        ...

    def transfer(self, operator: Address, from_: Address, to: Address, item_id: int) -> None:
        """Move custody of item_id; fails loudly if unauthorized or nonexistent."""
        ...

    def safe_transfer(
        self, operator: Address, from_: Address, to: Address, item_id: int, data: bytes = b""
    ) -> None:
        """Move custody and notify the receiver; reverted if the receiver raises."""
        ...

    def merge_pair(self, operator: Address, keep_id: int, burn_id: int, swap: bool) -> None:
        """Raise keep_id's rank by one and consume burn_id, or fail atomically."""
        ...

    def merge_aggregate(self, operator: Address, item_ids: Sequence[int]) -> None:
        """Raise item_ids[0] to MAX_RANK and consume the rest, or fail atomically."""
        ...


# ============================================================================
# FORMATTING
# ============================================================================

def format_amount(amount: int) -> str:
    """
    Render a fixed-point amount as a decimal string in whole tokens.

    Trailing zeros are removed, so UNIT // 64 renders as "0.015625" and
    MAX_SUPPLY as "1".
    """
    value = (Decimal(amount) / Decimal(UNIT)).normalize()
    if value == value.to_integral_value():
        return str(int(value))
    return format(value, 'f')
