"""
engine.py - Conversion Engine

The ConversionEngine is the public face of the system and the only component
that mutates fungible state. It converts Checks into $BLKCHK and back, and
forwards merge requests for the Checks it holds.

Key responsibilities:
    - deposit(): pull items into custody, issue their amount to the prior custodian
    - on_item_received(): the same issuance for items pushed in via safe_transfer
    - redeem(): burn the item's current amount from the caller, release the item
    - merge_pair() / merge_aggregate(): forward to the MergeOrchestrator
    - receive_value(): refuse bare native value, always
    - record every applied operation in record_log

Every mutating operation is a single unit of work: it either commits in full
or raises with balances, supply, custody and the record log as they were.
Operations are serialized; nested entry raises ReentrantCall.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple
import logging

from .core import (
    # Types
    Address, ConversionRecord, ItemRegistry, RecordKind,
    # Constants
    DEFAULT_ENGINE_ADDRESS, MAX_SUPPLY,
    # Exceptions
    ConversionError, OnlyRegistry,
    # Helpers
    format_amount,
)
from .custody import CustodyLedger
from .fungible import FungibleLedger
from .guards import check_supply_ceiling, non_reentrant, reject_value
from .merge import MergeOrchestrator
from .rank import amount_for


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DepositLeg:
    """
    One validated item of a deposit batch, before anything has moved.

    Attributes:
        item_id: Item to pull into custody.
        owner: Custodian the item is taken from; receives the amount.
        rank: Item rank at planning time.
        amount: Fungible amount to issue, amount_for(rank).
    """
    item_id: int
    owner: Address
    rank: int
    amount: int


def plan_deposit(
    custody: CustodyLedger,
    caller: Address,
    item_ids: Sequence[int],
    total_issued: int,
    max_supply: int,
) -> Tuple[DepositLeg, ...]:
    """
    Validate a deposit batch without moving anything.

    Items are checked in order. Each item's ceiling check includes the amounts
    of the items planned before it, so the batch is judged exactly as if the
    items were deposited one after another.

    Raises:
        ValueError: If item_ids is empty or repeats an id.
        SupplyCeilingExceeded: If the running supply would pass max_supply.
        NotAuthorized, ItemNotFound, RegistryRejected: From the custody checks.
    """
    ids = tuple(item_ids)
    if not ids:
        raise ValueError("item_ids cannot be empty")
    if len(set(ids)) != len(ids):
        raise ValueError(f"item_ids contains duplicates: {list(ids)}")

    legs = []
    running = total_issued
    for item_id in ids:
        owner, item = custody.require_depositable(caller, item_id)
        amount = amount_for(item.rank)
        running = check_supply_ceiling(running, amount, max_supply)
        legs.append(DepositLeg(item_id=item_id, owner=owner, rank=item.rank, amount=amount))
    return tuple(legs)


class ConversionEngine:
    """
    Custodial converter between ranked items and the fungible unit.

    Thread Safety:
        Not thread-safe. Each thread should use its own engine.

    Example:
        registry = CheckRegistry()
        engine = ConversionEngine(registry)
        registry.register_receiver(engine.address, engine)

        check = registry.mint("alice", rank=6)
        engine.deposit("alice", [check])
        assert engine.balance_of("alice") == UNIT // 64
        engine.redeem("alice", check)
    """

    def __init__(
        self,
        registry: ItemRegistry,
        address: Address = DEFAULT_ENGINE_ADDRESS,
        max_supply: int = MAX_SUPPLY,
    ):
        """
        Create an engine bound to an item registry.

        Args:
            registry: External item authority holding custody and ranks
            address: Identity the engine holds items under
            max_supply: Ceiling on total_issued (default: one black check)
        """
        if not address or not address.strip():
            raise ValueError("engine address cannot be empty")
        self.address = address
        self.registry = registry
        self.ledger = FungibleLedger(max_supply)
        self.custody = CustodyLedger(registry, address)
        self.merger = MergeOrchestrator(self.custody)
        self.record_log: List[ConversionRecord] = []
        self._next_sequence: int = 0
        self._entered = False

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    @property
    def name(self) -> str:
        return self.ledger.name

    @property
    def symbol(self) -> str:
        return self.ledger.symbol

    @property
    def decimals(self) -> int:
        return self.ledger.decimals

    @property
    def registry_address(self) -> Address:
        """Identity of the only party allowed to call on_item_received()."""
        return self.registry.address

    def max_supply(self) -> int:
        return self.ledger.max_supply

    def total_issued(self) -> int:
        return self.ledger.total_issued

    def balance_of(self, account: Address) -> int:
        return self.ledger.balance_of(account)

    def allowance(self, owner: Address, spender: Address) -> int:
        return self.ledger.allowance(owner, spender)

    def verify_supply(self) -> Dict[str, Any]:
        """Check total_issued == sum of balances <= max_supply. See guards.verify_supply()."""
        return self.ledger.verify_supply()

    # ========================================================================
    # UNIT OF WORK
    # ========================================================================

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[List[Callable[[], None]]]:
        """
        Run a block as one unit of work.

        Yields a list the block appends compensating actions to. On any
        exception the fungible ledger is restored from its snapshot, the
        compensations run in reverse order, records added by the block are
        dropped, and the original exception propagates.

        Every compensation is attempted. One that fails is logged at ERROR
        and does not replace the original exception.
        """
        snapshot = self.ledger.snapshot()
        log_length = len(self.record_log)
        sequence = self._next_sequence
        undo: List[Callable[[], None]] = []
        try:
            yield undo
        except Exception as exc:
            self.ledger.restore(snapshot)
            for compensate in reversed(undo):
                try:
                    compensate()
                except Exception:
                    logger.exception("%s rollback: compensation %r failed", operation, compensate)
            del self.record_log[log_length:]
            self._next_sequence = sequence
            if isinstance(exc, ConversionError):
                logger.warning("%s rejected: %s: %s", operation, type(exc).__name__, exc)
            raise

    def _record(
        self,
        kind: RecordKind,
        caller: Address,
        account: Optional[Address],
        item_ids: Tuple[int, ...],
        amount: int,
    ) -> ConversionRecord:
        record = ConversionRecord(
            kind=kind,
            caller=caller,
            account=account,
            item_ids=item_ids,
            amount=amount,
            total_issued=self.ledger.total_issued,
            sequence_number=self._next_sequence,
        )
        self._next_sequence += 1
        self.record_log.append(record)
        return record

    # ========================================================================
    # CONVERSION
    # ========================================================================

    @non_reentrant
    def deposit(self, caller: Address, item_ids: Sequence[int]) -> int:
        """
        Convert items into the fungible unit.

        Each item is processed in order: its amount is checked against the
        supply ceiling (including amounts issued for earlier items in the same
        batch), it is moved into custody, and its amount is credited to the
        custodian it was taken from, who need not be the caller.

        Args:
            caller: Custodian of the items, or an identity approved to move them
            item_ids: Items to deposit

        Returns:
            Total amount issued for the batch.

        Raises:
            ValueError: If item_ids is empty or repeats an id.
            SupplyCeilingExceeded: If any item would push supply past the ceiling.
            NotAuthorized: If caller may not move one of the items.
            ItemNotFound, RegistryRejected: As reported by the registry.

        If the registry refuses a pull after the batch was validated, items
        already pulled are handed back to their custodians, but any per-item
        approval the pull cleared is not restored. Blanket approvals are
        unaffected.
        """
        with self._atomic("deposit") as undo:
            legs = plan_deposit(
                self.custody, caller, item_ids,
                self.ledger.total_issued, self.ledger.max_supply,
            )
            for leg in legs:
                self.custody.pull(caller, leg.owner, leg.item_id)
                undo.append(partial(self.custody.return_to, leg.owner, leg.item_id))
                self.ledger.credit(leg.owner, leg.amount)
                self._record(RecordKind.DEPOSIT, caller, leg.owner, (leg.item_id,), leg.amount)

        issued = sum(leg.amount for leg in legs)
        logger.info(
            "deposit by %s: %d item(s), issued %s, supply %s",
            caller, len(legs), format_amount(issued), format_amount(self.ledger.total_issued),
        )
        return issued

    @non_reentrant
    def on_item_received(
        self,
        sender: Address,
        operator: Address,
        from_: Address,
        item_id: int,
        data: bytes = b"",
    ) -> None:
        """
        Issue the amount for an item pushed into custody with safe_transfer.

        The registry has already moved the item when this runs. Raising makes
        the registry revert that move.

        Raises:
            OnlyRegistry: If sender is not the registry.
            SupplyCeilingExceeded: If the item's amount would exceed the ceiling.
        """
        if sender != self.registry.address:
            logger.warning("on_item_received from %s refused", sender)
            raise OnlyRegistry(f"only {self.registry.address} may deliver items, not {sender}")

        with self._atomic("on_item_received"):
            item = self.custody.require_in_custody(item_id)
            amount = amount_for(item.rank)
            check_supply_ceiling(self.ledger.total_issued, amount, self.ledger.max_supply)
            self.ledger.credit(from_, amount)
            self._record(RecordKind.DEPOSIT, operator, from_, (item_id,), amount)

        logger.info(
            "received #%s from %s, issued %s, supply %s",
            item_id, from_, format_amount(amount), format_amount(self.ledger.total_issued),
        )

    @non_reentrant
    def redeem(self, caller: Address, item_id: int) -> int:
        """
        Convert the fungible unit back into a specific item held in custody.

        The price is the item's amount at its current rank. If the item was
        merged while in custody this differs from what its depositor received.

        Returns:
            The amount burned from caller.

        Raises:
            ItemNotFound: If the item does not exist or was consumed.
            RegistryRejected: If the engine does not hold the item.
            InsufficientBalance: If caller holds less than the item's amount.
        """
        with self._atomic("redeem"):
            item = self.custody.require_in_custody(item_id)
            amount = amount_for(item.rank)
            self.ledger.debit(caller, amount)
            self.custody.release(caller, item_id)
            self._record(RecordKind.REDEEM, caller, caller, (item_id,), amount)

        logger.info(
            "redeem #%s by %s, burned %s, supply %s",
            item_id, caller, format_amount(amount), format_amount(self.ledger.total_issued),
        )
        return amount

    def receive_value(self, sender: Address, value: int, data: Optional[bytes] = None) -> None:
        """Refuse bare native value, with or without call data."""
        reject_value(sender, value, data)

    # ========================================================================
    # MERGES
    # ========================================================================

    @non_reentrant
    def merge_pair(self, caller: Address, keep_id: int, burn_id: int) -> None:
        """
        Merge two items in custody; keep_id must be the lower id.

        Open to any caller. Balances and supply are unaffected.

        Raises:
            InvalidOrder: If keep_id >= burn_id, before the registry is consulted.
            RegistryRejected: If either item is not held by the engine, or the
                              registry refuses the merge.
            ItemNotFound: If either item does not exist or was consumed.
        """
        with self._atomic("merge_pair"):
            self.merger.merge_pair(keep_id, burn_id)
            self._record(RecordKind.MERGE, caller, None, (keep_id, burn_id), 0)

    @non_reentrant
    def merge_aggregate(self, caller: Address, item_ids: Sequence[int]) -> int:
        """
        Merge AGGREGATE_COUNT single checks in custody into one black check.

        The first id must be the smallest; it survives at the maximal rank.

        Returns:
            The surviving item's id.

        Raises:
            ValueError: If item_ids does not hold exactly AGGREGATE_COUNT ids.
            InvalidOrder: If the first id is not the smallest.
            RegistryRejected: If any item is not held by the engine, or the
                              registry refuses the merge.
            ItemNotFound: If any item does not exist or was consumed.
        """
        with self._atomic("merge_aggregate"):
            ids = self.merger.merge_aggregate(item_ids)
            self._record(RecordKind.AGGREGATE, caller, None, ids, 0)
        return ids[0]

    # ========================================================================
    # FUNGIBLE TRANSFERS
    # ========================================================================

    @non_reentrant
    def transfer(self, caller: Address, to: Address, amount: int) -> None:
        """Move amount of the caller's balance to `to`. Supply is unchanged."""
        with self._atomic("transfer"):
            self.ledger.transfer(caller, to, amount)
            self._record(RecordKind.TRANSFER, caller, to, (), amount)

    @non_reentrant
    def approve(self, caller: Address, spender: Address, amount: int) -> None:
        """Allow spender to move up to amount out of the caller's balance."""
        with self._atomic("approve"):
            self.ledger.approve(caller, spender, amount)
            self._record(RecordKind.APPROVAL, caller, spender, (), amount)

    @non_reentrant
    def transfer_from(self, caller: Address, owner: Address, to: Address, amount: int) -> None:
        """Move amount from owner to `to`, spending the caller's allowance."""
        with self._atomic("transfer_from"):
            self.ledger.transfer_from(caller, owner, to, amount)
            self._record(RecordKind.TRANSFER, caller, to, (), amount)
