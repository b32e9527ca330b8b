"""
registry.py - In-memory Checks Registry

A reference implementation of the ItemRegistry protocol, standing in for the
external Checks collection. It owns item lifecycle: minting, custody,
approvals, and the two structural merges.

Items live in an arena keyed by id. A consumed item keeps its slot with
exists=False, so callers can tell "consumed" from "never existed".

Every mutating call validates completely before changing anything, so a call
either applies in full or raises with no side effects. safe_transfer()
additionally reverts the move if the receiving hook raises.

Merge rules (from the Checks collection):
    - merge_pair: two distinct items of equal rank below AGGREGATE_RANK;
      keep gains one rank, burn is consumed.
    - merge_aggregate: exactly AGGREGATE_COUNT distinct items of
      AGGREGATE_RANK; the first becomes MAX_RANK, the rest are consumed.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Set, Tuple
import logging

from .core import (
    Address, Item, ItemReceiver,
    AGGREGATE_COUNT, AGGREGATE_RANK, MAX_RANK, DEFAULT_REGISTRY_ADDRESS,
    ItemNotFound, NotAuthorized, RegistryRejected,
)
from .rank import validate_rank

logger = logging.getLogger(__name__)


class CheckRegistry:
    """
    Item registry with ERC-721 style custody and Checks-style merges.

    Example:
        registry = CheckRegistry()
        item_id = registry.mint("alice", rank=6)
        registry.approve("alice", "bob", item_id)
        registry.transfer("bob", "alice", "carol", item_id)
    """

    def __init__(self, address: Address = DEFAULT_REGISTRY_ADDRESS):
        self._address = address
        self._items: Dict[int, Item] = {}
        self._owners: Dict[int, Address] = {}
        self._approvals: Dict[int, Address] = {}
        self._operators: Set[Tuple[Address, Address]] = set()
        self._receivers: Dict[Address, ItemReceiver] = {}
        # item id -> id whose artwork the item currently shows
        self._visuals: Dict[int, int] = {}
        self._next_id = 1

    @property
    def address(self) -> Address:
        return self._address

    # ========================================================================
    # SETUP
    # ========================================================================

    def mint(self, to: Address, rank: int, item_id: Optional[int] = None) -> int:
        """
        Create a new item of the given rank owned by `to`.

        Args:
            to: Initial custodian.
            rank: Rank in [MIN_RANK, MAX_RANK].
            item_id: Explicit id; defaults to the next unused id.

        Returns:
            The new item's id.

        Raises:
            ValueError: If the id is taken, non-positive, or the rank is invalid.
        """
        validate_rank(rank)
        if item_id is None:
            item_id = self._next_id
        if item_id <= 0:
            raise ValueError(f"item_id must be positive, got {item_id}")
        if item_id in self._items:
            raise ValueError(f"item #{item_id} already minted")
        if not to or not to.strip():
            raise ValueError("owner cannot be empty")

        self._items[item_id] = Item(item_id=item_id, rank=rank)
        self._owners[item_id] = to
        self._visuals[item_id] = item_id
        self._next_id = max(self._next_id, item_id + 1)
        return item_id

    def register_receiver(self, address: Address, receiver: ItemReceiver) -> None:
        """Have safe_transfer() notify `receiver` whenever an item is sent to `address`."""
        self._receivers[address] = receiver

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_item(self, item_id: int) -> Item:
        if item_id not in self._items:
            raise ItemNotFound(f"item #{item_id} does not exist")
        return self._items[item_id]

    def owner_of(self, item_id: int) -> Address:
        item = self.get_item(item_id)
        if not item.exists:
            raise ItemNotFound(f"item #{item_id} has been consumed")
        return self._owners[item_id]

    def get_approved(self, item_id: int) -> Optional[Address]:
        self.owner_of(item_id)
        return self._approvals.get(item_id)

    def is_approved_for_all(self, owner: Address, operator: Address) -> bool:
        return (owner, operator) in self._operators

    def is_authorized(self, owner: Address, operator: Address, item_id: int) -> bool:
        return (
            operator == owner
            or self._approvals.get(item_id) == operator
            or self.is_approved_for_all(owner, operator)
        )

    def tokens_of(self, owner: Address) -> List[int]:
        """Ids of every live item held by owner, ascending."""
        return sorted(i for i, o in self._owners.items() if o == owner)

    def visual_of(self, item_id: int) -> int:
        """Id of the item whose artwork item_id currently shows."""
        self.owner_of(item_id)
        return self._visuals[item_id]

    # ========================================================================
    # APPROVALS
    # ========================================================================

    def approve(self, caller: Address, to: Optional[Address], item_id: int) -> None:
        """
        Grant (or clear, with to=None) the single-item transfer right.

        Raises:
            NotAuthorized: If caller is neither the owner nor a blanket operator.
        """
        owner = self.owner_of(item_id)
        if caller != owner and not self.is_approved_for_all(owner, caller):
            raise NotAuthorized(f"{caller} may not approve item #{item_id}")
        if to is None:
            self._approvals.pop(item_id, None)
        else:
            self._approvals[item_id] = to

    def set_approval_for_all(self, owner: Address, operator: Address, approved: bool) -> None:
        """Grant or revoke blanket transfer rights over every item owner holds."""
        if owner == operator:
            raise ValueError("owner cannot be its own operator")
        if approved:
            self._operators.add((owner, operator))
        else:
            self._operators.discard((owner, operator))

    # ========================================================================
    # CUSTODY TRANSFERS
    # ========================================================================

    def transfer(self, operator: Address, from_: Address, to: Address, item_id: int) -> None:
        """
        Move item_id from from_ to to on operator's authority.

        The single-item approval is cleared on every transfer.

        Raises:
            ItemNotFound: If the item does not exist or was consumed.
            RegistryRejected: If from_ is not the current owner or to is empty.
            NotAuthorized: If operator may not move the item.
        """
        owner = self.owner_of(item_id)
        if from_ != owner:
            raise RegistryRejected(f"item #{item_id} is owned by {owner}, not {from_}")
        if not to or not to.strip():
            raise RegistryRejected("cannot transfer to an empty address")
        if not self.is_authorized(owner, operator, item_id):
            raise NotAuthorized(f"{operator} may not transfer item #{item_id}")

        self._owners[item_id] = to
        self._approvals.pop(item_id, None)
        logger.debug("item #%s: %s -> %s", item_id, from_, to)

    def safe_transfer(
        self,
        operator: Address,
        from_: Address,
        to: Address,
        item_id: int,
        data: bytes = b"",
    ) -> None:
        """
        Transfer, then notify `to` if it registered as a receiver.

        If the receiver raises, the transfer is reverted and the error propagates.
        """
        previous_approval = self._approvals.get(item_id)
        self.transfer(operator, from_, to, item_id)

        receiver = self._receivers.get(to)
        if receiver is None:
            return
        try:
            receiver.on_item_received(self._address, operator, from_, item_id, data)
        except Exception:
            self._owners[item_id] = from_
            if previous_approval is not None:
                self._approvals[item_id] = previous_approval
            logger.debug("item #%s: receiver %s refused, reverted to %s", item_id, to, from_)
            raise

    # ========================================================================
    # MERGES
    # ========================================================================

    def _require_mergeable(self, operator: Address, item_id: int) -> Item:
        owner = self.owner_of(item_id)
        if not self.is_authorized(owner, operator, item_id):
            raise NotAuthorized(f"{operator} may not merge item #{item_id}")
        return self._items[item_id]

    def _consume(self, item_id: int) -> None:
        self._items[item_id] = replace(self._items[item_id], exists=False)
        del self._owners[item_id]
        self._approvals.pop(item_id, None)

    def merge_pair(self, operator: Address, keep_id: int, burn_id: int, swap: bool = False) -> None:
        """
        Merge burn_id into keep_id.

        With swap=True the surviving item takes on burn_id's artwork.

        Raises:
            RegistryRejected: If ids are equal, ranks differ, or the rank is
                              too high for pairwise merging.
            NotAuthorized: If operator may not move either item.
            ItemNotFound: If either item does not exist.
        """
        if keep_id == burn_id:
            raise RegistryRejected(f"cannot merge item #{keep_id} with itself")
        keep = self._require_mergeable(operator, keep_id)
        burn = self._require_mergeable(operator, burn_id)
        if keep.rank != burn.rank:
            raise RegistryRejected(
                f"rank mismatch: #{keep_id} is {keep.rank}, #{burn_id} is {burn.rank}"
            )
        if keep.rank >= AGGREGATE_RANK:
            raise RegistryRejected(
                f"rank {keep.rank} items cannot be merged pairwise"
            )

        self._items[keep_id] = replace(keep, rank=keep.rank + 1)
        if swap:
            self._visuals[keep_id] = self._visuals[burn_id]
        self._consume(burn_id)
        logger.debug("merged #%s into #%s (rank %s)", burn_id, keep_id, keep.rank + 1)

    def merge_aggregate(self, operator: Address, item_ids: Sequence[int]) -> None:
        """
        Merge AGGREGATE_COUNT items of AGGREGATE_RANK into item_ids[0].

        Raises:
            RegistryRejected: On wrong count, duplicates, or wrong rank.
            NotAuthorized: If operator may not move any one of the items.
            ItemNotFound: If any item does not exist.
        """
        ids = list(item_ids)
        if len(ids) != AGGREGATE_COUNT:
            raise RegistryRejected(f"aggregate needs {AGGREGATE_COUNT} items, got {len(ids)}")
        if len(set(ids)) != len(ids):
            raise RegistryRejected("aggregate items must be distinct")
        for item_id in ids:
            item = self._require_mergeable(operator, item_id)
            if item.rank != AGGREGATE_RANK:
                raise RegistryRejected(
                    f"item #{item_id} has rank {item.rank}, aggregate needs {AGGREGATE_RANK}"
                )

        survivor = ids[0]
        self._items[survivor] = replace(self._items[survivor], rank=MAX_RANK)
        for item_id in ids[1:]:
            self._consume(item_id)
        logger.debug("aggregated %d items into #%s", len(ids), survivor)
