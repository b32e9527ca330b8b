"""
custody.py - Custody Ledger

Checks the preconditions on moving an item before any custody transfer runs,
then delegates the transfer itself to the item registry.

Two directions:
    Deposit:    custodian (or an approved operator) -> engine
    Redemption: engine -> caller

Authorization is never cached. Both grant mechanisms, the per-item approval
and the blanket operator approval, are read from the registry at the moment
of use.
"""

from __future__ import annotations
from typing import Tuple
import logging

from .core import (
    Address, Item, ItemRegistry,
    ItemNotFound, NotAuthorized, RegistryRejected,
)

logger = logging.getLogger(__name__)


class CustodyLedger:
    """
    Precondition gate between the engine and the item registry.

    Attributes:
        registry: The external item authority.
        custodian: Identity of the engine; items it owns are "in custody".
    """

    def __init__(self, registry: ItemRegistry, custodian: Address):
        self.registry = registry
        self.custodian = custodian

    # ========================================================================
    # PRECONDITIONS (read-only)
    # ========================================================================

    def require_exists(self, item_id: int) -> Item:
        """
        Return the item as currently reported by the registry.

        Raises:
            ItemNotFound: If the item never existed or has been consumed.
        """
        item = self.registry.get_item(item_id)
        if not item.exists:
            raise ItemNotFound(f"item #{item_id} has been consumed")
        return item

    def is_transfer_allowed(self, caller: Address, item_id: int) -> bool:
        """
        True if caller may move item_id out of its current custodian's hands.

        Holds when caller is the custodian, holds the single-item approval,
        or holds a blanket approval from the custodian.
        """
        owner = self.registry.owner_of(item_id)
        if caller == owner:
            return True
        return (
            self.registry.get_approved(item_id) == caller
            or self.registry.is_approved_for_all(owner, caller)
        )

    def require_depositable(self, caller: Address, item_id: int) -> Tuple[Address, Item]:
        """
        Validate a deposit of item_id initiated by caller.

        Returns:
            (owner, item): the custodian to credit and the item snapshot.

        Raises:
            ItemNotFound: If the item does not exist.
            RegistryRejected: If the engine already holds the item.
            NotAuthorized: If caller has no transfer rights on the item.
        """
        item = self.require_exists(item_id)
        owner = self.registry.owner_of(item_id)
        if owner == self.custodian:
            raise RegistryRejected(f"item #{item_id} is already in custody")
        if not self.is_transfer_allowed(caller, item_id):
            raise NotAuthorized(f"{caller} may not transfer item #{item_id} owned by {owner}")
        return owner, item

    def require_in_custody(self, item_id: int) -> Item:
        """
        Validate that the engine currently holds item_id.

        Raises:
            ItemNotFound: If the item does not exist.
            RegistryRejected: If someone other than the engine holds it.
        """
        item = self.require_exists(item_id)
        owner = self.registry.owner_of(item_id)
        if owner != self.custodian:
            raise RegistryRejected(f"item #{item_id} is held by {owner}, not in custody")
        return item

    # ========================================================================
    # TRANSFERS (delegated to the registry)
    # ========================================================================

    def pull(self, caller: Address, owner: Address, item_id: int) -> None:
        """Move item_id from owner into custody, acting for caller."""
        self.registry.transfer(caller, owner, self.custodian, item_id)
        logger.debug("item #%s: %s -> %s (by %s)", item_id, owner, self.custodian, caller)

    def release(self, to: Address, item_id: int) -> None:
        """Move item_id out of custody to `to`, notifying `to` if it is a receiver."""
        self.registry.safe_transfer(self.custodian, self.custodian, to, item_id)
        logger.debug("item #%s: %s -> %s", item_id, self.custodian, to)

    def return_to(self, owner: Address, item_id: int) -> None:
        """Undo a pull() by handing item_id back to its previous custodian."""
        self.registry.transfer(self.custodian, self.custodian, owner, item_id)
        logger.debug("item #%s returned to %s", item_id, owner)
