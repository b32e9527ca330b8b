"""
merge.py - Merge Orchestrator

Pairwise and aggregate merges of items the engine holds.

Before the registry is contacted the orchestrator checks, in order:
1. Shape: an aggregate takes exactly AGGREGATE_COUNT ids
2. Ordering: the kept item must carry the smallest id
3. Custody: every item named must currently be held by the engine

An approval granted to the engine over an outside item therefore never lets
a merge reach it. Rank compatibility and uniqueness are the registry's checks
and are not repeated here.

Both merges are permissionless: they can only touch items already in the
engine's custody.
"""

from __future__ import annotations
from typing import Sequence, Tuple
import logging

from .core import AGGREGATE_COUNT, InvalidOrder
from .custody import CustodyLedger

logger = logging.getLogger(__name__)


def validate_pair_order(keep_id: int, burn_id: int) -> None:
    """
    Require keep_id < burn_id.

    Raises:
        InvalidOrder: If keep_id >= burn_id.
    """
    if not keep_id < burn_id:
        raise InvalidOrder(f"keep id {keep_id} must be lower than burn id {burn_id}")


def validate_aggregate_order(item_ids: Sequence[int]) -> Tuple[int, ...]:
    """
    Require exactly AGGREGATE_COUNT ids, the first being the smallest.

    Every element is scanned; the rest may come in any order.

    Returns:
        The ids as a tuple.

    Raises:
        ValueError: If item_ids does not hold exactly AGGREGATE_COUNT ids.
        InvalidOrder: If any later id is smaller than the first.
    """
    ids = tuple(item_ids)
    if len(ids) != AGGREGATE_COUNT:
        raise ValueError(f"aggregate takes exactly {AGGREGATE_COUNT} item ids, got {len(ids)}")
    first = ids[0]
    for item_id in ids[1:]:
        if item_id < first:
            raise InvalidOrder(f"first id {first} is not the smallest: found {item_id}")
    return ids


class MergeOrchestrator:
    """
    Issues merge requests to the registry on the engine's behalf.

    Attributes:
        custody: The engine's custody gate; its custodian is the merge operator.
        registry: The external item authority.
        operator: The engine's identity, which holds the items being merged.
    """

    def __init__(self, custody: CustodyLedger):
        self.custody = custody
        self.registry = custody.registry
        self.operator = custody.custodian

    def merge_pair(self, keep_id: int, burn_id: int) -> None:
        """
        Merge burn_id into keep_id; keep_id gains one rank, burn_id is consumed.

        Raises:
            InvalidOrder: If keep_id >= burn_id.
            ItemNotFound, RegistryRejected: If either item is not in custody.
        """
        validate_pair_order(keep_id, burn_id)
        self.custody.require_in_custody(keep_id)
        self.custody.require_in_custody(burn_id)
        self.registry.merge_pair(self.operator, keep_id, burn_id, False)
        logger.info("merged #%s into #%s", burn_id, keep_id)

    def merge_aggregate(self, item_ids: Sequence[int]) -> Tuple[int, ...]:
        """
        Merge every item into item_ids[0], which reaches the maximal rank.

        Returns:
            The ids that were merged, survivor first.

        Raises:
            ValueError: If the count is not AGGREGATE_COUNT.
            InvalidOrder: If the first id is not the smallest.
            ItemNotFound, RegistryRejected: If any item is not in custody.
        """
        ids = validate_aggregate_order(item_ids)
        for item_id in ids:
            self.custody.require_in_custody(item_id)
        self.registry.merge_aggregate(self.operator, ids)
        logger.info("aggregated %d items into #%s", len(ids), ids[0])
        return ids
