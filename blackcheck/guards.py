"""
guards.py - Guard Rails

Invariant checks shared by the engine and its substrate:
1. non_reentrant() - rejects nested entry into engine operations
2. check_supply_ceiling() - issuance may never push supply past the ceiling
3. reject_value() - the engine never accepts bare native value
4. verify_supply() - total_issued must equal the sum of balances
"""

from __future__ import annotations
from functools import wraps
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar
import logging

from .core import (
    Address,
    ReentrantCall, SupplyCeilingExceeded, UnsolicitedValueRejected,
    format_amount,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def non_reentrant(method: F) -> F:
    """
    Decorate an engine method so it cannot run while another guarded method runs.

    The owning object carries an ``_entered`` flag. Entering a guarded method
    while the flag is set raises ReentrantCall; the flag is cleared on exit,
    whether the method returned or raised.
    """
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        if getattr(self, "_entered", False):
            raise ReentrantCall(f"{method.__name__} called while another operation is in progress")
        self._entered = True
        try:
            return method(self, *args, **kwargs)
        finally:
            self._entered = False
    return wrapper  # type: ignore[return-value]


def check_supply_ceiling(total_issued: int, amount: int, max_supply: int) -> int:
    """
    Return the supply after issuing amount.

    Raises:
        SupplyCeilingExceeded: If total_issued + amount > max_supply.
    """
    proposed = total_issued + amount
    if proposed > max_supply:
        raise SupplyCeilingExceeded(
            f"issuing {format_amount(amount)} would raise supply to "
            f"{format_amount(proposed)} > max {format_amount(max_supply)}"
        )
    return proposed


def reject_value(sender: Address, value: int, data: Optional[bytes] = None) -> None:
    """Unconditionally refuse a bare value transfer, with or without call data."""
    kind = "fallback" if data else "receive"
    logger.warning("rejected %s of %s from %s", kind, value, sender)
    raise UnsolicitedValueRejected(
        f"{sender} sent {value} native value via {kind}; only item deposits are accepted"
    )


def verify_supply(
    balances: Mapping[Address, int],
    total_issued: int,
    max_supply: int,
) -> Dict[str, Any]:
    """
    Verify the supply invariants.

    Balances are summed in sorted account order for a deterministic report.

    Returns:
        Dict with keys:
        - 'valid': bool - True if every invariant holds
        - 'total_issued': int - the counter as stored
        - 'sum_of_balances': int - recomputed from the balance map
        - 'discrepancies': List[Dict] - one entry per violated invariant
    """
    summed = sum(balances[a] for a in sorted(balances))
    discrepancies = []

    if summed != total_issued:
        discrepancies.append({
            'invariant': 'total_issued == sum(balances)',
            'expected': summed,
            'actual': total_issued,
        })
    if total_issued > max_supply:
        discrepancies.append({
            'invariant': 'total_issued <= max_supply',
            'expected': max_supply,
            'actual': total_issued,
        })
    negative = [a for a in sorted(balances) if balances[a] < 0]
    if negative:
        discrepancies.append({
            'invariant': 'balances >= 0',
            'accounts': negative,
        })

    return {
        'valid': not discrepancies,
        'total_issued': total_issued,
        'sum_of_balances': summed,
        'discrepancies': discrepancies,
    }
