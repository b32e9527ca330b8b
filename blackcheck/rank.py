"""
rank.py - Rank Model

Maps an item's rank to the fungible amount it converts to.

Each rank step doubles the amount, starting from UNIT / 4096 at rank 0.
The maximal rank breaks the progression: a black check is worth the entire
supply ceiling, not the next doubling (which would be 128 / 4096 of a UNIT).

    rank  checks  amount (tokens)
    0     80      0.000244140625
    1     40      0.00048828125
    2     20      0.0009765625
    3     10      0.001953125
    4     5       0.00390625
    5     4       0.0078125
    6     1       0.015625
    7     black   1

All functions are pure.
"""

from __future__ import annotations
from typing import Dict

from .core import MAX_RANK, MAX_SUPPLY, MIN_RANK, RANK_DIVISOR, UNIT


# Number of checks drawn on an item of each rank.
CHECKS_PER_RANK = (80, 40, 20, 10, 5, 4, 1, 1)


def validate_rank(rank: int) -> int:
    """
    Return rank unchanged if it lies in [MIN_RANK, MAX_RANK].

    Raises:
        ValueError: If rank is not an int or falls outside the domain.
    """
    if isinstance(rank, bool) or not isinstance(rank, int):
        raise ValueError(f"rank must be an int, got {type(rank).__name__}")
    if rank < MIN_RANK or rank > MAX_RANK:
        raise ValueError(f"rank must be in [{MIN_RANK}, {MAX_RANK}], got {rank}")
    return rank


def amount_for(rank: int) -> int:
    """
    Fungible amount, in base units, that an item of the given rank converts to.

    Returns MAX_SUPPLY for MAX_RANK, otherwise (2**rank * UNIT) // 4096.
    Division truncates.

    Raises:
        ValueError: If rank is outside [MIN_RANK, MAX_RANK].
    """
    validate_rank(rank)
    if rank == MAX_RANK:
        return MAX_SUPPLY
    return ((1 << rank) * UNIT) // RANK_DIVISOR


def checks_count(rank: int) -> int:
    """Number of checks drawn on an item of the given rank."""
    return CHECKS_PER_RANK[validate_rank(rank)]


def conversion_table() -> Dict[int, int]:
    """Return {rank: amount_for(rank)} for every rank."""
    return {rank: amount_for(rank) for rank in range(MIN_RANK, MAX_RANK + 1)}
