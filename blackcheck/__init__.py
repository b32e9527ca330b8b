"""
blackcheck - Check Conversion Ledger

Converts ranked Checks into the fungible $BLKCHK unit and back, and merges
Checks held in custody, up to one black check worth the whole supply.

Usage:
    from blackcheck import CheckRegistry, ConversionEngine, UNIT

    registry = CheckRegistry()
    engine = ConversionEngine(registry)
    registry.register_receiver(engine.address, engine)

    check = registry.mint("alice", rank=6)
    engine.deposit("alice", [check])          # alice now holds UNIT // 64
    engine.redeem("alice", check)             # and gets the check back
"""

# Core types
from .core import (
    Address,
    Item,
    ConversionRecord,
    RecordKind,
    ItemRegistry,
    ItemReceiver,
    ConversionError,
    SupplyCeilingExceeded,
    InsufficientBalance,
    InsufficientAllowance,
    InvalidOrder,
    NotAuthorized,
    OnlyRegistry,
    ItemNotFound,
    RegistryRejected,
    UnsolicitedValueRejected,
    ReentrantCall,
    format_amount,
    UNIT,
    MIN_RANK,
    MAX_RANK,
    MAX_SUPPLY,
    AGGREGATE_RANK,
    AGGREGATE_COUNT,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    TOKEN_DECIMALS,
    DEFAULT_ENGINE_ADDRESS,
    DEFAULT_REGISTRY_ADDRESS,
)

# Rank model
from .rank import (
    amount_for,
    checks_count,
    conversion_table,
    validate_rank,
    CHECKS_PER_RANK,
)

# Components
from .fungible import FungibleLedger, LedgerSnapshot
from .custody import CustodyLedger
from .merge import MergeOrchestrator, validate_pair_order, validate_aggregate_order
from .guards import non_reentrant, check_supply_ceiling, reject_value, verify_supply
from .engine import ConversionEngine, DepositLeg, plan_deposit

# Reference registry
from .registry import CheckRegistry

__all__ = [
    # Core
    'Address', 'Item', 'ConversionRecord', 'RecordKind',
    'ItemRegistry', 'ItemReceiver',
    'ConversionError', 'SupplyCeilingExceeded', 'InsufficientBalance',
    'InsufficientAllowance', 'InvalidOrder', 'NotAuthorized', 'OnlyRegistry',
    'ItemNotFound', 'RegistryRejected', 'UnsolicitedValueRejected', 'ReentrantCall',
    'format_amount',
    'UNIT', 'MIN_RANK', 'MAX_RANK', 'MAX_SUPPLY', 'AGGREGATE_RANK', 'AGGREGATE_COUNT',
    'TOKEN_NAME', 'TOKEN_SYMBOL', 'TOKEN_DECIMALS',
    'DEFAULT_ENGINE_ADDRESS', 'DEFAULT_REGISTRY_ADDRESS',
    # Rank model
    'amount_for', 'checks_count', 'conversion_table', 'validate_rank', 'CHECKS_PER_RANK',
    # Components
    'FungibleLedger', 'LedgerSnapshot', 'CustodyLedger',
    'MergeOrchestrator', 'validate_pair_order', 'validate_aggregate_order',
    'non_reentrant', 'check_supply_ceiling', 'reject_value', 'verify_supply',
    'ConversionEngine', 'DepositLeg', 'plan_deposit',
    # Registry
    'CheckRegistry',
]

__version__ = '1.0.0'
