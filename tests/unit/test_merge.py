"""
test_merge.py - Unit tests for merge ordering and the MergeOrchestrator

Tests:
- validate_pair_order / validate_aggregate_order (shape and ordering)
- Ordering and custody failures never reach the registry
- Orchestrated merges act as the engine's identity
"""

import pytest

from blackcheck import (
    CustodyLedger, MergeOrchestrator, validate_pair_order, validate_aggregate_order,
    InvalidOrder, ItemNotFound, RegistryRejected,
    AGGREGATE_COUNT, AGGREGATE_RANK, MAX_RANK,
)
from tests.fake_registry import RecordingRegistry


def sixty_four(first: int = 100):
    """AGGREGATE_COUNT consecutive ids starting at `first`."""
    return list(range(first, first + AGGREGATE_COUNT))


class TestPairOrder:

    def test_lower_keep_passes(self):
        validate_pair_order(1, 2)

    @pytest.mark.parametrize("keep,burn", [(2, 1), (3, 3)])
    def test_keep_not_lower_raises(self, keep, burn):
        with pytest.raises(InvalidOrder):
            validate_pair_order(keep, burn)


class TestAggregateOrder:

    def test_returns_tuple(self):
        ids = sixty_four()
        assert validate_aggregate_order(ids) == tuple(ids)

    def test_rest_may_be_unordered(self):
        ids = sixty_four()
        validate_aggregate_order(ids[:1] + list(reversed(ids[1:])))

    def test_smaller_id_at_end_detected(self):
        ids = sixty_four()
        ids[-1] = 3
        with pytest.raises(InvalidOrder, match="found 3"):
            validate_aggregate_order(ids)

    def test_repeated_first_id_is_not_an_ordering_error(self):
        ids = sixty_four()
        ids[-1] = ids[0]
        validate_aggregate_order(ids)

    @pytest.mark.parametrize("count", [0, 1, 2, AGGREGATE_COUNT - 1, AGGREGATE_COUNT + 1])
    def test_wrong_count_raises_value_error(self, count):
        with pytest.raises(ValueError, match="exactly 64"):
            validate_aggregate_order(list(range(1, count + 1)))


class TestMergeOrchestrator:

    @pytest.fixture
    def recording(self):
        return RecordingRegistry()

    @pytest.fixture
    def merger(self, recording):
        return MergeOrchestrator(CustodyLedger(recording, "engine"))

    def test_identity_comes_from_custody(self, recording, merger):
        assert merger.operator == "engine"
        assert merger.registry is recording

    def test_pair_merge_uses_operator_without_swap(self, recording, merger):
        keep = recording.mint("engine", 0)
        burn = recording.mint("engine", 0)
        merger.merge_pair(keep, burn)
        assert recording.calls_to("merge_pair") == [("engine", keep, burn, False)]
        assert recording.get_item(keep).rank == 1

    def test_bad_pair_order_never_reaches_registry(self, recording, merger):
        with pytest.raises(InvalidOrder):
            merger.merge_pair(9, 4)
        assert recording.calls == []

    def test_bad_aggregate_order_never_reaches_registry(self, recording, merger):
        ids = sixty_four()
        ids[10] = 4
        with pytest.raises(InvalidOrder):
            merger.merge_aggregate(ids)
        assert recording.calls == []

    def test_short_aggregate_never_reaches_registry(self, recording, merger):
        ids = [recording.mint("engine", AGGREGATE_RANK) for _ in range(2)]
        with pytest.raises(ValueError):
            merger.merge_aggregate(ids)
        assert recording.calls_to("merge_aggregate") == []
        assert all(recording.inner.get_item(i).exists for i in ids)

    def test_aggregate_returns_ids_survivor_first(self, recording, merger):
        ids = [recording.mint("engine", AGGREGATE_RANK) for _ in range(AGGREGATE_COUNT)]
        merged = merger.merge_aggregate(ids)
        assert merged == tuple(ids)
        assert recording.get_item(ids[0]).rank == MAX_RANK

    def test_pair_outside_custody_never_reaches_registry(self, recording, merger):
        keep = recording.mint("alice", 0)
        burn = recording.mint("engine", 0)
        with pytest.raises(RegistryRejected, match="not in custody"):
            merger.merge_pair(keep, burn)
        assert recording.calls_to("merge_pair") == []

    def test_outside_item_in_aggregate_never_reaches_registry(self, recording, merger):
        ids = [recording.mint("engine", AGGREGATE_RANK) for _ in range(AGGREGATE_COUNT - 1)]
        ids.append(recording.mint("alice", AGGREGATE_RANK))
        with pytest.raises(RegistryRejected):
            merger.merge_aggregate(ids)
        assert recording.calls_to("merge_aggregate") == []

    def test_unknown_item_rejected(self, recording, merger):
        keep = recording.mint("engine", 0)
        with pytest.raises(ItemNotFound):
            merger.merge_pair(keep, 404)
        assert recording.calls_to("merge_pair") == []
