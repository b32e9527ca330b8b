"""
test_registry.py - Unit tests for the reference CheckRegistry

Tests:
- mint: id allocation and validation
- Approvals: per-item and blanket
- transfer / safe_transfer: authorization, receiver hook, revert
- merge_pair / merge_aggregate: structural rules
"""

import pytest

from blackcheck import (
    CheckRegistry, ItemNotFound, NotAuthorized, RegistryRejected,
    AGGREGATE_COUNT, AGGREGATE_RANK, MAX_RANK,
)


class RecordingReceiver:
    """Receiver that records hook calls and can be told to refuse."""

    def __init__(self, refuse: bool = False):
        self.received = []
        self.refuse = refuse

    def on_item_received(self, sender, operator, from_, item_id, data=b""):
        self.received.append((sender, operator, from_, item_id, data))
        if self.refuse:
            raise RuntimeError("refused")


class TestMint:

    def test_sequential_ids(self, registry):
        assert registry.mint("alice", 0) == 1
        assert registry.mint("alice", 0) == 2

    def test_explicit_id_advances_counter(self, registry):
        assert registry.mint("alice", 6, item_id=50) == 50
        assert registry.mint("alice", 6) == 51

    def test_minted_item_state(self, registry):
        item_id = registry.mint("alice", 3)
        item = registry.get_item(item_id)
        assert item.rank == 3
        assert item.exists
        assert registry.owner_of(item_id) == "alice"
        assert registry.visual_of(item_id) == item_id

    def test_duplicate_id_raises(self, registry):
        registry.mint("alice", 0, item_id=7)
        with pytest.raises(ValueError, match="already minted"):
            registry.mint("bob", 0, item_id=7)

    def test_non_positive_id_raises(self, registry):
        with pytest.raises(ValueError, match="positive"):
            registry.mint("alice", 0, item_id=0)

    def test_invalid_rank_raises(self, registry):
        with pytest.raises(ValueError):
            registry.mint("alice", 8)

    def test_empty_owner_raises(self, registry):
        with pytest.raises(ValueError, match="owner"):
            registry.mint("", 0)

    def test_unknown_item_raises(self, registry):
        with pytest.raises(ItemNotFound):
            registry.get_item(99)
        with pytest.raises(ItemNotFound):
            registry.owner_of(99)

    def test_tokens_of(self, registry):
        a = registry.mint("alice", 0)
        registry.mint("bob", 0)
        c = registry.mint("alice", 1)
        assert registry.tokens_of("alice") == [a, c]


class TestApprovals:

    def test_owner_approves_single_item(self, registry):
        item_id = registry.mint("alice", 0)
        registry.approve("alice", "bob", item_id)
        assert registry.get_approved(item_id) == "bob"
        assert registry.is_authorized("alice", "bob", item_id)

    def test_clear_approval(self, registry):
        item_id = registry.mint("alice", 0)
        registry.approve("alice", "bob", item_id)
        registry.approve("alice", None, item_id)
        assert registry.get_approved(item_id) is None

    def test_stranger_cannot_approve(self, registry):
        item_id = registry.mint("alice", 0)
        with pytest.raises(NotAuthorized):
            registry.approve("mallory", "mallory", item_id)

    def test_operator_can_approve(self, registry):
        item_id = registry.mint("alice", 0)
        registry.set_approval_for_all("alice", "bob", True)
        registry.approve("bob", "carol", item_id)
        assert registry.get_approved(item_id) == "carol"

    def test_blanket_approval_toggles(self, registry):
        registry.set_approval_for_all("alice", "bob", True)
        assert registry.is_approved_for_all("alice", "bob")
        registry.set_approval_for_all("alice", "bob", False)
        assert not registry.is_approved_for_all("alice", "bob")

    def test_self_operator_raises(self, registry):
        with pytest.raises(ValueError):
            registry.set_approval_for_all("alice", "alice", True)


class TestTransfer:

    def test_owner_transfers(self, registry):
        item_id = registry.mint("alice", 0)
        registry.transfer("alice", "alice", "bob", item_id)
        assert registry.owner_of(item_id) == "bob"

    def test_approved_transfers_and_approval_clears(self, registry):
        item_id = registry.mint("alice", 0)
        registry.approve("alice", "bob", item_id)
        registry.transfer("bob", "alice", "carol", item_id)
        assert registry.owner_of(item_id) == "carol"
        assert registry.get_approved(item_id) is None

    def test_operator_transfers(self, registry):
        item_id = registry.mint("alice", 0)
        registry.set_approval_for_all("alice", "bob", True)
        registry.transfer("bob", "alice", "bob", item_id)
        assert registry.owner_of(item_id) == "bob"

    def test_stranger_rejected(self, registry):
        item_id = registry.mint("alice", 0)
        with pytest.raises(NotAuthorized):
            registry.transfer("mallory", "alice", "mallory", item_id)
        assert registry.owner_of(item_id) == "alice"

    def test_wrong_from_rejected(self, registry):
        item_id = registry.mint("alice", 0)
        with pytest.raises(RegistryRejected):
            registry.transfer("bob", "bob", "carol", item_id)

    def test_empty_destination_rejected(self, registry):
        item_id = registry.mint("alice", 0)
        with pytest.raises(RegistryRejected):
            registry.transfer("alice", "alice", "", item_id)


class TestSafeTransfer:

    def test_notifies_registered_receiver(self, registry):
        receiver = RecordingReceiver()
        registry.register_receiver("vault", receiver)
        item_id = registry.mint("alice", 0)
        registry.safe_transfer("alice", "alice", "vault", item_id, b"hi")
        assert receiver.received == [("checks", "alice", "alice", item_id, b"hi")]
        assert registry.owner_of(item_id) == "vault"

    def test_plain_address_not_notified(self, registry):
        item_id = registry.mint("alice", 0)
        registry.safe_transfer("alice", "alice", "bob", item_id)
        assert registry.owner_of(item_id) == "bob"

    def test_refusal_reverts_owner_and_approval(self, registry):
        registry.register_receiver("vault", RecordingReceiver(refuse=True))
        item_id = registry.mint("alice", 0)
        registry.approve("alice", "bob", item_id)
        with pytest.raises(RuntimeError, match="refused"):
            registry.safe_transfer("bob", "alice", "vault", item_id)
        assert registry.owner_of(item_id) == "alice"
        assert registry.get_approved(item_id) == "bob"


class TestMergePair:

    def test_keep_gains_rank_burn_consumed(self, registry):
        keep = registry.mint("alice", 2)
        burn = registry.mint("alice", 2)
        registry.merge_pair("alice", keep, burn)
        assert registry.get_item(keep).rank == 3
        assert not registry.get_item(burn).exists
        with pytest.raises(ItemNotFound):
            registry.owner_of(burn)

    def test_swap_takes_burn_visual(self, registry):
        keep = registry.mint("alice", 0)
        burn = registry.mint("alice", 0)
        registry.merge_pair("alice", keep, burn, swap=True)
        assert registry.visual_of(keep) == burn

    def test_without_swap_keeps_visual(self, registry):
        keep = registry.mint("alice", 0)
        burn = registry.mint("alice", 0)
        registry.merge_pair("alice", keep, burn)
        assert registry.visual_of(keep) == keep

    def test_same_id_rejected(self, registry):
        item_id = registry.mint("alice", 0)
        with pytest.raises(RegistryRejected):
            registry.merge_pair("alice", item_id, item_id)

    def test_rank_mismatch_rejected(self, registry):
        keep = registry.mint("alice", 0)
        burn = registry.mint("alice", 1)
        with pytest.raises(RegistryRejected, match="rank mismatch"):
            registry.merge_pair("alice", keep, burn)
        assert registry.get_item(keep).rank == 0
        assert registry.get_item(burn).exists

    def test_single_checks_cannot_pair(self, registry):
        keep = registry.mint("alice", AGGREGATE_RANK)
        burn = registry.mint("alice", AGGREGATE_RANK)
        with pytest.raises(RegistryRejected):
            registry.merge_pair("alice", keep, burn)

    def test_unauthorized_rejected(self, registry):
        keep = registry.mint("alice", 0)
        burn = registry.mint("bob", 0)
        with pytest.raises(NotAuthorized):
            registry.merge_pair("alice", keep, burn)

    def test_consumed_item_cannot_merge_again(self, registry):
        keep = registry.mint("alice", 0)
        burn = registry.mint("alice", 0)
        other = registry.mint("alice", 0)
        registry.merge_pair("alice", keep, burn)
        with pytest.raises(ItemNotFound):
            registry.merge_pair("alice", burn, other)


class TestMergeAggregate:

    def _singles(self, registry, count=AGGREGATE_COUNT):
        return [registry.mint("alice", AGGREGATE_RANK) for _ in range(count)]

    def test_first_survives_as_black_check(self, registry):
        ids = self._singles(registry)
        registry.merge_aggregate("alice", ids)
        assert registry.get_item(ids[0]).rank == MAX_RANK
        assert registry.owner_of(ids[0]) == "alice"
        assert all(not registry.get_item(i).exists for i in ids[1:])
        assert registry.tokens_of("alice") == [ids[0]]

    def test_wrong_count_rejected(self, registry):
        ids = self._singles(registry, AGGREGATE_COUNT - 1)
        with pytest.raises(RegistryRejected, match="needs 64"):
            registry.merge_aggregate("alice", ids)

    def test_duplicates_rejected(self, registry):
        ids = self._singles(registry, AGGREGATE_COUNT - 1)
        with pytest.raises(RegistryRejected, match="distinct"):
            registry.merge_aggregate("alice", ids + [ids[-1]])

    def test_wrong_rank_rejected(self, registry):
        ids = self._singles(registry, AGGREGATE_COUNT - 1)
        ids.append(registry.mint("alice", 5))
        with pytest.raises(RegistryRejected, match="has rank 5"):
            registry.merge_aggregate("alice", ids)
        assert all(registry.get_item(i).exists for i in ids)
