# tests/test_registry.py
"""Tests for the asset registry."""

import json
import tempfile
import threading
from pathlib import Path

import pytest

from dynart.errors import (
    InvalidOwner,
    InvalidRecipient,
    NotFound,
    Unauthorized,
    UnsafeRecipient,
)
from dynart.identity import NULL_ADDRESS
from dynart.receivers import ReceiverRegistry
from dynart.registry import ApprovalEvent, ApprovalForAllEvent, Registry, TransferEvent

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c0" * 20
MALLORY = "0x" + "ee" * 20


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def registry():
    return Registry()


def snapshot(registry, identities=(ALICE, BOB, CAROL, MALLORY)):
    """Observable state for all-or-nothing checks."""
    return {
        "owners": {a.asset_id: a.owner for a in registry},
        "approved": {a.asset_id: a.approved for a in registry},
        "balances": {i: registry.balance_of(i) for i in identities},
        "events": len(registry.events),
    }


class TestAllocation:
    """Test allocate_and_assign()."""

    def test_sequential_identifiers(self, registry):
        """The nth allocation yields identifier n."""
        ids = [registry.allocate_and_assign(ALICE) for _ in range(5)]
        assert ids == [1, 2, 3, 4, 5]
        assert registry.next_id == 6

    def test_mint_invariant(self, registry):
        before = registry.balance_of(ALICE)
        asset_id = registry.allocate_and_assign(ALICE)

        assert registry.owner_of(asset_id) == ALICE
        assert registry.balance_of(ALICE) == before + 1
        assert registry.get_approved(asset_id) == NULL_ADDRESS

        event = registry.events.list()[-1]
        assert isinstance(event, TransferEvent)
        assert (event.from_, event.to, event.asset_id) == (NULL_ADDRESS, ALICE, asset_id)

    def test_null_caller_rejected(self, registry):
        with pytest.raises(InvalidRecipient):
            registry.allocate_and_assign(NULL_ADDRESS)
        with pytest.raises(InvalidRecipient):
            registry.allocate_and_assign(None)
        assert registry.total_supply == 0
        assert registry.next_id == 1
        assert len(registry.events) == 0

    def test_caller_normalized(self, registry):
        asset_id = registry.allocate_and_assign(ALICE.upper().replace("0X", "0x"))
        assert registry.owner_of(asset_id) == ALICE

    def test_concurrent_allocation(self, registry):
        """Parallel callers never receive the same identifier."""
        results = []
        lock = threading.Lock()

        def mint_many():
            for _ in range(50):
                asset_id = registry.allocate_and_assign(BOB)
                with lock:
                    results.append(asset_id)

        threads = [threading.Thread(target=mint_many) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == list(range(1, 201))
        assert registry.balance_of(BOB) == 200


class TestReads:
    """Test read operations."""

    def test_owner_of_missing(self, registry):
        with pytest.raises(NotFound) as exc_info:
            registry.owner_of(1)
        assert exc_info.value.asset_id == 1

    def test_get_approved_missing(self, registry):
        with pytest.raises(NotFound):
            registry.get_approved(3)

    def test_balance_of_null(self, registry):
        with pytest.raises(InvalidOwner):
            registry.balance_of(NULL_ADDRESS)

    def test_balance_of_unknown_is_zero(self, registry):
        assert registry.balance_of(CAROL) == 0

    def test_malformed_identity(self, registry):
        with pytest.raises(ValueError):
            registry.balance_of("not-an-address")

    def test_assets_of(self, registry):
        registry.allocate_and_assign(ALICE)
        registry.allocate_and_assign(BOB)
        registry.allocate_and_assign(ALICE)
        assert registry.assets_of(ALICE) == [1, 3]
        assert registry.assets_of(BOB) == [2]

    def test_get_returns_copy(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        asset = registry.get(asset_id)
        asset.owner = BOB
        assert registry.owner_of(asset_id) == ALICE

    def test_contains_and_len(self, registry):
        registry.allocate_and_assign(ALICE)
        assert 1 in registry
        assert 2 not in registry
        assert len(registry) == 1


class TestApprovals:
    """Test approve() and set_approval_for_all()."""

    def test_owner_approves(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        registry.approve(ALICE, asset_id, BOB)

        assert registry.get_approved(asset_id) == BOB
        event = registry.events.list()[-1]
        assert isinstance(event, ApprovalEvent)
        assert (event.owner, event.approved, event.asset_id) == (ALICE, BOB, asset_id)

    def test_operator_approves(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        registry.set_approval_for_all(ALICE, BOB, True)
        registry.approve(BOB, asset_id, CAROL)
        assert registry.get_approved(asset_id) == CAROL

    def test_stranger_cannot_approve(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        before = snapshot(registry)
        with pytest.raises(Unauthorized):
            registry.approve(MALLORY, asset_id, MALLORY)
        assert snapshot(registry) == before

    def test_approved_spender_cannot_approve(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        registry.approve(ALICE, asset_id, BOB)
        with pytest.raises(Unauthorized):
            registry.approve(BOB, asset_id, CAROL)

    def test_approve_missing(self, registry):
        with pytest.raises(NotFound):
            registry.approve(ALICE, 9, BOB)

    def test_operator_relation(self, registry):
        assert registry.is_approved_for_all(ALICE, BOB) is False
        registry.set_approval_for_all(ALICE, BOB, True)
        assert registry.is_approved_for_all(ALICE, BOB) is True
        assert registry.is_approved_for_all(BOB, ALICE) is False

        event = registry.events.list()[-1]
        assert isinstance(event, ApprovalForAllEvent)
        assert (event.owner, event.operator, event.approved) == (ALICE, BOB, True)

        registry.set_approval_for_all(ALICE, BOB, False)
        assert registry.is_approved_for_all(ALICE, BOB) is False

    def test_operator_covers_future_assets(self, registry):
        registry.set_approval_for_all(ALICE, BOB, True)
        asset_id = registry.allocate_and_assign(ALICE)
        registry.transfer(BOB, ALICE, CAROL, asset_id)
        assert registry.owner_of(asset_id) == CAROL


class TestTransfer:
    """Test transfer()."""

    def test_transfer_invariant(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        registry.approve(ALICE, asset_id, CAROL)
        alice_before = registry.balance_of(ALICE)
        bob_before = registry.balance_of(BOB)

        registry.transfer(ALICE, ALICE, BOB, asset_id)

        assert registry.owner_of(asset_id) == BOB
        assert registry.get_approved(asset_id) == NULL_ADDRESS
        assert registry.balance_of(ALICE) == alice_before - 1
        assert registry.balance_of(BOB) == bob_before + 1

        event = registry.events.list()[-1]
        assert isinstance(event, TransferEvent)
        assert (event.from_, event.to, event.asset_id) == (ALICE, BOB, asset_id)

    def test_approved_spender_transfers(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        registry.approve(ALICE, asset_id, BOB)
        registry.transfer(BOB, ALICE, CAROL, asset_id)
        assert registry.owner_of(asset_id) == CAROL
        assert registry.get_approved(asset_id) == NULL_ADDRESS

    def test_approval_does_not_survive_transfer(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        registry.approve(ALICE, asset_id, BOB)
        registry.transfer(ALICE, ALICE, CAROL, asset_id)
        with pytest.raises(Unauthorized):
            registry.transfer(BOB, CAROL, BOB, asset_id)

    def test_unauthorized_transfer(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        registry.approve(ALICE, asset_id, BOB)
        before = snapshot(registry)

        with pytest.raises(Unauthorized):
            registry.transfer(MALLORY, ALICE, MALLORY, asset_id)

        assert snapshot(registry) == before

    def test_missing_asset(self, registry):
        with pytest.raises(NotFound):
            registry.transfer(ALICE, ALICE, BOB, 1)

    def test_wrong_source_owner(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        before = snapshot(registry)
        with pytest.raises(InvalidOwner):
            registry.transfer(ALICE, BOB, CAROL, asset_id)
        assert snapshot(registry) == before

    def test_null_recipient(self, registry):
        asset_id = registry.allocate_and_assign(ALICE)
        before = snapshot(registry)
        with pytest.raises(InvalidRecipient):
            registry.transfer(ALICE, ALICE, NULL_ADDRESS, asset_id)
        assert snapshot(registry) == before

    def test_authorization_checked_before_owner(self, registry):
        """A stranger gets Unauthorized even with a wrong source owner."""
        asset_id = registry.allocate_and_assign(ALICE)
        with pytest.raises(Unauthorized):
            registry.transfer(MALLORY, BOB, CAROL, asset_id)

    def test_balances_sum_to_supply(self, registry):
        for owner in (ALICE, ALICE, BOB, CAROL):
            registry.allocate_and_assign(owner)
        registry.transfer(ALICE, ALICE, BOB, 1)
        registry.transfer(BOB, BOB, CAROL, 3)
        total = sum(registry.balance_of(i) for i in (ALICE, BOB, CAROL))
        assert total == registry.total_supply == 4
        for identity in (ALICE, BOB, CAROL):
            assert registry.balance_of(identity) == len(registry.assets_of(identity))


class TestSafeTransfer:
    """Test safe_transfer() and recipient acceptance."""

    @pytest.fixture
    def receivers(self):
        return ReceiverRegistry()

    @pytest.fixture
    def guarded(self, receivers):
        return Registry(recipient_check=receivers.check)

    def test_plain_recipient_accepts(self, guarded):
        asset_id = guarded.allocate_and_assign(ALICE)
        guarded.safe_transfer(ALICE, ALICE, BOB, asset_id)
        assert guarded.owner_of(asset_id) == BOB

    def test_receiver_sees_call(self, guarded, receivers):
        calls = []

        @receivers.receiver(CAROL)
        def accept(operator, from_, asset_id, data):
            calls.append((operator, from_, asset_id, data))
            return True

        asset_id = guarded.allocate_and_assign(ALICE)
        guarded.approve(ALICE, asset_id, BOB)
        guarded.safe_transfer(BOB, ALICE, CAROL, asset_id, b"hello")

        assert calls == [(BOB, ALICE, asset_id, b"hello")]
        assert guarded.owner_of(asset_id) == CAROL

    def test_rejection_leaves_no_change(self, guarded, receivers):
        receivers.register(CAROL, lambda operator, from_, asset_id, data: False)
        asset_id = guarded.allocate_and_assign(ALICE)
        guarded.approve(ALICE, asset_id, BOB)
        before = snapshot(guarded)

        with pytest.raises(UnsafeRecipient) as exc_info:
            guarded.safe_transfer(ALICE, ALICE, CAROL, asset_id)

        assert exc_info.value.recipient == CAROL
        assert snapshot(guarded) == before
        assert guarded.get_approved(asset_id) == BOB

    def test_failing_hook_is_rejection(self, guarded, receivers):
        @receivers.receiver(CAROL)
        def broken(operator, from_, asset_id, data):
            raise RuntimeError("no receiver here")

        asset_id = guarded.allocate_and_assign(ALICE)
        before = snapshot(guarded)
        with pytest.raises(UnsafeRecipient, match="no receiver here"):
            guarded.safe_transfer(ALICE, ALICE, CAROL, asset_id)
        assert snapshot(guarded) == before

    def test_hook_can_inspect_data(self, guarded, receivers):
        receivers.register(CAROL, lambda operator, from_, asset_id, data: data == b"ok")
        asset_id = guarded.allocate_and_assign(ALICE)
        with pytest.raises(UnsafeRecipient):
            guarded.safe_transfer(ALICE, ALICE, CAROL, asset_id, b"nope")
        guarded.safe_transfer(ALICE, ALICE, CAROL, asset_id, b"ok")
        assert guarded.owner_of(asset_id) == CAROL

    def test_transfer_preconditions_still_apply(self, guarded):
        asset_id = guarded.allocate_and_assign(ALICE)
        with pytest.raises(Unauthorized):
            guarded.safe_transfer(MALLORY, ALICE, MALLORY, asset_id)
        with pytest.raises(InvalidRecipient):
            guarded.safe_transfer(ALICE, ALICE, NULL_ADDRESS, asset_id)

    def test_rejecting_hook_that_passes_asset_on(self, guarded, receivers):
        """Changes made from inside a rejecting hook are undone too."""
        asset_id = guarded.allocate_and_assign(ALICE)

        @receivers.receiver(BOB)
        def pass_on(operator, from_, received_id, data):
            guarded.transfer(BOB, BOB, CAROL, received_id)
            return False

        before = snapshot(guarded)
        with pytest.raises(UnsafeRecipient):
            guarded.safe_transfer(ALICE, ALICE, BOB, asset_id)

        assert snapshot(guarded) == before
        assert guarded.owner_of(asset_id) == ALICE
        assert all(balance >= 0 for balance in before["balances"].values())
        assert guarded.assets_of(CAROL) == []

    def test_rejecting_hook_that_mints(self, guarded, receivers):
        asset_id = guarded.allocate_and_assign(ALICE)

        @receivers.receiver(BOB)
        def mint_then_reject(operator, from_, received_id, data):
            guarded.allocate_and_assign(BOB)
            return False

        with pytest.raises(UnsafeRecipient):
            guarded.safe_transfer(ALICE, ALICE, BOB, asset_id)

        assert guarded.total_supply == 1
        assert guarded.next_id == 2
        assert guarded.balance_of(BOB) == 0
        assert len(guarded.events) == 1

    def test_accepting_hook_that_passes_asset_on(self, guarded, receivers):
        asset_id = guarded.allocate_and_assign(ALICE)

        @receivers.receiver(BOB)
        def pass_on(operator, from_, received_id, data):
            guarded.transfer(BOB, BOB, CAROL, received_id)
            return True

        guarded.safe_transfer(ALICE, ALICE, BOB, asset_id)

        assert guarded.owner_of(asset_id) == CAROL
        balances = snapshot(guarded)["balances"]
        assert balances == {ALICE: 0, BOB: 0, CAROL: 1, MALLORY: 0}

    def test_plain_transfer_skips_check(self, guarded, receivers):
        receivers.register(CAROL, lambda operator, from_, asset_id, data: False)
        asset_id = guarded.allocate_and_assign(ALICE)
        guarded.transfer(ALICE, ALICE, CAROL, asset_id)
        assert guarded.owner_of(asset_id) == CAROL


class TestPersistence:
    """Test store_dir persistence."""

    def test_reload(self, temp_dir):
        registry = Registry(temp_dir)
        registry.allocate_and_assign(ALICE)
        registry.allocate_and_assign(ALICE)
        registry.approve(ALICE, 2, BOB)
        registry.set_approval_for_all(ALICE, CAROL, True)
        registry.transfer(ALICE, ALICE, BOB, 1)

        reopened = Registry(temp_dir)
        assert reopened.owner_of(1) == BOB
        assert reopened.owner_of(2) == ALICE
        assert reopened.get_approved(2) == BOB
        assert reopened.balance_of(ALICE) == 1
        assert reopened.balance_of(BOB) == 1
        assert reopened.is_approved_for_all(ALICE, CAROL)
        assert reopened.next_id == 3
        assert len(reopened.events) == len(registry.events)

    def test_identifiers_not_reused_after_reload(self, temp_dir):
        Registry(temp_dir).allocate_and_assign(ALICE)
        assert Registry(temp_dir).allocate_and_assign(BOB) == 2

    def test_index_format(self, temp_dir):
        registry = Registry(temp_dir)
        registry.allocate_and_assign(ALICE)
        with open(temp_dir / "registry.json") as f:
            data = json.load(f)
        assert data["version"] == "1.0"
        assert data["next_id"] == 2
        assert data["assets"]["1"]["owner"] == ALICE
        assert data["balances"] == {ALICE: 1}

    def test_revoked_operator_not_persisted(self, temp_dir):
        registry = Registry(temp_dir)
        registry.set_approval_for_all(ALICE, BOB, True)
        registry.set_approval_for_all(ALICE, BOB, False)
        assert not Registry(temp_dir).is_approved_for_all(ALICE, BOB)

    def test_failed_mutation_not_persisted(self, temp_dir):
        registry = Registry(temp_dir)
        registry.allocate_and_assign(ALICE)
        with pytest.raises(Unauthorized):
            registry.transfer(MALLORY, ALICE, MALLORY, 1)
        assert Registry(temp_dir).owner_of(1) == ALICE

    def test_no_temp_files_left(self, temp_dir):
        registry = Registry(temp_dir)
        registry.allocate_and_assign(ALICE)
        registry.transfer(ALICE, ALICE, BOB, 1)
        assert sorted(p.name for p in temp_dir.iterdir()) == ["events.json", "registry.json"]


def fail_once(monkeypatch, target, message="disk full"):
    """Make target._save raise OSError on its next call only."""
    original = target._save
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise OSError(message)
        return original()

    monkeypatch.setattr(target, "_save", flaky)
    return calls


class TestFailedWrites:
    """A mutation whose state cannot be written leaves no trace."""

    @pytest.fixture
    def stored(self, temp_dir):
        registry = Registry(temp_dir)
        registry.allocate_and_assign(ALICE)
        return registry

    def test_transfer_index_write_fails(self, stored, temp_dir, monkeypatch):
        before = snapshot(stored)
        fail_once(monkeypatch, stored)

        with pytest.raises(OSError, match="disk full"):
            stored.transfer(ALICE, ALICE, BOB, 1)

        assert snapshot(stored) == before
        assert stored.owner_of(1) == ALICE
        assert Registry(temp_dir).owner_of(1) == ALICE

    def test_event_write_fails(self, stored, temp_dir, monkeypatch):
        before = snapshot(stored)
        received = []
        stored.events.subscribe(received.append)
        fail_once(monkeypatch, stored.events)

        with pytest.raises(OSError):
            stored.transfer(ALICE, ALICE, BOB, 1)

        assert snapshot(stored) == before
        assert received == []
        reopened = Registry(temp_dir)
        assert reopened.owner_of(1) == ALICE
        assert len(reopened.events) == 1

    def test_mint_write_fails(self, stored, monkeypatch):
        fail_once(monkeypatch, stored)
        with pytest.raises(OSError):
            stored.allocate_and_assign(BOB)
        assert stored.total_supply == 1
        assert stored.next_id == 2
        assert stored.balance_of(BOB) == 0
        assert stored.allocate_and_assign(BOB) == 2

    def test_approvals_write_fails(self, stored, monkeypatch):
        fail_once(monkeypatch, stored)
        with pytest.raises(OSError):
            stored.approve(ALICE, 1, BOB)
        assert stored.get_approved(1) == NULL_ADDRESS

        fail_once(monkeypatch, stored)
        with pytest.raises(OSError):
            stored.set_approval_for_all(ALICE, CAROL, True)
        assert not stored.is_approved_for_all(ALICE, CAROL)
        assert len(stored.events) == 1

    def test_disk_stays_broken(self, stored, monkeypatch):
        def broken():
            raise OSError("read-only file system")

        monkeypatch.setattr(stored, "_save", broken)
        with pytest.raises(OSError):
            stored.transfer(ALICE, ALICE, BOB, 1)
        assert stored.owner_of(1) == ALICE
        assert stored.balance_of(BOB) == 0
