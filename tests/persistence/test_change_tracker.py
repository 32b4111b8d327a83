from dataclasses import dataclass

import pytest

from unitwork.core import EntityKey, EntityMapping, LifecycleState, MappingRegistry
from unitwork.errors import DuplicateHandleError, InvalidTransitionError, UntrackedEntityError
from unitwork.persistence import ChangeTracker


@dataclass
class Account:
    id: int
    owner: str
    balance: int = 0


@pytest.fixture
def mapping():
    return EntityMapping(Account)


@pytest.fixture
def tracker(mapping):
    return ChangeTracker(MappingRegistry([mapping]))


def test_register_new_and_unchanged(tracker, mapping):
    tracker.register(mapping.handle(Account(1, "a")))
    tracker.register(mapping.handle(Account(2, "b")), LifecycleState.UNCHANGED)
    assert tracker.state_of(EntityKey(Account, 1)) is LifecycleState.NEW
    assert tracker.state_of(EntityKey(Account, 2)) is LifecycleState.UNCHANGED
    assert tracker.state_of(EntityKey(Account, 3)) is LifecycleState.DETACHED
    assert len(tracker) == 2


def test_register_rejects_duplicates_and_bad_intent(tracker, mapping):
    tracker.register(mapping.handle(Account(1, "a")))
    with pytest.raises(DuplicateHandleError):
        tracker.register(mapping.handle(Account(1, "other object")))
    with pytest.raises(InvalidTransitionError):
        tracker.register(mapping.handle(Account(2, "b")), LifecycleState.REMOVED)


def test_transitions_on_untracked_key_fail(tracker):
    with pytest.raises(UntrackedEntityError):
        tracker.mark_modified(EntityKey(Account, 9))
    with pytest.raises(UntrackedEntityError):
        tracker.mark_removed(EntityKey(Account, 9))


def test_removed_entity_cannot_be_modified(tracker, mapping):
    entry = tracker.register(mapping.handle(Account(1, "a")), LifecycleState.UNCHANGED)
    tracker.mark_removed(entry.key)
    with pytest.raises(InvalidTransitionError):
        tracker.mark_modified(entry.key)


def test_modifying_new_entity_keeps_it_new(tracker, mapping):
    entry = tracker.register(mapping.handle(Account(1, "a")))
    tracker.mark_modified(entry.key)
    assert entry.state is LifecycleState.NEW


def test_removing_new_entity_detaches_it(tracker, mapping):
    entry = tracker.register(mapping.handle(Account(1, "a")))
    tracker.mark_removed(entry.key)
    assert entry.state is LifecycleState.DETACHED
    assert entry.key not in tracker
    assert tracker.build_change_set().is_empty
    tracker.register(mapping.handle(Account(1, "again")))


def test_detect_dirty_reclassifies_in_place_edits(tracker, mapping):
    account = Account(1, "a", 10)
    tracker.register(mapping.handle(account), LifecycleState.UNCHANGED)
    assert tracker.detect_dirty() == []
    account.balance = 20
    assert tracker.has_changes()
    assert tracker.detect_dirty() == [EntityKey(Account, 1)]
    change = tracker.build_change_set()[0]
    assert change.is_update
    assert change.changed_fields() == {"balance": 20}
    assert change.original["balance"] == 10


def test_edit_reverted_before_detection_is_not_dirty(tracker, mapping):
    account = Account(1, "a", 10)
    tracker.register(mapping.handle(account), LifecycleState.UNCHANGED)
    account.balance = 99
    account.balance = 10
    assert not tracker.has_changes()
    assert tracker.detect_dirty() == []


def test_removal_change_carries_snapshot(tracker, mapping):
    account = Account(1, "a", 10)
    tracker.register(mapping.handle(account), LifecycleState.UNCHANGED)
    account.balance = 50
    tracker.mark_removed(EntityKey(Account, 1))
    change = tracker.build_change_set()[0]
    assert change.is_delete
    assert change.values["balance"] == 10


def test_commit_resets_baseline_and_drops_removed(tracker, mapping):
    kept = Account(1, "a")
    gone = Account(2, "b")
    tracker.register(mapping.handle(kept))
    tracker.register(mapping.handle(gone), LifecycleState.UNCHANGED)
    tracker.mark_removed(EntityKey(Account, 2))
    tracker.commit()
    assert tracker.state_of(EntityKey(Account, 1)) is LifecycleState.UNCHANGED
    assert EntityKey(Account, 2) not in tracker
    assert not tracker.has_changes()


def test_discard_restores_checkpoint(tracker, mapping):
    account = Account(1, "a", 10)
    tracker.register(mapping.handle(account), LifecycleState.UNCHANGED)
    account.balance = 11
    tracker.checkpoint()
    tracker.detect_dirty()
    assert tracker.state_of(EntityKey(Account, 1)) is LifecycleState.MODIFIED
    tracker.discard()
    assert tracker.state_of(EntityKey(Account, 1)) is LifecycleState.UNCHANGED
    assert account.balance == 11
    assert tracker.has_changes()


def test_preview_leaves_pending_checkpoint_intact(tracker, mapping):
    account = Account(1, "a", 10)
    tracker.register(mapping.handle(account), LifecycleState.UNCHANGED)
    account.balance = 11
    tracker.checkpoint()
    assert tracker.preview_change_set().describe() == ["Account:1:modified"]
    assert tracker.state_of(EntityKey(Account, 1)) is LifecycleState.UNCHANGED
    tracker.detect_dirty()
    tracker.discard()
    assert tracker.state_of(EntityKey(Account, 1)) is LifecycleState.UNCHANGED


def test_key_changed_in_place_is_rejected(tracker, mapping):
    tracked = Account(1, "a")
    added = Account(2, "b")
    tracker.register(mapping.handle(tracked), LifecycleState.UNCHANGED)
    tracker.register(mapping.handle(added))
    added.id = 20
    with pytest.raises(InvalidTransitionError, match="changed its key"):
        tracker.build_change_set()
    added.id = 2
    tracked.id = 10
    with pytest.raises(InvalidTransitionError):
        tracker.detect_dirty()
    with pytest.raises(InvalidTransitionError):
        tracker.preview_change_set()


def test_reset_reverts_objects_and_drops_new(tracker, mapping):
    account = Account(1, "a", 10)
    tracker.register(mapping.handle(account), LifecycleState.UNCHANGED)
    tracker.register(mapping.handle(Account(2, "fresh")))
    account.balance = 500
    tracker.reset()
    assert account.balance == 10
    assert EntityKey(Account, 2) not in tracker
    assert not tracker.has_changes()


def test_replace_entity_tracks_new_object(tracker, mapping):
    tracker.register(mapping.handle(Account(1, "a", 10)), LifecycleState.UNCHANGED)
    replacement = Account(1, "a", 25)
    tracker.replace_entity(EntityKey(Account, 1), replacement)
    assert tracker.get(EntityKey(Account, 1)).entity is replacement
    assert tracker.detect_dirty() == [EntityKey(Account, 1)]


def test_change_set_keeps_registration_order_with_deletes_last(tracker, mapping):
    tracker.register(mapping.handle(Account(1, "a")), LifecycleState.UNCHANGED)
    tracker.register(mapping.handle(Account(2, "b")))
    tracker.register(mapping.handle(Account(3, "c")))
    tracker.mark_removed(EntityKey(Account, 1))
    change_set = tracker.build_change_set()
    assert [change.key for change in change_set] == [2, 3, 1]
    assert change_set.describe() == ["Account:2:new", "Account:3:new", "Account:1:removed"]
