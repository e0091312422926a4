"""Unit tests for the message store and its status state machine."""

from __future__ import annotations

import itertools

import pytest

from app.models import MessageStatus
from app.monitoring.metrics import message_status_transitions_total
from conftest import make_message
from threadline.errors import DuplicateIdError
from threadline.messaging import MessageStore


ALL_STATUSES = list(MessageStatus)


def test_insert_rejects_duplicate_ids() -> None:
    store = MessageStore()
    store.insert(make_message("m1"))

    with pytest.raises(DuplicateIdError) as excinfo:
        store.insert(make_message("m1", text="other"))

    assert excinfo.value.record_id == "m1"
    assert len(store) == 1
    assert store.get("m1").text == "hello"


@pytest.mark.parametrize("attempts", list(itertools.permutations(ALL_STATUSES)))
def test_status_is_maximum_of_attempts_in_any_order(attempts) -> None:
    store = MessageStore()
    store.insert(make_message("m1", status=MessageStatus.SENDING))

    for status in attempts:
        store.update_status("m1", status)

    assert store.get("m1").status is MessageStatus.READ


def test_late_sent_confirmation_does_not_regress_delivered() -> None:
    store = MessageStore()
    store.insert(make_message("m1", status=MessageStatus.SENDING))

    _, advanced = store.update_status("m1", MessageStatus.DELIVERED)
    message, changed = store.update_status("m1", MessageStatus.SENT)

    assert advanced is True
    assert changed is False
    assert message.status is MessageStatus.DELIVERED
    assert message_status_transitions_total.value("sent", "ignored") == 1.0


def test_repeated_status_is_a_no_op() -> None:
    store = MessageStore()
    original = store.insert(make_message("m1", status=MessageStatus.SENT))

    message, changed = store.update_status("m1", MessageStatus.SENT)

    assert changed is False
    assert message is original


def test_update_status_on_missing_message_is_a_no_op() -> None:
    store = MessageStore()

    message, changed = store.update_status("ghost", MessageStatus.READ)

    assert message is None
    assert changed is False
    assert message_status_transitions_total.value("read", "missing") == 1.0


def test_set_reaction_is_last_writer_wins_and_empty_clears() -> None:
    store = MessageStore()
    store.insert(make_message("m1"))

    store.set_reaction("m1", "👍")
    store.set_reaction("m1", "❤️")
    assert store.get("m1").reactions == "❤️"

    _, changed = store.set_reaction("m1", "")
    assert changed is True
    assert store.get("m1").reactions == ""


def test_by_conversation_orders_by_timestamp_and_keeps_insertion_on_ties() -> None:
    store = MessageStore()
    store.insert(make_message("late", offset=30))
    store.insert(make_message("early", offset=0))
    store.insert(make_message("tie-a", offset=10))
    store.insert(make_message("tie-b", offset=10))
    store.insert(make_message("elsewhere", conversation_id="c2", offset=5))

    ordered = [message.id for message in store.by_conversation("c1")]

    assert ordered == ["early", "tie-a", "tie-b", "late"]
    assert [message.id for message in store.by_conversation("c2")] == ["elsewhere"]
    assert store.by_conversation("unknown") == []


def test_by_conversation_returns_a_stable_snapshot() -> None:
    store = MessageStore()
    store.insert(make_message("m1", status=MessageStatus.SENT))

    snapshot = store.by_conversation("c1")
    store.update_status("m1", MessageStatus.READ)
    store.insert(make_message("m2", offset=1))

    assert [message.id for message in snapshot] == ["m1"]
    assert snapshot[0].status is MessageStatus.SENT
    assert [message.id for message in store.by_conversation("c1")] == ["m1", "m2"]


def test_remove_drops_record_and_index() -> None:
    store = MessageStore()
    store.insert(make_message("m1"))
    store.insert(make_message("m2", offset=1))

    removed = store.remove("m1")

    assert removed.id == "m1"
    assert "m1" not in store
    assert [message.id for message in store.by_conversation("c1")] == ["m2"]
    assert store.remove("m1") is None
    assert store.latest("c1").id == "m2"
