"""Tests for roundtable/conversation.py."""

import dataclasses
from datetime import datetime, timezone

import pytest

from roundtable.conversation import ConversationLog
from roundtable.models import Message


def _message(mid: str, pid: str = "ai-0", text: str = "Hello") -> Message:
    return Message(id=mid, participant_id=pid, text=text, timestamp=datetime.now(timezone.utc))


def test_empty_log(sample_log):
    assert len(sample_log) == 0
    assert sample_log.latest() is None
    assert sample_log.snapshot() == ()


def test_record_assigns_sequential_ids(sample_log):
    first = sample_log.record("user", "Opening thought")
    second = sample_log.record("ai-0", "Reply")
    assert first.id == "msg-0001"
    assert second.id == "msg-0002"
    assert sample_log.latest() == second


def test_snapshot_is_point_in_time(sample_log):
    sample_log.record("ai-0", "One")
    snap = sample_log.snapshot()
    sample_log.record("ai-1", "Two")
    assert len(snap) == 1
    assert len(sample_log.snapshot()) == 2


def test_append_preserves_order(sample_log):
    for i, pid in enumerate(["ai-1", "user", "ai-0"]):
        sample_log.append(_message(f"m{i}", pid))
    assert [m.participant_id for m in sample_log.snapshot()] == ["ai-1", "user", "ai-0"]


def test_append_rejects_unknown_participant(sample_log):
    with pytest.raises(ValueError, match="Unknown participant"):
        sample_log.append(_message("m1", pid="ai-7"))
    assert len(sample_log) == 0


def test_append_rejects_blank_text(sample_log):
    with pytest.raises(ValueError, match="non-empty"):
        sample_log.append(_message("m1", text="  "))


def test_append_rejects_duplicate_id(sample_log):
    sample_log.append(_message("m1"))
    with pytest.raises(ValueError, match="Duplicate"):
        sample_log.append(_message("m1", pid="ai-1"))
    assert len(sample_log) == 1


def test_messages_are_immutable(sample_log):
    message = sample_log.record("ai-0", "Fixed")
    with pytest.raises(dataclasses.FrozenInstanceError):
        message.text = "Edited"  # type: ignore[misc]


def test_shared_timestamps_keep_distinct_positions(sample_log):
    ts = datetime(2026, 1, 1, tzinfo=timezone.utc)
    sample_log.append(Message("a", "ai-0", "First", ts))
    sample_log.append(Message("b", "ai-1", "Second", ts))
    assert [m.id for m in sample_log.snapshot()] == ["a", "b"]
