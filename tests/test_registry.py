"""Tests for roundtable/registry.py."""

import pytest

from roundtable.models import TurnPolicy
from roundtable.registry import (
    ConfigurationError,
    ai_participants,
    build_roster,
    create_session,
    user_participant,
)
from tests.conftest import CATALOG, TOPIC, VOICES


def test_build_roster_three_participants():
    roster = build_roster(3, CATALOG, voices=VOICES)
    assert len(roster) == 4
    assert roster[0].id == "user"
    assert roster[0].is_user is True
    assert [p.id for p in roster[1:]] == ["ai-0", "ai-1", "ai-2"]
    assert [p.name for p in roster[1:]] == ["Alice", "Bob", "Charlie"]
    assert all(not p.is_user for p in roster[1:])


def test_build_roster_ids_unique_and_single_user():
    roster = build_roster(4, CATALOG, voices=VOICES)
    assert len({p.id for p in roster}) == len(roster)
    assert sum(p.is_user for p in roster) == 1


def test_build_roster_cycles_voices():
    roster = build_roster(4, CATALOG, voices=VOICES)
    assert [p.voice for p in roster[1:]] == ["Puck", "Charon", "Kore", "Puck"]
    assert roster[0].voice is None


def test_build_roster_without_voice_pool():
    roster = build_roster(2, CATALOG)
    assert all(p.voice is None for p in roster)


def test_build_roster_rejects_more_than_catalog():
    with pytest.raises(ConfigurationError, match="only 4 personas"):
        build_roster(5, CATALOG)


def test_build_roster_rejects_above_maximum():
    with pytest.raises(ConfigurationError, match="maximum is 2"):
        build_roster(3, CATALOG, max_participants=2)


@pytest.mark.parametrize("count", [0, -1])
def test_build_roster_rejects_non_positive(count):
    with pytest.raises(ConfigurationError):
        build_roster(count, CATALOG)


def test_build_roster_user_name():
    roster = build_roster(1, CATALOG, user_name="Sam")
    assert roster[0].name == "Sam"


def test_create_session_strips_topic():
    session = create_session(f"  {TOPIC}  ", 2, CATALOG, policy=TurnPolicy.BATCH)
    assert session.topic == TOPIC
    assert session.policy is TurnPolicy.BATCH
    assert len(session.participants) == 3


def test_create_session_rejects_blank_topic():
    with pytest.raises(ConfigurationError, match="topic"):
        create_session("   ", 2, CATALOG)


def test_session_helpers(sample_session):
    assert user_participant(sample_session).id == "user"
    assert [p.id for p in ai_participants(sample_session)] == ["ai-0", "ai-1"]
