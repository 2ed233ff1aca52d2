"""Unit tests for roundtable/topics.py — no API calls."""

import textwrap
from pathlib import Path
from unittest.mock import AsyncMock

from roundtable.providers.base import ProviderError
from roundtable.topics import FALLBACK_TOPIC, parse_topic_file, suggest_topic
from tests.conftest import MockProvider, make_completion


async def test_suggest_topic_returns_service_text():
    provider = MockProvider("gemini")
    provider.generate = AsyncMock(
        return_value=make_completion('"Should voting be mandatory?"', purpose="topic")
    )
    topic = await suggest_topic(provider, "Suggest a topic.")
    assert topic == "Should voting be mandatory?"
    assert provider.generate.await_args.args[1] == "topic"


async def test_suggest_topic_falls_back_on_failure():
    provider = MockProvider("gemini")
    provider.generate = AsyncMock(side_effect=ProviderError("gemini", "quota exceeded"))
    assert await suggest_topic(provider, "Suggest a topic.") == FALLBACK_TOPIC


def test_parse_topic_file_no_frontmatter(tmp_path: Path) -> None:
    f = tmp_path / "topic.md"
    f.write_text("Should cities ban cars?", encoding="utf-8")
    topic, metadata = parse_topic_file(f)
    assert topic == "Should cities ban cars?"
    assert metadata == {}


def test_parse_topic_file_with_frontmatter(tmp_path: Path) -> None:
    f = tmp_path / "topic.md"
    f.write_text(
        textwrap.dedent("""\
            ---
            participants: 3
            policy: batch
            ---
            Is a four-day work week realistic?
        """),
        encoding="utf-8",
    )
    topic, metadata = parse_topic_file(f)
    assert topic == "Is a four-day work week realistic?"
    assert metadata["participants"] == 3
    assert metadata["policy"] == "batch"
