"""Integration tests — real API calls, no mocks. Requires a key in .env."""

import os

import pytest
from dotenv import load_dotenv

load_dotenv()

_AVAILABLE_KEYS = [
    k for k in ["GEMINI_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "XAI_API_KEY"]
    if os.environ.get(k, "").strip()
]
pytestmark = pytest.mark.integration

if not _AVAILABLE_KEYS:
    pytestmark = pytest.mark.skip(reason="Need at least 1 API key")


async def test_opening_round_and_judge():
    """Run a real opening round with two personas and judge it."""
    from config.config_loader import load_config
    from roundtable.cli import _build_all_providers, _pick_provider
    from roundtable.conversation import ConversationLog
    from roundtable.judge import JudgeEvaluator
    from roundtable.orchestrator import TurnOrchestrator
    from roundtable.registry import create_session

    config = load_config()
    providers = _build_all_providers(config)
    generator = _pick_provider(providers, config.defaults.generator, "Generator")
    assert generator is not None

    session = create_session("Is remote work good for society?", 2, config.personas, voices=config.voices)
    log = ConversationLog(session.participants)
    orchestrator = TurnOrchestrator(
        session, log, generator, config.prompts, thinking_delay_sec=(0.0, 0.0),
    )

    rnd = await orchestrator.start()

    assert len(rnd.messages) + len(rnd.skipped) == 2
    assert [m.participant_id for m in log.snapshot()] == [m.participant_id for m in rnd.messages]

    judge = JudgeEvaluator(session, log, generator, config.prompts.judge)
    verdict = await judge.evaluate()
    assert verdict is None or verdict.content
