"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from roundtable.conversation import ConversationLog
from roundtable.models import Completion, Persona, Session, TurnPolicy
from roundtable.providers.base import AIProvider
from roundtable.registry import create_session

CATALOG = [
    Persona("Alice", "The Optimist: Always sees the bright side and potential benefits."),
    Persona("Bob", "The Skeptic: Questions assumptions and looks for flaws."),
    Persona("Charlie", "The Analyst: Focuses on data, facts, and logical structure."),
    Persona("Diana", "The Creative: Offers out-of-the-box ideas and emotional perspective."),
]

VOICES = ["Puck", "Charon", "Kore"]

TOPIC = "Is remote work good for society?"


def make_completion(content: str, provider: str = "mock", purpose: str = "turn") -> Completion:
    return Completion(
        provider=provider,
        model="mock-model",
        purpose=purpose,
        content=content,
        latency_sec=0.1,
        token_count=10,
    )


async def no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="gemini",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        turn=(
            "Topic: {topic}\nUser: {user_name}\n{participants}\n"
            "Transcript:\n{transcript}\nNow {speaker_name} ({speaker_id}) speaks."
        ),
        batch=(
            "Topic: {topic}\nUser: {user_name}\n{participants}\nTranscript:\n{transcript}\n"
            "Up to {max_turns} turns, last speaker {last_speaker}. "
            '{{"turns": [{{"participant_id": "...", "text": "..."}}]}}'
        ),
        judge="Judge topic: {topic}\nTranscript:\n{transcript}",
        topic="Suggest a topic.",
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        participants=2,
        max_participants=4,
        policy=TurnPolicy.ROUND_ROBIN,
        generator="gemini",
        judge="claude",
        output_dir=tmp_path / "output",
        thinking_delay_sec=(0.0, 0.0),
        batch_pacing_sec=0.0,
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"claude": model_cfg},
        prompts=sample_prompts_config,
        personas=list(CATALOG),
        voices=list(VOICES),
        available_providers={"claude"},
    )


@pytest.fixture
def sample_session() -> Session:
    return create_session(TOPIC, 2, CATALOG, voices=VOICES)


@pytest.fixture
def batch_session() -> Session:
    return create_session(TOPIC, 3, CATALOG, voices=VOICES, policy=TurnPolicy.BATCH)


@pytest.fixture
def sample_log(sample_session: Session) -> ConversationLog:
    return ConversationLog(sample_session.participants)


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(
        self,
        provider_name: str = "mock",
        response_content: str = "Mock response",
        timeout_sec: float | None = None,
    ) -> None:
        self._name = provider_name
        self._response_content = response_content
        self._timeout_sec = timeout_sec
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=make_completion(response_content, provider=provider_name)
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    def default_timeout_sec(self) -> float | None:
        return self._timeout_sec

    async def generate(  # type: ignore[override]
        self,
        prompt: str,
        purpose: str,
        json_output: bool = False,
        timeout_sec: float | None = None,
    ) -> Completion:
        """Default implementation; replaced by AsyncMock in __init__."""
        return make_completion(self._response_content, provider=self._name, purpose=purpose)


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()
