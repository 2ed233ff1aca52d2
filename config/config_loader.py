"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from roundtable.models import Persona, TurnPolicy

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    turn: str
    batch: str
    judge: str
    topic: str


@dataclass
class SpeechConfig:
    model: str
    api_key_env: str
    timeout_sec: int = 60
    sample_rate: int = 24000


@dataclass
class DefaultsConfig:
    participants: int
    max_participants: int
    policy: TurnPolicy
    generator: str
    judge: str
    output_dir: Path
    topic_provider: str | None = None
    user_name: str = "You"
    thinking_delay_sec: tuple[float, float] = (5.0, 10.0)
    batch_pacing_sec: float = 1.5
    batch_max_turns: int = 2


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    personas: list[Persona] = field(default_factory=list)
    voices: list[str] = field(default_factory=list)
    speech: SpeechConfig | None = None
    available_providers: set[str] = field(default_factory=set)


def parse_policy(value: str) -> TurnPolicy:
    """Map a settings/CLI string onto a TurnPolicy, rejecting unknown names."""
    try:
        return TurnPolicy(str(value).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(p.value for p in TurnPolicy)
        raise ValueError(f"Unknown turn policy '{value}' (expected one of: {allowed})") from exc


def _parse_delay(raw: object) -> tuple[float, float]:
    if isinstance(raw, (int, float)):
        return float(raw), float(raw)
    low, high = (float(v) for v in raw)  # type: ignore[union-attr]
    if low < 0 or high < low:
        raise ValueError(f"Invalid thinking_delay_sec range: {raw}")
    return low, high


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError on an
    unknown turn policy. Logs warnings for missing API keys but does not
    raise — callers check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        participants=int(defaults_raw["participants"]),
        max_participants=int(defaults_raw["max_participants"]),
        policy=parse_policy(defaults_raw.get("policy", "round_robin")),
        generator=str(defaults_raw["generator"]),
        judge=str(defaults_raw.get("judge", defaults_raw["generator"])),
        output_dir=Path(defaults_raw["output_dir"]),
        topic_provider=defaults_raw.get("topic_provider"),
        user_name=str(defaults_raw.get("user_name", "You")),
        thinking_delay_sec=_parse_delay(defaults_raw.get("thinking_delay_sec", [5, 10])),
        batch_pacing_sec=float(defaults_raw.get("batch_pacing_sec", 1.5)),
        batch_max_turns=int(defaults_raw.get("batch_max_turns", 2)),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        turn=prompts_raw["turn"],
        batch=prompts_raw["batch"],
        judge=prompts_raw["judge"],
        topic=prompts_raw["topic"],
    )

    personas = [
        Persona(name=str(p["name"]), role=str(p["role"]))
        for p in raw.get("personas", [])
    ]
    voices = [str(v) for v in raw.get("voices", [])]

    speech: SpeechConfig | None = None
    speech_raw = raw.get("speech")
    if speech_raw:
        speech = SpeechConfig(
            model=str(speech_raw["model"]),
            api_key_env=str(speech_raw["api_key_env"]),
            timeout_sec=int(speech_raw.get("timeout_sec", 60)),
            sample_rate=int(speech_raw.get("sample_rate", 24000)),
        )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s — set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        personas=personas,
        voices=voices,
        speech=speech,
        available_providers=available_providers,
    )
