"""Pure dataclasses for the roundtable discussion engine. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TurnPolicy(str, Enum):
    ROUND_ROBIN = "round_robin"  # every AI participant once, roster order
    BATCH = "batch"              # one service call, 1-2 free contributions


class PromptMode(str, Enum):
    FORCED = "forced"
    BATCH = "batch"


class RoundPhase(str, Enum):
    IDLE = "idle"
    ROUND_ACTIVE = "round_active"
    AWAITING_TURN = "awaiting_turn"


@dataclass(frozen=True)
class Persona:
    name: str
    role: str


@dataclass(frozen=True)
class Participant:
    id: str
    name: str
    role: str
    is_user: bool = False
    voice: str | None = None


@dataclass(frozen=True)
class Message:
    id: str
    participant_id: str
    text: str
    timestamp: datetime


@dataclass(frozen=True)
class Session:
    topic: str
    participants: tuple[Participant, ...]
    policy: TurnPolicy = TurnPolicy.ROUND_ROBIN


@dataclass
class Completion:
    provider: str          # configured provider name, e.g. "gemini"
    model: str             # actual model string used
    purpose: str           # "turn", "batch", "judge", "topic", "ping"
    content: str
    latency_sec: float
    token_count: int | None


@dataclass(frozen=True)
class BatchEntry:
    participant_id: str
    text: str


@dataclass(frozen=True)
class Verdict:
    content: str                 # raw markdown from the judge
    generated_at_log_length: int
    judge: str


@dataclass(frozen=True)
class OrchestratorState:
    phase: RoundPhase
    speaker_id: str | None = None


@dataclass
class Round:
    number: int
    trigger: str           # "start" or "user"
    policy: TurnPolicy
    messages: list[Message] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    duration_sec: float = 0.0
