"""Participant registry: builds the session roster from the persona catalog."""

import logging
from collections.abc import Sequence

from roundtable.models import Participant, Persona, Session, TurnPolicy

logger = logging.getLogger(__name__)

USER_ID = "user"
USER_ROLE = "Participant"


class ConfigurationError(Exception):
    """Raised when a session cannot be set up from the requested options."""


def ai_participant_id(index: int) -> str:
    return f"ai-{index}"


def build_roster(
    count: int,
    catalog: Sequence[Persona],
    voices: Sequence[str] = (),
    max_participants: int | None = None,
    user_name: str = "You",
) -> tuple[Participant, ...]:
    """Return the user followed by the first ``count`` catalog personas.

    AI participants get ids ``ai-0``, ``ai-1``, ... and a voice cycled from
    ``voices`` (no voice when the pool is empty).

    Raises:
        ConfigurationError: If count is below 1, above max_participants, or
            larger than the catalog. Personas are never reused.
    """
    if count < 1:
        raise ConfigurationError(f"Need at least 1 AI participant, got {count}")
    if max_participants is not None and count > max_participants:
        raise ConfigurationError(
            f"Requested {count} AI participants, maximum is {max_participants}"
        )
    if count > len(catalog):
        raise ConfigurationError(
            f"Requested {count} AI participants but only {len(catalog)} personas are defined"
        )

    user = Participant(id=USER_ID, name=user_name, role=USER_ROLE, is_user=True)
    ai_roster = [
        Participant(
            id=ai_participant_id(i),
            name=persona.name,
            role=persona.role,
            voice=voices[i % len(voices)] if voices else None,
        )
        for i, persona in enumerate(catalog[:count])
    ]
    return (user, *ai_roster)


def create_session(
    topic: str,
    count: int,
    catalog: Sequence[Persona],
    voices: Sequence[str] = (),
    policy: TurnPolicy = TurnPolicy.ROUND_ROBIN,
    max_participants: int | None = None,
    user_name: str = "You",
) -> Session:
    """Validate setup options and build an immutable Session.

    Raises:
        ConfigurationError: On a blank topic or an invalid participant count.
    """
    topic = topic.strip()
    if not topic:
        raise ConfigurationError("A discussion topic is required")

    participants = build_roster(
        count,
        catalog,
        voices=voices,
        max_participants=max_participants,
        user_name=user_name,
    )
    logger.info(
        "Session ready: %d AI participants (%s), policy=%s",
        count,
        ", ".join(p.name for p in participants if not p.is_user),
        policy.value,
    )
    return Session(topic=topic, participants=participants, policy=policy)


def ai_participants(session: Session) -> list[Participant]:
    """AI participants in registration order."""
    return [p for p in session.participants if not p.is_user]


def user_participant(session: Session) -> Participant:
    return next(p for p in session.participants if p.is_user)
