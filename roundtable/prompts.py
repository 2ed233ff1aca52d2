"""Prompt assembly: renders session, roster and transcript into service requests."""

import json
import logging
import re
from collections.abc import Sequence

from config.config_loader import PromptsConfig
from roundtable.models import BatchEntry, Message, Participant, PromptMode, Session

logger = logging.getLogger(__name__)

_EMPTY_TRANSCRIPT = "(no messages yet)"
_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def describe_participants(participants: Sequence[Participant]) -> str:
    """One line per AI participant: name, persona and id."""
    return "\n".join(
        f"- Name: {p.name}, Personality/Role: {p.role} (ID: {p.id})"
        for p in participants
        if not p.is_user
    )


def render_transcript(messages: Sequence[Message], participants: Sequence[Participant]) -> str:
    """Chronological ``<name>: <text>`` lines."""
    if not messages:
        return _EMPTY_TRANSCRIPT
    names = {p.id: p.name for p in participants}
    return "\n".join(f"{names.get(m.participant_id, 'Unknown')}: {m.text}" for m in messages)


def _user_name(session: Session) -> str:
    return next((p.name for p in session.participants if p.is_user), "User")


def build_turn_prompt(
    session: Session,
    messages: Sequence[Message],
    prompts: PromptsConfig,
    mode: PromptMode,
    speaker: Participant | None = None,
    max_turns: int = 2,
) -> str:
    """Render a generation request for the next turn(s).

    FORCED mode names ``speaker`` as the only one allowed to respond. BATCH
    mode asks for up to ``max_turns`` ordered contributions as JSON.

    Raises:
        ValueError: If FORCED mode is requested without an AI speaker from
            the session roster.
    """
    participants_block = describe_participants(session.participants)
    transcript = render_transcript(messages, session.participants)

    if mode is PromptMode.FORCED:
        if speaker is None or speaker.is_user or speaker not in session.participants:
            raise ValueError("Forced-speaker prompt needs an AI participant from the roster")
        return prompts.turn.format(
            topic=session.topic,
            user_name=_user_name(session),
            participants=participants_block,
            transcript=transcript,
            speaker_name=speaker.name,
            speaker_id=speaker.id,
        )

    names = {p.id: p.name for p in session.participants}
    last_speaker = names.get(messages[-1].participant_id, "nobody") if messages else "nobody"
    return prompts.batch.format(
        topic=session.topic,
        user_name=_user_name(session),
        participants=participants_block,
        transcript=transcript,
        max_turns=max_turns,
        last_speaker=last_speaker,
    )


def build_judge_prompt(session: Session, messages: Sequence[Message], template: str) -> str:
    return template.format(
        topic=session.topic,
        transcript=render_transcript(messages, session.participants),
    )


def _load_json(raw: str) -> object | None:
    text = raw.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def parse_batch_response(raw: str, session: Session, max_turns: int = 2) -> list[BatchEntry]:
    """Validate a batch-mode reply into ordered entries.

    Accepts ``{"turns": [...]}`` or a bare list, optionally wrapped in a
    markdown code fence. Entries are dropped (with a warning) when a field is
    missing or blank, the id is not an AI participant of this session, the
    same participant would speak twice in a row, or ``max_turns`` entries
    were already accepted.
    """
    payload = _load_json(raw)
    if isinstance(payload, dict):
        payload = payload.get("turns")
    if not isinstance(payload, list):
        logger.warning("Batch response is not a list of turns, dropping it: %.120s", raw)
        return []

    ai_ids = {p.id for p in session.participants if not p.is_user}
    entries: list[BatchEntry] = []

    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            logger.warning("Batch entry %d dropped: not an object", index)
            continue
        participant_id = item.get("participant_id", item.get("participantId"))
        text = item.get("text")
        if not isinstance(participant_id, str) or not isinstance(text, str) or not text.strip():
            logger.warning("Batch entry %d dropped: missing participant_id or text", index)
            continue
        participant_id = participant_id.strip()
        if participant_id not in ai_ids:
            logger.warning("Batch entry %d dropped: unknown participant %r", index, participant_id)
            continue
        if entries and entries[-1].participant_id == participant_id:
            logger.warning("Batch entry %d dropped: %s would speak twice in a row", index, participant_id)
            continue
        if len(entries) >= max_turns:
            logger.warning("Batch entry %d dropped: more than %d turns returned", index, max_turns)
            continue
        entries.append(BatchEntry(participant_id=participant_id, text=text.strip()))

    return entries
