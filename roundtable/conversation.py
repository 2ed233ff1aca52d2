"""Conversation log: the append-only, ordered store of discussion messages."""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from roundtable.models import Message, Participant

logger = logging.getLogger(__name__)


class ConversationLog:
    """Single source of truth for discussion history.

    Append is the only mutator. Messages are frozen dataclasses and the log
    hands out copies, so nobody can edit or reorder past entries.
    """

    def __init__(self, participants: Iterable[Participant]) -> None:
        self._participant_ids = {p.id for p in participants}
        self._messages: list[Message] = []
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> None:
        """Append a message at the end of the log.

        Raises:
            ValueError: If the author is not in the roster, the text is
                blank, or the id was already used.
        """
        if message.participant_id not in self._participant_ids:
            raise ValueError(f"Unknown participant: {message.participant_id}")
        if not message.text.strip():
            raise ValueError("Message text must be non-empty")
        if message.id in self._ids:
            raise ValueError(f"Duplicate message id: {message.id}")

        self._messages.append(message)
        self._ids.add(message.id)
        logger.debug(
            "Message %s appended by %s (%d chars), log length %d",
            message.id,
            message.participant_id,
            len(message.text),
            len(self._messages),
        )

    def record(self, participant_id: str, text: str) -> Message:
        """Create the next message for participant_id and append it."""
        message = Message(
            id=f"msg-{len(self._messages) + 1:04d}",
            participant_id=participant_id,
            text=text,
            timestamp=datetime.now(timezone.utc),
        )
        self.append(message)
        return message

    def snapshot(self) -> tuple[Message, ...]:
        """Point-in-time copy of the log in append order."""
        return tuple(self._messages)

    def latest(self) -> Message | None:
        return self._messages[-1] if self._messages else None
