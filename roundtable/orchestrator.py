"""Turn orchestration: decides who speaks, calls the service, commits turns in order."""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable

from config.config_loader import PromptsConfig
from roundtable.conversation import ConversationLog
from roundtable.models import (
    Completion,
    Message,
    OrchestratorState,
    Participant,
    PromptMode,
    Round,
    RoundPhase,
    Session,
    TurnPolicy,
)
from roundtable.prompts import build_turn_prompt, parse_batch_response
from roundtable.providers.base import AIProvider, ProviderError
from roundtable.registry import ai_participants, user_participant

logger = logging.getLogger(__name__)

_IDLE = OrchestratorState(RoundPhase.IDLE)


class RoundInProgressError(Exception):
    """Raised when a round is triggered while another one is still running."""


async def call_provider(
    provider: AIProvider,
    prompt: str,
    purpose: str,
    json_output: bool = False,
) -> Completion | ProviderError:
    """Call a single provider, retrying once on timeout with 1.5x the timeout.

    Never raises — returns ProviderError on permanent failure.
    """
    try:
        return await provider.generate(prompt, purpose, json_output=json_output)
    except ProviderError as exc:
        if "timed out" in str(exc).lower():
            base_timeout = provider.default_timeout_sec()
            retry_timeout = base_timeout * 1.5 if base_timeout else None
            if retry_timeout:
                logger.warning(
                    "Provider %s timed out (%s), retrying with %gs (1.5x)",
                    provider.name(), purpose, retry_timeout,
                )
            else:
                logger.warning("Provider %s timed out (%s), retrying", provider.name(), purpose)
            try:
                return await provider.generate(
                    prompt, purpose, json_output=json_output, timeout_sec=retry_timeout,
                )
            except ProviderError as retry_exc:
                logger.warning(
                    "Provider %s failed after retry (%s): %s", provider.name(), purpose, retry_exc,
                )
                return retry_exc
            except Exception as retry_exc:
                logger.warning(
                    "Provider %s unexpected failure after retry (%s): %s",
                    provider.name(), purpose, retry_exc,
                )
                return ProviderError(provider.name(), f"Unexpected error on retry: {retry_exc}")

        logger.warning("Provider %s failed (%s): %s", provider.name(), purpose, exc)
        return exc
    except Exception as exc:
        logger.warning("Provider %s unexpected failure (%s): %s", provider.name(), purpose, exc)
        return ProviderError(provider.name(), f"Unexpected error: {exc}")


class TurnOrchestrator:
    """Drives the Idle -> RoundActive -> AwaitingTurn -> ... -> Idle cycle.

    The orchestrator is the only writer to the conversation log. One round
    runs at a time; turns inside a round are strictly sequential and each
    result is appended before the next service call starts. A failed or
    empty turn is skipped and the round carries on.

    Args:
        session: Topic, roster and turn policy.
        log: The session's conversation log.
        provider: Language generation service.
        prompts: Prompt templates.
        thinking_delay_sec: (low, high) pause before each round-robin turn.
        batch_pacing_sec: Pause between appends of one batch result.
        batch_max_turns: Most entries applied from one batch result.
        on_state_change: Called after every state transition.
        on_message: Called after every append, user messages included.
        sleep: Awaitable delay function (tests pass a no-op).
        rng: Random source for the thinking delay.
    """

    def __init__(
        self,
        session: Session,
        log: ConversationLog,
        provider: AIProvider,
        prompts: PromptsConfig,
        *,
        thinking_delay_sec: tuple[float, float] = (5.0, 10.0),
        batch_pacing_sec: float = 1.5,
        batch_max_turns: int = 2,
        on_state_change: Callable[[OrchestratorState], None] | None = None,
        on_message: Callable[[Message], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._session = session
        self._log = log
        self._provider = provider
        self._prompts = prompts
        self._thinking_delay_sec = thinking_delay_sec
        self._batch_pacing_sec = batch_pacing_sec
        self._batch_max_turns = batch_max_turns
        self._on_state_change = on_state_change
        self._on_message = on_message
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._state = _IDLE
        self._rounds_completed = 0

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state.phase is not RoundPhase.IDLE

    @property
    def rounds_completed(self) -> int:
        return self._rounds_completed

    def _set_state(self, phase: RoundPhase, speaker_id: str | None = None) -> None:
        self._state = OrchestratorState(phase, speaker_id)
        logger.debug("State -> %s%s", phase.value, f" ({speaker_id})" if speaker_id else "")
        if self._on_state_change:
            self._on_state_change(self._state)

    def _claim_round(self) -> None:
        # No await between the check and the transition, so two triggers
        # cannot both pass it.
        if self.is_busy:
            raise RoundInProgressError("A round is already in progress; wait for it to finish")
        self._set_state(RoundPhase.ROUND_ACTIVE)

    def _commit(self, participant_id: str, text: str) -> Message:
        message = self._log.record(participant_id, text)
        # The append is the commit point; a failing listener must not undo it.
        if self._on_message:
            try:
                self._on_message(message)
            except Exception as exc:
                logger.warning("Message listener failed for %s: %s", message.id, exc)
        return message

    async def start(self) -> Round:
        """Run the opening round of an empty discussion.

        Raises:
            RoundInProgressError: If a round is already running.
            ValueError: If the discussion has already started.
        """
        if len(self._log) and not self.is_busy:
            raise ValueError("Discussion already started")
        self._claim_round()
        return await self._run_round("start")

    async def submit_user_message(self, text: str) -> Round:
        """Append the user's message, then let the AI participants respond.

        Raises:
            ValueError: If text is blank.
            RoundInProgressError: If a round is already running; the message
                is not appended.
        """
        text = text.strip()
        if not text:
            raise ValueError("Message text must be non-empty")
        self._claim_round()
        try:
            self._commit(user_participant(self._session).id, text)
        except Exception:
            self._set_state(RoundPhase.IDLE)
            raise
        return await self._run_round("user")

    async def _run_round(self, trigger: str) -> Round:
        rnd = Round(number=self._rounds_completed + 1, trigger=trigger, policy=self._session.policy)
        start = time.monotonic()
        logger.info(
            "Round %d started (%s trigger, %s policy)", rnd.number, trigger, rnd.policy.value,
        )
        try:
            if self._session.policy is TurnPolicy.BATCH:
                await self._run_batch(rnd)
            else:
                await self._run_round_robin(rnd)
        finally:
            rnd.duration_sec = time.monotonic() - start
            self._rounds_completed += 1
            self._set_state(RoundPhase.IDLE)

        logger.info(
            "Round %d complete: %d messages, %d skipped, %.1fs",
            rnd.number, len(rnd.messages), len(rnd.skipped), rnd.duration_sec,
        )
        return rnd

    async def _run_round_robin(self, rnd: Round) -> None:
        for participant in ai_participants(self._session):
            self._set_state(RoundPhase.AWAITING_TURN, participant.id)
            try:
                message = await self._take_turn(participant)
            except Exception as exc:
                logger.warning("Turn for %s failed unexpectedly, skipping: %s", participant.name, exc)
                message = None
            if message is None:
                rnd.skipped.append(participant.id)
            else:
                rnd.messages.append(message)
            self._set_state(RoundPhase.ROUND_ACTIVE)

    async def _take_turn(self, participant: Participant) -> Message | None:
        low, high = self._thinking_delay_sec
        delay = self._rng.uniform(low, high)
        if delay > 0:
            await self._sleep(delay)

        prompt = build_turn_prompt(
            self._session,
            self._log.snapshot(),
            self._prompts,
            PromptMode.FORCED,
            speaker=participant,
        )
        logger.debug("Turn prompt for %s:\n%s", participant.id, prompt)

        result = await call_provider(self._provider, prompt, "turn")
        if isinstance(result, ProviderError):
            logger.warning("No contribution from %s this round: %s", participant.name, result)
            return None
        if not result.content.strip():
            logger.warning("Empty contribution from %s, skipping turn", participant.name)
            return None
        return self._commit(participant.id, result.content.strip())

    async def _run_batch(self, rnd: Round) -> None:
        self._set_state(RoundPhase.AWAITING_TURN)
        prompt = build_turn_prompt(
            self._session,
            self._log.snapshot(),
            self._prompts,
            PromptMode.BATCH,
            max_turns=self._batch_max_turns,
        )
        logger.debug("Batch prompt:\n%s", prompt)

        result = await call_provider(self._provider, prompt, "batch", json_output=True)
        self._set_state(RoundPhase.ROUND_ACTIVE)
        if isinstance(result, ProviderError):
            logger.warning("Batch generation failed, no contributions this round: %s", result)
            return

        entries = parse_batch_response(result.content, self._session, self._batch_max_turns)
        if not entries:
            logger.warning("Batch response held no usable contributions")
            return

        for index, entry in enumerate(entries):
            if index and self._batch_pacing_sec > 0:
                await self._sleep(self._batch_pacing_sec)
            self._set_state(RoundPhase.AWAITING_TURN, entry.participant_id)
            rnd.messages.append(self._commit(entry.participant_id, entry.text))
            self._set_state(RoundPhase.ROUND_ACTIVE)
