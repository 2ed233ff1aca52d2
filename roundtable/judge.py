"""Judge evaluation: on-demand verdict over a log snapshot, cached until refreshed."""

import asyncio
import logging

from roundtable.conversation import ConversationLog
from roundtable.models import Session, Verdict
from roundtable.orchestrator import call_provider
from roundtable.prompts import build_judge_prompt
from roundtable.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)


class JudgeEvaluator:
    """Lazily evaluates the discussion and caches the verdict.

    The cached verdict is not invalidated when new messages arrive; it keeps
    describing the transcript as of the last evaluation until ``refresh`` is
    called. The judge only ever reads a snapshot of the log, so it can run
    while a round is in progress.
    """

    def __init__(
        self,
        session: Session,
        log: ConversationLog,
        provider: AIProvider,
        template: str,
    ) -> None:
        self._session = session
        self._log = log
        self._provider = provider
        self._template = template
        self._verdict: Verdict | None = None
        self._lock = asyncio.Lock()

    @property
    def verdict(self) -> Verdict | None:
        return self._verdict

    async def evaluate(self) -> Verdict | None:
        """Return the cached verdict, computing it on first use.

        Returns None when the judge call fails; the next call tries again.
        """
        async with self._lock:
            if self._verdict is None:
                self._verdict = await self._compute()
            return self._verdict

    async def refresh(self) -> Verdict | None:
        """Discard the cached verdict and evaluate the current transcript."""
        async with self._lock:
            self._verdict = None
            self._verdict = await self._compute()
            return self._verdict

    async def _compute(self) -> Verdict | None:
        messages = self._log.snapshot()
        prompt = build_judge_prompt(self._session, messages, self._template)
        logger.info("Judging transcript of %d messages via %s", len(messages), self._provider.name())

        result = await call_provider(self._provider, prompt, "judge")
        if isinstance(result, ProviderError):
            logger.warning("Judge evaluation failed: %s", result)
            return None

        return Verdict(
            content=result.content,
            generated_at_log_length=len(messages),
            judge=self._provider.name(),
        )
