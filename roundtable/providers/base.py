"""Abstract base for all language generation providers."""

from abc import ABC, abstractmethod

from roundtable.models import Completion


class ProviderError(Exception):
    """Raised when a provider call fails or returns nothing usable."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """Abstract base for all language generation providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the configured provider name (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    def default_timeout_sec(self) -> float | None:
        """Return the configured request timeout, or None if the provider has none."""
        return None

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        purpose: str,
        json_output: bool = False,
        timeout_sec: float | None = None,
    ) -> Completion:
        """Generate a completion for the given prompt.

        Args:
            prompt: The full prompt text to send.
            purpose: Short label for logs ("turn", "batch", "judge", ...).
            json_output: Ask the backend for a JSON body where it supports it.
            timeout_sec: Override the configured timeout for this call only.

        Returns:
            Completion dataclass with content and metadata.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...
