"""Topic sources: service-suggested topics and markdown topic files."""

import logging
from pathlib import Path

import frontmatter

from roundtable.orchestrator import call_provider
from roundtable.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)

FALLBACK_TOPIC = "Is remote work good for society?"


async def suggest_topic(provider: AIProvider, prompt: str) -> str:
    """Ask the generation service for a discussion topic.

    Falls back to a fixed topic when the service fails.
    """
    result = await call_provider(provider, prompt, "topic")
    if isinstance(result, ProviderError):
        logger.warning("Topic suggestion failed, using fallback: %s", result)
        return FALLBACK_TOPIC
    # Models sometimes wrap the sentence in quotes
    topic = result.content.strip().strip('"').strip()
    return topic or FALLBACK_TOPIC


def parse_topic_file(file_path: Path) -> tuple[str, dict]:
    """Parse a markdown topic file with optional YAML frontmatter.

    Returns:
        (topic, metadata) where topic is the body text and metadata may hold
        ``participants`` (int) and ``policy`` (str). If no frontmatter,
        metadata is {}.
    """
    post = frontmatter.load(str(file_path))
    topic = post.content.strip()
    metadata = dict(post.metadata)
    return topic, metadata
