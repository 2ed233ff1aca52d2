"""Speech synthesis side channel: voices AI messages into WAV files.

Best-effort only. Nothing here touches the conversation log, and failures
are logged and dropped.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

import numpy as np
import soundfile as sf
from google import genai
from google.genai import types as genai_types

from config.config_loader import SpeechConfig
from roundtable.models import Message, Participant

logger = logging.getLogger(__name__)


class SpeechError(Exception):
    """Raised when the synthesis service fails or returns no audio."""


class SpeechSynthesizer(ABC):
    @abstractmethod
    async def synthesize(self, text: str, voice_id: str) -> bytes:
        """Return 16-bit mono PCM audio for text spoken in voice_id."""
        ...


class GeminiSpeechSynthesizer(SpeechSynthesizer):
    """Gemini TTS model with prebuilt voices."""

    def __init__(self, config: SpeechConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise SpeechError(f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._config.model,
                    contents=text,
                    config=genai_types.GenerateContentConfig(
                        response_modalities=["AUDIO"],
                        speech_config=genai_types.SpeechConfig(
                            voice_config=genai_types.VoiceConfig(
                                prebuilt_voice_config=genai_types.PrebuiltVoiceConfig(voice_name=voice_id),
                            ),
                        ),
                    ),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise SpeechError(f"Speech request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise SpeechError(f"Speech call failed: {exc}") from exc

        try:
            data = response.candidates[0].content.parts[0].inline_data.data
        except (AttributeError, IndexError, TypeError) as exc:
            raise SpeechError("No audio in speech response") from exc
        if not data:
            raise SpeechError("No audio in speech response")
        return data


class AudioRecorder:
    """Writes one WAV file per AI message that has a voice."""

    def __init__(self, synthesizer: SpeechSynthesizer, output_dir: Path, sample_rate: int = 24000) -> None:
        self._synthesizer = synthesizer
        self._output_dir = output_dir
        self._sample_rate = sample_rate

    async def record(self, message: Message, participant: Participant) -> Path | None:
        """Voice a message. Returns the written path, or None if skipped or failed."""
        if participant.is_user or not participant.voice:
            return None
        try:
            pcm = await self._synthesizer.synthesize(message.text, participant.voice)
        except SpeechError as exc:
            logger.warning("Speech for %s skipped: %s", message.id, exc)
            return None

        self._output_dir.mkdir(parents=True, exist_ok=True)
        path = self._output_dir / f"{message.id}_{participant.name.lower()}.wav"
        try:
            sf.write(str(path), np.frombuffer(pcm, dtype=np.int16), self._sample_rate, subtype="PCM_16")
        except (OSError, RuntimeError, ValueError) as exc:
            logger.warning("Could not write audio for %s: %s", message.id, exc)
            return None
        logger.info("Audio for %s saved to %s", message.id, path)
        return path
