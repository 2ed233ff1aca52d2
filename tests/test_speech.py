"""Tests for roundtable/speech.py with a fake synthesizer."""

from datetime import datetime, timezone
from pathlib import Path

import soundfile as sf

from roundtable.models import Message
from roundtable.speech import AudioRecorder, SpeechError, SpeechSynthesizer


class FakeSynthesizer(SpeechSynthesizer):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        self.calls.append((text, voice_id))
        if self.fail:
            raise SpeechError("tts unavailable")
        return b"\x00\x00" * 2400  # 0.1s of silence at 24kHz


def _message(pid: str) -> Message:
    return Message("msg-0001", pid, "Hello there", datetime.now(timezone.utc))


async def test_record_writes_wav(tmp_path: Path, sample_session):
    alice = sample_session.participants[1]
    synth = FakeSynthesizer()
    recorder = AudioRecorder(synth, tmp_path / "audio")

    path = await recorder.record(_message("ai-0"), alice)

    assert path is not None and path.exists()
    assert path.name == "msg-0001_alice.wav"
    assert synth.calls == [("Hello there", "Puck")]
    info = sf.info(str(path))
    assert info.samplerate == 24000
    assert info.frames == 2400


async def test_record_skips_user(tmp_path: Path, sample_session):
    synth = FakeSynthesizer()
    recorder = AudioRecorder(synth, tmp_path)
    assert await recorder.record(_message("user"), sample_session.participants[0]) is None
    assert synth.calls == []


async def test_record_failure_is_swallowed(tmp_path: Path, sample_session):
    recorder = AudioRecorder(FakeSynthesizer(fail=True), tmp_path / "audio")
    assert await recorder.record(_message("ai-0"), sample_session.participants[1]) is None
    assert not (tmp_path / "audio").exists()
