"""
Audible alert channel for new notifications.

The admin panel rings when a new website order arrives. Playback goes through
an AudioOutput, which in this process is a mock device: it logs what it plays
and keeps a history for test assertions, and it can be told to refuse
playback the way a browser blocks autoplay.

Playback order:
1. The configured sound resource (a file on disk)
2. A synthesized short tone, if the resource is missing or refused
3. Silence, with a log line, if the tone is refused too

A failed alert is never an error for the caller.
"""

import io
import logging
import math
import struct
import wave
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from backoffice.errors import AlertPlaybackError

logger = logging.getLogger("alerts")


# Tone used when the sound resource cannot be played
TONE_FREQUENCY_HZ = 800
TONE_DURATION_MS = 200
TONE_GAIN = 0.3
TONE_SAMPLE_RATE = 8000


@dataclass
class PlaybackRecord:
    """One clip handed to the audio output."""
    label: str
    size: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AudioOutput:
    """
    Mock audio device.

    Logs each clip and tracks it for test assertions. Setting `blocked`
    simulates a client that refuses playback.
    """

    def __init__(self, blocked: bool = False, volume: float = 0.5):
        self.blocked = blocked
        self.volume = volume
        self.played: list[PlaybackRecord] = []

    def play(self, label: str, data: bytes) -> PlaybackRecord:
        """
        Play a clip.

        Raises:
            AlertPlaybackError: If playback is blocked or the clip is empty
        """
        if self.blocked:
            raise AlertPlaybackError(f"Playback blocked for {label}")
        if not data:
            raise AlertPlaybackError(f"Empty clip: {label}")

        record = PlaybackRecord(label=label, size=len(data))
        self.played.append(record)
        logger.info(f"[SOUND] {label} ({len(data)} bytes, volume={self.volume})")
        return record

    def get_play_count(self) -> int:
        return len(self.played)

    def clear_history(self):
        self.played.clear()


def synthesize_tone(
    frequency: int = TONE_FREQUENCY_HZ,
    duration_ms: int = TONE_DURATION_MS,
    gain: float = TONE_GAIN,
    sample_rate: int = TONE_SAMPLE_RATE,
) -> bytes:
    """
    Build a mono 16-bit sine tone as a WAV file.

    Returns:
        The complete WAV file contents
    """
    frames = int(sample_rate * duration_ms / 1000)
    amplitude = int(32767 * gain)
    samples = b"".join(
        struct.pack("<h", int(amplitude * math.sin(2 * math.pi * frequency * n / sample_rate)))
        for n in range(frames)
    )

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(samples)
    return buffer.getvalue()


class AudibleAlert:
    """
    Rings the notification sound, degrading to a tone and then to silence.

    Example:
        alert = AudibleAlert(AudioOutput(), sound_path=Path("static/notification.wav"))
        alert.ring()  # "sound", "tone" or "silent"
    """

    def __init__(self, output: Optional[AudioOutput] = None, sound_path: Optional[Path] = None):
        self.output = output or AudioOutput()
        self.sound_path = Path(sound_path) if sound_path else None

    def _play_sound(self) -> None:
        if self.sound_path is None:
            raise AlertPlaybackError("No sound resource configured")
        try:
            data = self.sound_path.read_bytes()
        except OSError as e:
            raise AlertPlaybackError(f"Cannot read {self.sound_path}: {e}") from e
        self.output.play(self.sound_path.name, data)

    def ring(self) -> str:
        """
        Play the alert.

        Returns:
            Which path produced sound: "sound", "tone" or "silent"
        """
        try:
            self._play_sound()
            return "sound"
        except AlertPlaybackError as e:
            logger.debug(f"Sound playback failed, falling back to tone: {e}")

        try:
            self.output.play("tone", synthesize_tone())
            return "tone"
        except AlertPlaybackError as e:
            logger.warning(f"Audio play failed: {e}")
            return "silent"
