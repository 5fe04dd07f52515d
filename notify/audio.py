from typing import Optional, Protocol

import numpy as np
from rich.console import Console

from config.settings import (
    CHIME_DURATION_S,
    CHIME_FREQUENCY_HZ,
    CHIME_GAIN_END,
    CHIME_GAIN_START,
    CHIME_SAMPLE_RATE,
)
from utils.logger import setup_logger

logger = setup_logger("Audio")


class AudioSink(Protocol):
    def play(self, samples: np.ndarray, sample_rate: int):
        ...


def render_chime(
    frequency: float = CHIME_FREQUENCY_HZ,
    duration: float = CHIME_DURATION_S,
    gain_start: float = CHIME_GAIN_START,
    gain_end: float = CHIME_GAIN_END,
    sample_rate: int = CHIME_SAMPLE_RATE,
) -> np.ndarray:
    """Sine tone with an exponential gain ramp from gain_start to gain_end."""
    n = int(duration * sample_rate)
    t = np.arange(n) / sample_rate
    envelope = gain_start * (gain_end / gain_start) ** (t / duration)
    return (envelope * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


class TerminalBellSink:
    """Terminals can't play PCM; ring the bell instead."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def play(self, samples: np.ndarray, sample_rate: int):
        self.console.bell()


class ChimePlayer:
    def __init__(self, sink: Optional[AudioSink] = None):
        self.sink = sink or TerminalBellSink()
        self._samples = render_chime()
        self.played = 0

    def play(self):
        try:
            self.sink.play(self._samples, CHIME_SAMPLE_RATE)
            self.played += 1
        except Exception as e:
            logger.error(f"Chime playback failed: {e}")
