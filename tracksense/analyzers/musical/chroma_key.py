"""
Chroma key estimator for TrackSense.

Builds a 12-bin pitch-class histogram from Hann-windowed DFT frames and
decides major vs minor from triad strength around the dominant pitch class.
"""

import librosa
import numpy as np

from tracksense.core.analyzer_base import BaseEstimator, require_samples
from tracksense.core.models import NOTE_NAMES, KeyEstimate


WINDOW_SIZE: int = 4096
MAX_WINDOWS: int = 20
MIN_FREQUENCY: float = 50.0  # Hz
MAX_FREQUENCY: float = 5000.0  # Hz

# Semitone intervals above the root
MAJOR_THIRD: int = 4
MINOR_THIRD: int = 3
PERFECT_FIFTH: int = 7

FALLBACK = KeyEstimate(musical_key='C', scale='major')


def midi_to_pitch_class(midi: np.ndarray) -> np.ndarray:
    """Pitch class 0-11 of each MIDI note number; halves round up."""
    return np.floor(np.asarray(midi) + 0.5).astype(int) % 12


class ChromaKeyEstimator(BaseEstimator[KeyEstimate]):
    """
    Key from a magnitude-weighted chroma vector.

    Up to MAX_WINDOWS non-overlapping windows of WINDOW_SIZE samples are
    Hann-weighted and transformed; bins between 50 Hz and 5 kHz add their
    magnitude to chroma[midi_to_pitch_class(midi)].
    """

    def __init__(self, window_size: int = WINDOW_SIZE, max_windows: int = MAX_WINDOWS):
        super().__init__("chroma_key", "1.0.0", FALLBACK)
        self.window_size = window_size
        self.max_windows = max_windows

    def _estimate_impl(self, mono: np.ndarray, sample_rate: int) -> KeyEstimate:
        chroma = self.build_chroma(mono, sample_rate)

        root = int(np.argmax(chroma))
        major_strength = (
            chroma[root]
            + chroma[(root + MAJOR_THIRD) % 12]
            + chroma[(root + PERFECT_FIFTH) % 12]
        )
        minor_strength = (
            chroma[root]
            + chroma[(root + MINOR_THIRD) % 12]
            + chroma[(root + PERFECT_FIFTH) % 12]
        )

        scale = 'major' if major_strength >= minor_strength else 'minor'
        return KeyEstimate(musical_key=NOTE_NAMES[root], scale=scale)

    def build_chroma(self, mono: np.ndarray, sample_rate: int) -> np.ndarray:
        """
        Accumulate the 12-bin chroma vector.

        Raises:
            ValueError: if the buffer is shorter than one window
        """
        samples = require_samples(mono, minimum=self.window_size)
        n_windows = min(self.max_windows, len(samples) // self.window_size)

        bins = np.arange(1, self.window_size // 2)
        frequencies = bins * sample_rate / self.window_size
        in_range = (frequencies >= MIN_FREQUENCY) & (frequencies <= MAX_FREQUENCY)
        bins = bins[in_range]
        pitch_classes = midi_to_pitch_class(librosa.hz_to_midi(frequencies[in_range]))

        hann = np.hanning(self.window_size)
        chroma = np.zeros(12)

        for w in range(n_windows):
            start = w * self.window_size
            frame = samples[start:start + self.window_size] * hann
            magnitudes = np.abs(np.fft.rfft(frame))[bins]
            chroma += np.bincount(pitch_classes, weights=magnitudes, minlength=12)

        return chroma
