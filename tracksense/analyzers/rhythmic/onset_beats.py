"""
Energy-onset beat detector for TrackSense.

Frames the signal into 50 ms hops and reports frames whose energy jumps
above an adaptive threshold.
"""

from itertools import islice
from typing import Iterator, Tuple

import numpy as np

from tracksense.core.analyzer_base import BaseEstimator, require_samples
from tracksense.core.models import MAX_BEATS


HOPS_PER_SECOND: int = 20  # 50 ms hops
THRESHOLD_FACTOR: float = 2.0
MIN_BEAT_GAP: float = 0.2  # seconds, i.e. at most 300 BPM


def frame_energies(samples: np.ndarray, hop_size: int) -> np.ndarray:
    """Mean squared amplitude of each full hop. A trailing partial hop is dropped."""
    n_frames = len(samples) // hop_size
    frames = samples[:n_frames * hop_size].reshape(n_frames, hop_size)
    return np.mean(frames ** 2, axis=1)


class OnsetBeatDetector(BaseEstimator[Tuple[float, ...]]):
    """
    Onset-based beat positions in seconds.

    An onset is accepted at frame i when both the energy rise from frame
    i-1 and the energy itself exceed 2 x median(frame energies), and it
    falls at least MIN_BEAT_GAP after the previous accepted onset.
    """

    def __init__(self, max_beats: int = MAX_BEATS, min_gap: float = MIN_BEAT_GAP):
        if not 1 <= max_beats <= MAX_BEATS:
            raise ValueError(f"max_beats must be in [1, {MAX_BEATS}], got {max_beats}")
        super().__init__("onset_beats", "1.0.0", ())
        self.max_beats = max_beats
        self.min_gap = min_gap

    def _estimate_impl(self, mono: np.ndarray, sample_rate: int) -> Tuple[float, ...]:
        return tuple(islice(self.iter_onsets(mono, sample_rate), self.max_beats))

    def iter_onsets(self, mono: np.ndarray, sample_rate: int) -> Iterator[float]:
        """
        Lazily yield onset timestamps (rounded to 2 decimals).

        Not restartable; each call recomputes from scratch. Raises on
        empty or non-finite input.
        """
        samples = require_samples(mono)
        hop_size = sample_rate // HOPS_PER_SECOND
        if hop_size < 1:
            raise ValueError(f"Sample rate too low for {HOPS_PER_SECOND} hops/s: {sample_rate}")

        energies = frame_energies(samples, hop_size)
        if len(energies) < 2:
            return

        threshold = THRESHOLD_FACTOR * float(np.median(energies))
        rises = np.diff(energies)

        last_onset = None
        for i in range(1, len(energies)):
            if rises[i - 1] > threshold and energies[i] > threshold:
                onset = round((i * hop_size) / sample_rate, 2)
                # Gap is checked on the reported timestamps; 1e-9 absorbs float error
                if last_onset is None or onset - last_onset >= self.min_gap - 1e-9:
                    last_onset = onset
                    yield onset

