"""
Danceability estimator for TrackSense.

Combines beat-interval regularity with overall energy.
"""

from typing import Sequence

import numpy as np

from tracksense.core.analyzer_base import BaseEstimator
from tracksense.core.models import StageResult


DEFAULT_DANCEABILITY: float = 0.5
MIN_BEATS: int = 4
CONSISTENCY_WEIGHT: float = 0.6
ENERGY_WEIGHT: float = 0.4


class DanceabilityEstimator(BaseEstimator[float]):
    """
    danceability = round(consistency * 0.6 + energy * 0.4, 2)
    consistency  = 1 / (1 + variance(inter-beat intervals) * 10)

    Works on the outputs of the beat and energy stages, not on samples.
    """

    def __init__(self):
        super().__init__("danceability", "1.0.0", DEFAULT_DANCEABILITY)

    def estimate_from(self, beat_positions: Sequence[float], energy: float) -> StageResult[float]:
        """Score danceability from beat timestamps and an energy in [0, 1]."""
        return self._guarded(self._score, beat_positions, energy)

    def estimate(self, mono: np.ndarray, sample_rate: int) -> StageResult[float]:
        """Not supported; the score needs beats and energy, see estimate_from()."""
        raise TypeError("DanceabilityEstimator needs beats and energy; use estimate_from()")

    def _score(self, beat_positions: Sequence[float], energy: float) -> float:
        if len(beat_positions) < MIN_BEATS:
            # Too few beats to judge regularity
            return DEFAULT_DANCEABILITY

        if not 0.0 <= energy <= 1.0:
            raise ValueError(f"energy must be in [0, 1], got {energy}")

        intervals = np.diff(np.asarray(beat_positions, dtype=np.float64))
        variance = float(np.mean((intervals - np.mean(intervals)) ** 2))
        consistency = 1.0 / (1.0 + variance * 10.0)

        return round(consistency * CONSISTENCY_WEIGHT + energy * ENERGY_WEIGHT, 2)
