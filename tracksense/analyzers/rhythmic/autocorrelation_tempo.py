"""
Autocorrelation tempo estimator for TrackSense.

Single-pass, best-effort BPM from the opening seconds of a track. There is
no octave-error correction, so 90 and 180 BPM can be confused.
"""

from typing import Tuple

import numpy as np

from tracksense.core.analyzer_base import BaseEstimator, require_samples
from tracksense.core.models import MAX_BPM, MIN_BPM


DEFAULT_BPM: int = 120
ANALYSIS_SECONDS: float = 10.0
COMPARE_SECONDS: float = 2.0
LAG_STEP: int = 2

# Correlations this close to the maximum count as ties; ties go to the
# shorter lag (faster tempo).
TIE_TOLERANCE: float = 1e-9


class AutocorrelationTempoEstimator(BaseEstimator[int]):
    """
    BPM from the lag with the highest normalized autocorrelation.

    For each lag in [sr*60/max_bpm, sr*60/min_bpm] (every LAG_STEP samples):
        correlation = sum(chunk[i] * chunk[i + lag]) / n
    over n = min(len(chunk) - lag, sr * COMPARE_SECONDS) samples.
    """

    def __init__(
        self,
        bpm_range: Tuple[int, int] = (MIN_BPM, MAX_BPM),
        analysis_seconds: float = ANALYSIS_SECONDS,
    ):
        if not MIN_BPM <= bpm_range[0] < bpm_range[1] <= MAX_BPM:
            raise ValueError(
                f"bpm_range must lie within [{MIN_BPM}, {MAX_BPM}] with min < max, got {bpm_range}"
            )
        super().__init__("autocorrelation_tempo", "1.0.0", DEFAULT_BPM)
        self.min_bpm, self.max_bpm = bpm_range
        self.analysis_seconds = analysis_seconds

    def lag_range(self, sample_rate: int) -> Tuple[int, int]:
        """Inclusive (min_lag, max_lag) in samples."""
        min_lag = int(sample_rate * 60 / self.max_bpm)
        max_lag = int(sample_rate * 60 / self.min_bpm)
        return max(1, min_lag), max_lag

    def _estimate_impl(self, mono: np.ndarray, sample_rate: int) -> int:
        samples = require_samples(mono)

        chunk_size = min(len(samples), int(sample_rate * self.analysis_seconds))
        chunk = samples[:chunk_size]
        compare_limit = int(sample_rate * COMPARE_SECONDS)
        min_lag, max_lag = self.lag_range(sample_rate)

        lags = []
        correlations = []
        for lag in range(min_lag, max_lag + 1, LAG_STEP):
            n = min(chunk_size - lag, compare_limit)
            if n <= 0:
                break
            lags.append(lag)
            correlations.append(float(np.dot(chunk[:n], chunk[lag:lag + n])) / n)

        if not lags:
            raise ValueError(
                f"Audio too short for tempo analysis: {chunk_size} samples, "
                f"minimum lag {min_lag}"
            )

        scores = np.asarray(correlations)
        best = float(scores.max())
        best_index = int(np.flatnonzero(scores >= best - abs(best) * TIE_TOLERANCE)[0])
        best_lag = lags[best_index]

        bpm = int(round(sample_rate * 60 / best_lag))
        return max(self.min_bpm, min(self.max_bpm, bpm))
