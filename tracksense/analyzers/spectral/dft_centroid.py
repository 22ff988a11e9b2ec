"""
Spectral centroid estimator for TrackSense.

Brightness of the opening of a track from a single 2048-sample window.
"""

import numpy as np

from tracksense.core.analyzer_base import BaseEstimator, require_samples


WINDOW_SIZE: int = 2048
DEFAULT_CENTROID_HZ: float = 1500.0


class DFTCentroidEstimator(BaseEstimator[float]):
    """
    Spectral centroid over the first WINDOW_SIZE samples only.

    Bins k in [1, WINDOW_SIZE/2) of an unwindowed DFT are weighted by
    magnitude. Shorter buffers are zero-padded to the window, which gives
    the same sums as a direct DFT over the available samples.
    """

    def __init__(self, window_size: int = WINDOW_SIZE):
        super().__init__("dft_centroid", "1.0.0", DEFAULT_CENTROID_HZ)
        self.window_size = window_size

    def _estimate_impl(self, mono: np.ndarray, sample_rate: int) -> float:
        samples = require_samples(mono)
        window = samples[:self.window_size]

        spectrum = np.fft.rfft(window, n=self.window_size)
        bins = np.arange(1, self.window_size // 2)
        magnitudes = np.abs(spectrum[bins])
        frequencies = bins * sample_rate / self.window_size

        total_magnitude = float(np.sum(magnitudes))
        if total_magnitude == 0.0:
            return DEFAULT_CENTROID_HZ

        return float(np.sum(frequencies * magnitudes) / total_magnitude)
