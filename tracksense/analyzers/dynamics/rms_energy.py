"""
RMS energy and loudness estimator for TrackSense.

A cheap approximation, not an ITU-R BS.1770 loudness meter.
"""

import numpy as np

from tracksense.core.analyzer_base import BaseEstimator, require_samples
from tracksense.core.models import EnergyLoudness


# Empirical constants, kept verbatim. Neither is calibrated against a standard.
ENERGY_SCALE: float = 5.0
LOUDNESS_OFFSET_DB: float = 30.0
MEAN_SQUARE_FLOOR: float = 1e-10

FALLBACK = EnergyLoudness(energy=0.5, loudness=-14.0)


class RMSEnergyEstimator(BaseEstimator[EnergyLoudness]):
    """
    Energy and loudness from the mean square of the whole buffer.

    energy   = min(1, rms * 5)
    loudness = 10 * log10(max(mean_square, 1e-10)) + 30
    """

    def __init__(self):
        super().__init__("rms_energy", "1.0.0", FALLBACK)

    def _estimate_impl(self, mono: np.ndarray, sample_rate: int) -> EnergyLoudness:
        samples = require_samples(mono)

        mean_square = float(np.mean(samples ** 2))
        rms = float(np.sqrt(mean_square))
        energy = min(1.0, rms * ENERGY_SCALE)

        db = 10.0 * np.log10(max(mean_square, MEAN_SQUARE_FLOOR))
        loudness = round(float(db) + LOUDNESS_OFFSET_DB, 2)

        return EnergyLoudness(energy=energy, loudness=loudness)
