"""
Estimator stages for the audio analysis pipeline.
"""

from tracksense.analyzers.dynamics.rms_energy import RMSEnergyEstimator
from tracksense.analyzers.spectral.dft_centroid import DFTCentroidEstimator
from tracksense.analyzers.rhythmic.onset_beats import OnsetBeatDetector
from tracksense.analyzers.rhythmic.autocorrelation_tempo import AutocorrelationTempoEstimator
from tracksense.analyzers.rhythmic.danceability import DanceabilityEstimator
from tracksense.analyzers.musical.chroma_key import ChromaKeyEstimator

__all__ = [
    "RMSEnergyEstimator",
    "DFTCentroidEstimator",
    "OnsetBeatDetector",
    "AutocorrelationTempoEstimator",
    "DanceabilityEstimator",
    "ChromaKeyEstimator",
]
