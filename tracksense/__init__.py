"""
TrackSense - audio feature extraction for independent musicians.

Estimates tempo, key, energy, danceability, loudness, spectral centroid
and beat positions from a single audio file.
"""

__version__ = "1.0.0"
__author__ = "TrackSense Team"
