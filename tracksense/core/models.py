"""
Core data models for TrackSense.

Immutable value objects for decoded audio and analysis results.
Nothing here is persisted or mutated after construction.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar

import numpy as np

T = TypeVar('T')

# Pitch-class names, index 0 = C
NOTE_NAMES: Tuple[str, ...] = (
    'C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B'
)
SCALES: Tuple[str, ...] = ('major', 'minor')

MIN_BPM: int = 60
MAX_BPM: int = 200
MAX_BEATS: int = 500


@dataclass(frozen=True)
class RawAudioBuffer:
    """
    Decoded audio at its native sample rate.

    Owned by a single analysis call and discarded after mono mixing.
    """

    audio_data: np.ndarray  # Shape: (channels, samples), float32, nominally in [-1, 1]
    sample_rate: int  # Hz, never resampled
    source: str = "<bytes>"  # File path, URL or "<bytes>"
    source_hash: str = ""  # SHA-256 of the encoded input
    original_format: Optional[str] = None  # e.g. 'WAV', 'FLAC'
    bit_depth: Optional[str] = None  # e.g. 'PCM_16'

    def __post_init__(self) -> None:
        if self.audio_data.ndim != 2:
            raise ValueError(
                f"audio_data must be 2-D (channels, samples), got shape {self.audio_data.shape}"
            )
        if self.audio_data.shape[0] < 1:
            raise ValueError("audio_data must have at least one channel")
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")

    @property
    def num_channels(self) -> int:
        return int(self.audio_data.shape[0])

    @property
    def num_samples(self) -> int:
        return int(self.audio_data.shape[1])

    @property
    def duration(self) -> float:
        """Duration in seconds (sample count / sample rate)."""
        return self.num_samples / self.sample_rate

    @property
    def mono_audio(self) -> np.ndarray:
        """Read-only mono mix of all channels."""
        return mix_to_mono(self)


def mix_to_mono(buffer: RawAudioBuffer) -> np.ndarray:
    """
    Average all channels into a single read-only sample array.

    A single-channel buffer returns a view of its only channel.
    """
    if buffer.num_channels == 1:
        mono = buffer.audio_data[0]
    else:
        mono = np.sum(buffer.audio_data, axis=0) / buffer.num_channels

    mono = mono.view()
    mono.flags.writeable = False
    return mono


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Outcome of one estimator stage: a computed value or its documented fallback."""

    value: T
    used_fallback: bool = False
    error: Optional[str] = None

    @classmethod
    def computed(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, error: Optional[str] = None) -> "StageResult[T]":
        return cls(value=value, used_fallback=True, error=error)


@dataclass(frozen=True)
class EnergyLoudness:
    """Energy and loudness computed together from the mean square."""

    energy: float  # [0.0, 1.0]
    loudness: float  # dB + 30, two decimals


@dataclass(frozen=True)
class KeyEstimate:
    """Dominant pitch class and major/minor decision."""

    musical_key: str
    scale: str

    def __post_init__(self) -> None:
        validate_key(self.musical_key, self.scale)

    def __str__(self) -> str:
        return f"{self.musical_key} {self.scale}"


@dataclass(frozen=True)
class AudioAnalysisResult:
    """
    Complete analysis of one audio file.

    The first nine fields are the contract consumed by callers; the
    remaining fields are bookkeeping for logs and reports.
    """

    bpm: int
    musical_key: str
    scale: str
    energy: float
    danceability: float
    loudness: float
    spectral_centroid: float
    duration: float
    beat_positions: Tuple[float, ...]

    source_hash: str = ""
    sample_rate: int = 0
    channels: int = 0
    processing_time: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    used_fallback: Dict[str, bool] = field(default_factory=dict)
    analyzer_versions: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate fields."""
        if not (MIN_BPM <= self.bpm <= MAX_BPM):
            raise ValueError(f"bpm must be in [{MIN_BPM}, {MAX_BPM}], got {self.bpm}")
        validate_key(self.musical_key, self.scale)
        validate_unit_interval("energy", self.energy)
        validate_unit_interval("danceability", self.danceability)
        if self.duration < 0:
            raise ValueError(f"duration must be >= 0, got {self.duration}")
        validate_beat_positions(self.beat_positions)

    @property
    def used_any_fallback(self) -> bool:
        return any(self.used_fallback.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'bpm': self.bpm,
            'musical_key': self.musical_key,
            'scale': self.scale,
            'energy': self.energy,
            'danceability': self.danceability,
            'loudness': self.loudness,
            'spectral_centroid': self.spectral_centroid,
            'duration': self.duration,
            'beat_positions': list(self.beat_positions),
            'source_hash': self.source_hash,
            'sample_rate': self.sample_rate,
            'channels': self.channels,
            'processing_time': self.processing_time,
            'timestamp': self.timestamp.isoformat(),
            'used_fallback': dict(self.used_fallback),
            'analyzer_versions': dict(self.analyzer_versions),
        }

    def to_json(self, indent: int = 2) -> str:
        """Export as JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def get_summary(self) -> str:
        """Get human-readable summary."""
        parts = [
            f"Tempo: {self.bpm} BPM",
            f"Key: {self.musical_key} {self.scale}",
            f"Energy: {self.energy:.2f}",
            f"Danceability: {self.danceability:.2f}",
            f"Loudness: {self.loudness:.2f}",
        ]
        if self.used_any_fallback:
            degraded = sorted(name for name, used in self.used_fallback.items() if used)
            parts.append(f"Fallback: {', '.join(degraded)}")
        return " | ".join(parts)


# Validation helpers

def validate_unit_interval(name: str, value: float) -> None:
    """Validate a score is in [0.0, 1.0]."""
    if not (0.0 <= value <= 1.0):
        raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")


def validate_key(musical_key: str, scale: str) -> None:
    """Validate pitch-class name and scale."""
    if musical_key not in NOTE_NAMES:
        raise ValueError(f"Invalid key: {musical_key}. Must be one of {NOTE_NAMES}")
    if scale not in SCALES:
        raise ValueError(f"Invalid scale: {scale}. Must be one of {SCALES}")


def validate_beat_positions(beats: Tuple[float, ...], min_gap: float = 0.2) -> None:
    """Validate beats are at most MAX_BEATS, increasing and at least ``min_gap`` apart."""
    if len(beats) > MAX_BEATS:
        raise ValueError(f"at most {MAX_BEATS} beat_positions allowed, got {len(beats)}")
    for previous, current in zip(beats, beats[1:]):
        # Timestamps are rounded to 2 decimals; compare with a small tolerance
        if current - previous < min_gap - 1e-9:
            raise ValueError(
                f"beat_positions must be >= {min_gap}s apart, got {previous} -> {current}"
            )
