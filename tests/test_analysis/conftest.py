"""Shared fixtures for audio analysis tests."""

import pytest

from synth import make_click_track, make_sine, make_wav_bytes, write_wav
from tracksense.core.engine import AudioAnalysisEngine
from tracksense.core.loader import AudioDecoder


@pytest.fixture
def decoder():
    """AudioDecoder with default limits."""
    return AudioDecoder()


@pytest.fixture
def engine(decoder):
    """Engine with default stages, shut down after the test."""
    engine = AudioAnalysisEngine(decoder=decoder)
    yield engine
    engine.shutdown()


@pytest.fixture
def click_track():
    """6 s, 22.05 kHz click track at exactly 120 BPM."""
    return make_click_track(bpm=120.0, duration=6.0, sample_rate=22050)


@pytest.fixture
def sine_wav_file(tmp_path):
    """2 s, 11.025 kHz mono sine written to disk."""
    audio = make_sine(frequency=440.0, duration=2.0, sample_rate=11025, amplitude=0.2)
    return write_wav(tmp_path / "sine.wav", audio, 11025)


@pytest.fixture
def click_wav_bytes():
    """WAV bytes of a 4 s, 11.025 kHz click track at 120 BPM."""
    audio = make_click_track(bpm=120.0, duration=4.0, sample_rate=11025)
    return make_wav_bytes(audio, 11025)
