"""Tests for the individual estimator stages."""

import logging

import numpy as np
import pytest

from synth import make_click_track, make_sine
from tracksense.analyzers.dynamics.rms_energy import RMSEnergyEstimator
from tracksense.analyzers.musical.chroma_key import ChromaKeyEstimator, midi_to_pitch_class
from tracksense.analyzers.rhythmic.autocorrelation_tempo import AutocorrelationTempoEstimator
from tracksense.analyzers.rhythmic.danceability import DanceabilityEstimator
from tracksense.analyzers.rhythmic.onset_beats import OnsetBeatDetector, frame_energies
from tracksense.analyzers.spectral.dft_centroid import DFTCentroidEstimator
from tracksense.core.models import NOTE_NAMES, EnergyLoudness, KeyEstimate


EMPTY = np.array([], dtype=np.float32)


# ---------------------------------------------------------------------------
# Fallbacks on an empty buffer
# ---------------------------------------------------------------------------


class TestEmptyBufferFallbacks:
    """Every stage returns its documented constant instead of raising."""

    def test_energy_fallback(self):
        result = RMSEnergyEstimator().estimate(EMPTY, 44100)
        assert result.used_fallback
        assert result.value == EnergyLoudness(energy=0.5, loudness=-14.0)

    def test_centroid_fallback(self):
        result = DFTCentroidEstimator().estimate(EMPTY, 44100)
        assert result.used_fallback
        assert result.value == 1500.0

    def test_beats_fallback(self):
        result = OnsetBeatDetector().estimate(EMPTY, 44100)
        assert result.used_fallback
        assert result.value == ()

    def test_tempo_fallback(self):
        result = AutocorrelationTempoEstimator().estimate(EMPTY, 44100)
        assert result.used_fallback
        assert result.value == 120

    def test_key_fallback(self):
        result = ChromaKeyEstimator().estimate(EMPTY, 44100)
        assert result.used_fallback
        assert result.value == KeyEstimate(musical_key="C", scale="major")

    def test_danceability_without_beats(self):
        result = DanceabilityEstimator().estimate_from((), 0.5)
        assert result.value == 0.5

    def test_fallback_records_error(self):
        result = RMSEnergyEstimator().estimate(EMPTY, 44100)
        assert "ValueError" in result.error

    def test_fallback_is_logged_at_error(self, caplog):
        with caplog.at_level(logging.ERROR, logger="analyzer.chroma_key"):
            ChromaKeyEstimator().estimate(EMPTY, 44100)
        assert any(
            record.levelno == logging.ERROR and "chroma_key" in record.getMessage()
            for record in caplog.records
        )

    def test_non_finite_samples_fall_back(self):
        samples = np.array([0.1, np.nan, 0.2] * 1000, dtype=np.float32)
        result = RMSEnergyEstimator().estimate(samples, 8000)
        assert result.used_fallback


# ---------------------------------------------------------------------------
# Energy and loudness
# ---------------------------------------------------------------------------


class TestRMSEnergyEstimator:
    def test_silence(self):
        result = RMSEnergyEstimator().estimate(np.zeros(22050, dtype=np.float32), 22050)
        assert not result.used_fallback
        assert result.value.energy == 0.0
        # log10 floor of 1e-10 -> -100 dB, +30
        assert result.value.loudness == -70.0

    def test_full_scale_square_wave_saturates(self):
        samples = np.tile(np.array([1.0, -1.0], dtype=np.float32), 1000)
        result = RMSEnergyEstimator().estimate(samples, 8000)
        assert result.value.energy == 1.0
        assert result.value.loudness == 30.0

    def test_quiet_sine(self):
        samples = make_sine(amplitude=0.1, duration=1.0, sample_rate=22050)
        result = RMSEnergyEstimator().estimate(samples, 22050)

        rms = 0.1 / np.sqrt(2)
        assert result.value.energy == pytest.approx(rms * 5, rel=1e-3)
        assert result.value.loudness == pytest.approx(10 * np.log10(rms ** 2) + 30, abs=0.01)

    def test_energy_never_exceeds_one(self):
        samples = np.full(1000, 0.9, dtype=np.float32)
        assert RMSEnergyEstimator().estimate(samples, 8000).value.energy == 1.0


# ---------------------------------------------------------------------------
# Spectral centroid
# ---------------------------------------------------------------------------


class TestDFTCentroidEstimator:
    def test_silence_uses_default(self):
        result = DFTCentroidEstimator().estimate(np.zeros(4096, dtype=np.float32), 44100)
        assert not result.used_fallback
        assert result.value == 1500.0

    def test_pure_tone_centroid_near_tone(self):
        sample_rate = 44100
        # Bin-centred tone: bin 100 of a 2048-point DFT
        frequency = 100 * sample_rate / 2048
        samples = make_sine(frequency=frequency, duration=0.1, sample_rate=sample_rate)
        centroid = DFTCentroidEstimator().estimate(samples, sample_rate).value
        assert centroid == pytest.approx(frequency, rel=0.01)

    def test_brighter_signal_has_higher_centroid(self):
        sample_rate = 22050
        low = make_sine(frequency=200.0, duration=0.2, sample_rate=sample_rate)
        high = make_sine(frequency=5000.0, duration=0.2, sample_rate=sample_rate)
        estimator = DFTCentroidEstimator()
        assert estimator.estimate(high, sample_rate).value > estimator.estimate(low, sample_rate).value

    def test_only_first_window_is_examined(self):
        sample_rate = 22050
        head = make_sine(frequency=300.0, duration=0.1, sample_rate=sample_rate)[:2048]
        tail = make_sine(frequency=6000.0, duration=1.0, sample_rate=sample_rate)
        estimator = DFTCentroidEstimator()

        combined = estimator.estimate(np.concatenate([head, tail]), sample_rate).value
        head_only = estimator.estimate(head, sample_rate).value
        assert combined == pytest.approx(head_only)

    def test_matches_direct_dft(self):
        rng = np.random.default_rng(7)
        samples = rng.uniform(-0.5, 0.5, 2048)
        sample_rate = 16000

        n = 2048
        i = np.arange(n)
        freqs = []
        mags = []
        for k in range(1, n // 2):
            angle = -2 * np.pi * k * i / n
            real = np.sum(samples * np.cos(angle))
            imag = np.sum(samples * np.sin(angle))
            mags.append(np.sqrt(real ** 2 + imag ** 2))
            freqs.append(k * sample_rate / n)
        expected = np.sum(np.array(freqs) * np.array(mags)) / np.sum(mags)

        assert DFTCentroidEstimator().estimate(samples, sample_rate).value == pytest.approx(expected, rel=1e-9)


# ---------------------------------------------------------------------------
# Beat detection
# ---------------------------------------------------------------------------


class TestOnsetBeatDetector:
    def test_frame_energies_drop_partial_hop(self):
        samples = np.ones(25)
        energies = frame_energies(samples, 10)
        assert len(energies) == 2
        assert np.all(energies == 1.0)

    def test_silence_has_no_beats(self):
        result = OnsetBeatDetector().estimate(np.zeros(44100, dtype=np.float32), 44100)
        assert not result.used_fallback
        assert result.value == ()

    def test_click_track_beat_count(self, click_track):
        beats = OnsetBeatDetector().estimate(click_track, 22050).value
        duration = len(click_track) / 22050
        assert len(beats) >= duration * 2 - 2

    def test_click_track_beats_on_the_beat(self, click_track):
        beats = OnsetBeatDetector().estimate(click_track, 22050).value
        for beat in beats:
            nearest = round(beat * 2) / 2
            assert abs(beat - nearest) <= 0.06

    def test_beats_strictly_increasing_and_spaced(self):
        rng = np.random.default_rng(3)
        samples = rng.normal(0, 0.05, 22050 * 8).astype(np.float32)
        # Bursts every 0.15 s, closer together than the 0.2 s minimum gap
        for start in range(0, len(samples) - 200, 3308):
            samples[start:start + 200] += 0.9
        beats = OnsetBeatDetector().estimate(samples, 22050).value

        assert len(beats) > 0
        for previous, current in zip(beats, beats[1:]):
            assert current > previous
            assert current - previous >= 0.2 - 1e-9

    def test_beats_are_capped(self):
        detector = OnsetBeatDetector(max_beats=5)
        track = make_click_track(bpm=120.0, duration=6.0, sample_rate=8000)
        assert len(detector.estimate(track, 8000).value) == 5

    @pytest.mark.parametrize("max_beats", [0, 501])
    def test_cap_outside_result_bounds_rejected(self, max_beats):
        with pytest.raises(ValueError):
            OnsetBeatDetector(max_beats=max_beats)

    def test_timestamps_rounded_to_two_decimals(self, click_track):
        for beat in OnsetBeatDetector().estimate(click_track, 22050).value:
            assert beat == round(beat, 2)

    def test_iter_onsets_is_lazy(self, click_track):
        onsets = OnsetBeatDetector().iter_onsets(click_track, 22050)
        first = next(onsets)
        assert first == pytest.approx(0.5, abs=0.06)


# ---------------------------------------------------------------------------
# Tempo
# ---------------------------------------------------------------------------


class TestAutocorrelationTempoEstimator:
    def test_click_track_at_120_bpm(self, click_track):
        result = AutocorrelationTempoEstimator().estimate(click_track, 22050)
        assert not result.used_fallback
        assert abs(result.value - 120) <= 2

    def test_click_track_at_100_bpm(self):
        track = make_click_track(bpm=100.0, duration=6.0, sample_rate=11025)
        bpm = AutocorrelationTempoEstimator().estimate(track, 11025).value
        assert abs(bpm - 100) <= 2

    def test_result_is_clamped(self):
        rng = np.random.default_rng(11)
        samples = rng.uniform(-1, 1, 8000 * 3).astype(np.float32)
        bpm = AutocorrelationTempoEstimator().estimate(samples, 8000).value
        assert 60 <= bpm <= 200

    def test_lag_range(self):
        assert AutocorrelationTempoEstimator().lag_range(44100) == (13230, 44100)

    def test_too_short_for_any_lag_falls_back(self):
        samples = np.ones(100, dtype=np.float32)
        result = AutocorrelationTempoEstimator().estimate(samples, 8000)
        assert result.used_fallback
        assert result.value == 120

    @pytest.mark.parametrize("bpm_range", [(40, 250), (50, 120), (100, 220), (150, 100)])
    def test_range_outside_result_bounds_rejected(self, bpm_range):
        with pytest.raises(ValueError):
            AutocorrelationTempoEstimator(bpm_range=bpm_range)

    def test_narrower_range_clamps(self):
        track = make_click_track(bpm=45.0, duration=8.0, sample_rate=8000)
        bpm = AutocorrelationTempoEstimator(bpm_range=(70, 180)).estimate(track, 8000).value
        assert 70 <= bpm <= 180


# ---------------------------------------------------------------------------
# Key
# ---------------------------------------------------------------------------


class TestChromaKeyEstimator:
    def test_a440_is_key_a(self):
        """5 s, 44.1 kHz sine at A4: the A bin dominates every other bin."""
        samples = make_sine(frequency=440.0, duration=5.0, sample_rate=44100, amplitude=0.05)
        estimator = ChromaKeyEstimator()

        chroma = estimator.build_chroma(samples, 44100)
        a_index = NOTE_NAMES.index("A")
        others = np.delete(chroma, a_index)
        assert chroma[a_index] > others.max()

        assert estimator.estimate(samples, 44100).value.musical_key == "A"

    def test_c_major_triad(self):
        sample_rate = 22050
        triad = sum(
            make_sine(frequency=f, duration=2.0, sample_rate=sample_rate, amplitude=a)
            for f, a in ((261.63, 0.3), (329.63, 0.2), (392.0, 0.2))
        )
        assert ChromaKeyEstimator().estimate(triad, sample_rate).value == KeyEstimate("C", "major")

    def test_c_minor_triad(self):
        sample_rate = 22050
        triad = sum(
            make_sine(frequency=f, duration=2.0, sample_rate=sample_rate, amplitude=a)
            for f, a in ((261.63, 0.3), (311.13, 0.2), (392.0, 0.2))
        )
        assert ChromaKeyEstimator().estimate(triad, sample_rate).value == KeyEstimate("C", "minor")

    def test_silence_ties_to_c_major(self):
        result = ChromaKeyEstimator().estimate(np.zeros(8192, dtype=np.float32), 22050)
        assert not result.used_fallback
        assert result.value == KeyEstimate("C", "major")

    def test_out_of_range_tone_is_ignored(self):
        # 30 Hz lies below the 50 Hz floor
        estimator = ChromaKeyEstimator()
        low = make_sine(frequency=30.0, duration=1.0, sample_rate=8000, amplitude=0.5)
        audible = make_sine(frequency=440.0, duration=1.0, sample_rate=8000, amplitude=0.5)
        assert estimator.build_chroma(low, 8000).sum() < 0.01 * estimator.build_chroma(audible, 8000).sum()

    def test_window_count_is_capped(self):
        estimator = ChromaKeyEstimator(max_windows=2)
        tone = make_sine(frequency=440.0, duration=2.0, sample_rate=8000, amplitude=0.5)
        short = estimator.build_chroma(tone[:8192], 8000)
        longer = estimator.build_chroma(np.concatenate([tone[:8192], tone[:8192]]), 8000)
        np.testing.assert_allclose(short, longer)

    def test_shorter_than_one_window_falls_back(self):
        result = ChromaKeyEstimator().estimate(np.ones(1000, dtype=np.float32), 8000)
        assert result.used_fallback

    def test_half_semitones_round_up(self):
        midi = np.array([60.5, 68.5, 69.5, 70.5, 59.49])
        assert midi_to_pitch_class(midi).tolist() == [1, 9, 10, 11, 11]

    def test_pitch_class_wraps_octaves(self):
        assert midi_to_pitch_class(np.array([21.0, 69.0, 108.0, 71.5])).tolist() == [9, 9, 0, 0]


# ---------------------------------------------------------------------------
# Danceability
# ---------------------------------------------------------------------------


class TestDanceabilityEstimator:
    def test_regular_beats_full_energy(self):
        beats = [0.5, 1.0, 1.5, 2.0, 2.5]
        assert DanceabilityEstimator().estimate_from(beats, 1.0).value == 1.0

    def test_regular_beats_no_energy(self):
        beats = [0.5, 1.0, 1.5, 2.0]
        assert DanceabilityEstimator().estimate_from(beats, 0.0).value == 0.6

    def test_irregular_beats_score_lower(self):
        estimator = DanceabilityEstimator()
        regular = estimator.estimate_from([0.5, 1.0, 1.5, 2.0, 2.5], 0.5).value
        irregular = estimator.estimate_from([0.2, 0.5, 1.6, 1.9, 3.5], 0.5).value
        assert irregular < regular

    def test_formula(self):
        beats = [0.0, 0.4, 1.0, 1.4]
        intervals = np.diff(beats)
        variance = np.mean((intervals - intervals.mean()) ** 2)
        expected = round(1 / (1 + variance * 10) * 0.6 + 0.3 * 0.4, 2)
        assert DanceabilityEstimator().estimate_from(beats, 0.3).value == expected

    def test_three_beats_is_insufficient(self):
        result = DanceabilityEstimator().estimate_from([0.5, 1.0, 1.5], 1.0)
        assert result.value == 0.5
        assert not result.used_fallback

    def test_invalid_energy_falls_back(self):
        result = DanceabilityEstimator().estimate_from([0.5, 1.0, 1.5, 2.0], 3.0)
        assert result.used_fallback
        assert result.value == 0.5

    def test_estimate_on_samples_raises(self, click_track):
        with pytest.raises(TypeError, match="estimate_from"):
            DanceabilityEstimator().estimate(click_track, 22050)
