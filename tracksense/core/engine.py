"""
Analysis engine for TrackSense.

Decodes audio once, mixes it to mono once, and runs every estimator stage
over the shared buffer.
"""

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from tracksense.analyzers.dynamics.rms_energy import RMSEnergyEstimator
from tracksense.analyzers.musical.chroma_key import ChromaKeyEstimator
from tracksense.analyzers.rhythmic.autocorrelation_tempo import AutocorrelationTempoEstimator
from tracksense.analyzers.rhythmic.danceability import DanceabilityEstimator
from tracksense.analyzers.rhythmic.onset_beats import OnsetBeatDetector
from tracksense.analyzers.spectral.dft_centroid import DFTCentroidEstimator
from tracksense.core.analyzer_base import Estimator
from tracksense.core.loader import AsyncAudioDecoder, AudioDecoder, create_audio_decoder
from tracksense.core.models import (
    AudioAnalysisResult,
    EnergyLoudness,
    KeyEstimate,
    RawAudioBuffer,
    StageResult,
    mix_to_mono,
)
from tracksense.utils.config import CONFIG_SCHEMA, ConfigManager
from tracksense.utils.errors import AnalysisCancelledError
from tracksense.utils.logging import create_logger_with_context


# Stages that only read the mono buffer, in the order they run
SAMPLE_STAGES: Tuple[str, ...] = ('energy', 'centroid', 'beats', 'tempo', 'key')


class AudioAnalysisEngine:
    """
    Main analysis engine - orchestrates decoding and all estimator stages.

    Design:
    - Dependency Injection: decoder and stages are injected (testable)
    - Failure isolation: each stage falls back on its own; only decoding
      errors fail the whole call
    - Stages are pure, so running them in parallel gives identical results
    """

    def __init__(
        self,
        decoder: AudioDecoder,
        energy_estimator: Optional[Estimator[EnergyLoudness]] = None,
        centroid_estimator: Optional[Estimator[float]] = None,
        beat_detector: Optional[Estimator[Tuple[float, ...]]] = None,
        tempo_estimator: Optional[Estimator[int]] = None,
        key_estimator: Optional[Estimator[KeyEstimate]] = None,
        danceability_estimator: Optional[DanceabilityEstimator] = None,
        max_workers: int = 4,
        parallel_stages: bool = False,
    ):
        """
        Args:
            decoder: AudioDecoder used by the file, bytes and URL entry points
            energy_estimator: Energy/loudness stage
            centroid_estimator: Spectral centroid stage
            beat_detector: Onset beat stage
            tempo_estimator: BPM stage
            key_estimator: Key/scale stage
            danceability_estimator: Stage combining beats and energy
            max_workers: Thread pool size for batch, async and parallel stages
            parallel_stages: Run the sample stages concurrently
        """
        self.decoder = decoder
        self.stages: Dict[str, Estimator[Any]] = {
            'energy': energy_estimator or RMSEnergyEstimator(),
            'centroid': centroid_estimator or DFTCentroidEstimator(),
            'beats': beat_detector or OnsetBeatDetector(),
            'tempo': tempo_estimator or AutocorrelationTempoEstimator(),
            'key': key_estimator or ChromaKeyEstimator(),
        }
        self.danceability = danceability_estimator or DanceabilityEstimator()
        self.parallel_stages = parallel_stages
        self.executor = ThreadPoolExecutor(max_workers=max_workers)
        self.async_decoder = AsyncAudioDecoder(decoder, self.executor)
        self.logger = logging.getLogger('engine')

    # Synchronous entry points

    def analyze_file(
        self,
        file_path: Union[str, Path],
        cancel_event: Optional[threading.Event] = None,
    ) -> AudioAnalysisResult:
        """
        Analyze an audio file.

        Raises:
            AudioLoadError / FileNotFoundError: file cannot be read or decoded
            AnalysisCancelledError: ``cancel_event`` was set
        """
        start_time = time.perf_counter()
        _check_cancelled(cancel_event, 'decode')

        self.logger.info(f"Loading audio: {file_path}")
        buffer = self.decoder.load(Path(file_path))
        return self._analyze_buffer(buffer, start_time, cancel_event)

    def analyze_bytes(
        self,
        data: bytes,
        source: str = "<bytes>",
        cancel_event: Optional[threading.Event] = None,
    ) -> AudioAnalysisResult:
        """Analyze encoded audio held in memory."""
        start_time = time.perf_counter()
        _check_cancelled(cancel_event, 'decode')

        buffer = self.decoder.decode(data, source=source)
        return self._analyze_buffer(buffer, start_time, cancel_event)

    def analyze_url(
        self,
        url: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> AudioAnalysisResult:
        """
        Fetch a remote resource and analyze it.

        Fetch failures propagate; there is no partial result.
        """
        start_time = time.perf_counter()
        _check_cancelled(cancel_event, 'fetch')

        data = self.decoder.fetch(url)
        _check_cancelled(cancel_event, 'decode')
        buffer = self.decoder.decode(data, source=url)
        return self._analyze_buffer(buffer, start_time, cancel_event)

    def analyze_samples(
        self,
        audio_data: np.ndarray,
        sample_rate: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> AudioAnalysisResult:
        """
        Analyze already decoded samples.

        Args:
            audio_data: 1-D mono or 2-D (channels, samples) float array
            sample_rate: Sample rate in Hz
        """
        audio_data = np.asarray(audio_data, dtype=np.float32)
        if audio_data.ndim == 1:
            audio_data = audio_data[np.newaxis, :]
        buffer = RawAudioBuffer(audio_data=audio_data, sample_rate=int(sample_rate), source="<samples>")
        return self._analyze_buffer(buffer, time.perf_counter(), cancel_event)

    def analyze_batch(self, file_paths: List[Path]) -> List[Optional[AudioAnalysisResult]]:
        """
        Analyze multiple files on the engine's thread pool.

        Returns:
            Results in the same order as input; None where a file failed
        """
        self.logger.info(f"Analyzing batch of {len(file_paths)} files")

        futures = {
            self.executor.submit(self._analyze_file_sequential, path): index
            for index, path in enumerate(file_paths)
        }

        results: List[Optional[AudioAnalysisResult]] = [None] * len(file_paths)
        for future in as_completed(futures):
            index = futures[future]
            try:
                results[index] = future.result()
            except Exception as e:
                self.logger.error(f"Failed to analyze {file_paths[index]}: {e}")

        return results

    # Async entry points

    async def analyze_file_async(self, file_path: Union[str, Path]) -> AudioAnalysisResult:
        """
        Analyze a file without blocking the event loop.

        Cancelling the awaiting task stops the analysis at the next stage
        boundary.
        """
        cancel_event = threading.Event()
        try:
            start_time = time.perf_counter()
            buffer = await self.async_decoder.load(file_path)
            return await self._run_stages_async(buffer, start_time, cancel_event)
        except asyncio.CancelledError:
            cancel_event.set()
            raise

    async def analyze_url_async(self, url: str) -> AudioAnalysisResult:
        """Fetch and analyze a remote resource without blocking the event loop."""
        cancel_event = threading.Event()
        try:
            start_time = time.perf_counter()
            data = await self.async_decoder.fetch(url)
            buffer = await self.async_decoder.decode(data, source=url)
            return await self._run_stages_async(buffer, start_time, cancel_event)
        except asyncio.CancelledError:
            cancel_event.set()
            raise

    async def _run_stages_async(
        self,
        buffer: RawAudioBuffer,
        start_time: float,
        cancel_event: threading.Event,
    ) -> AudioAnalysisResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor,
            self._analyze_buffer_sequential,
            buffer,
            start_time,
            cancel_event,
        )

    # Pipeline

    def _analyze_file_sequential(self, file_path: Path) -> AudioAnalysisResult:
        # Runs on a pool worker; submitting stages to the same pool could deadlock
        start_time = time.perf_counter()
        buffer = self.decoder.load(Path(file_path))
        return self._analyze_buffer_sequential(buffer, start_time, None)

    def _analyze_buffer_sequential(
        self,
        buffer: RawAudioBuffer,
        start_time: float,
        cancel_event: Optional[threading.Event],
    ) -> AudioAnalysisResult:
        return self._analyze_buffer(buffer, start_time, cancel_event, allow_parallel=False)

    def _analyze_buffer(
        self,
        buffer: RawAudioBuffer,
        start_time: float,
        cancel_event: Optional[threading.Event],
        allow_parallel: bool = True,
    ) -> AudioAnalysisResult:
        log = create_logger_with_context(
            'engine', {'source': buffer.source, 'hash': buffer.source_hash[:12]}
        )
        log.info(
            f"Decoded {buffer.duration:.2f}s at {buffer.sample_rate} Hz, "
            f"{buffer.num_channels} ch"
        )

        mono = mix_to_mono(buffer)

        if self.parallel_stages and allow_parallel:
            stage_results = self._run_stages_parallel(mono, buffer.sample_rate, cancel_event)
        else:
            stage_results = self._run_stages_sequential(mono, buffer.sample_rate, cancel_event)

        _check_cancelled(cancel_event, 'danceability')
        energy_result: StageResult[EnergyLoudness] = stage_results['energy']
        beats_result: StageResult[Tuple[float, ...]] = stage_results['beats']
        stage_results['danceability'] = self.danceability.estimate_from(
            beats_result.value, energy_result.value.energy
        )

        processing_time = time.perf_counter() - start_time
        result = self._create_result(buffer, stage_results, processing_time)

        degraded = [name for name, used in result.used_fallback.items() if used]
        if degraded:
            log.warning(f"Analysis used fallback values for: {', '.join(degraded)}")
        log.info(f"Analysis complete in {processing_time:.3f}s")
        return result

    def _run_stages_sequential(
        self,
        mono: np.ndarray,
        sample_rate: int,
        cancel_event: Optional[threading.Event],
    ) -> Dict[str, StageResult[Any]]:
        results: Dict[str, StageResult[Any]] = {}
        for name in SAMPLE_STAGES:
            _check_cancelled(cancel_event, name)
            results[name] = self.stages[name].estimate(mono, sample_rate)
        return results

    def _run_stages_parallel(
        self,
        mono: np.ndarray,
        sample_rate: int,
        cancel_event: Optional[threading.Event],
    ) -> Dict[str, StageResult[Any]]:
        _check_cancelled(cancel_event, 'stages')
        futures = {
            self.executor.submit(self.stages[name].estimate, mono, sample_rate): name
            for name in SAMPLE_STAGES
        }
        results: Dict[str, StageResult[Any]] = {}
        for future in as_completed(futures):
            results[futures[future]] = future.result()
        return results

    def _create_result(
        self,
        buffer: RawAudioBuffer,
        stage_results: Dict[str, StageResult[Any]],
        processing_time: float,
    ) -> AudioAnalysisResult:
        energy: EnergyLoudness = stage_results['energy'].value
        key: KeyEstimate = stage_results['key'].value

        analyzer_versions = {name: stage.version for name, stage in self.stages.items()}
        analyzer_versions['danceability'] = self.danceability.version

        return AudioAnalysisResult(
            bpm=stage_results['tempo'].value,
            musical_key=key.musical_key,
            scale=key.scale,
            energy=energy.energy,
            danceability=stage_results['danceability'].value,
            loudness=energy.loudness,
            spectral_centroid=stage_results['centroid'].value,
            duration=buffer.duration,
            beat_positions=tuple(stage_results['beats'].value),
            source_hash=buffer.source_hash,
            sample_rate=buffer.sample_rate,
            channels=buffer.num_channels,
            processing_time=processing_time,
            used_fallback={name: r.used_fallback for name, r in stage_results.items()},
            analyzer_versions=analyzer_versions,
        )

    def shutdown(self) -> None:
        """Shutdown thread pool gracefully."""
        self.logger.debug("Shutting down analysis engine")
        self.executor.shutdown(wait=True)

    def __enter__(self) -> "AudioAnalysisEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()


def _check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise AnalysisCancelledError(f"Analysis cancelled before {stage}", stage=stage)


def create_analysis_engine(config: Optional[Dict[str, Any]] = None) -> AudioAnalysisEngine:
    """
    Factory function to create a fully configured analysis engine.

    Args:
        config: Configuration dict (see utils.config.get_default_config)

    Raises:
        ConfigurationError: If a configured value is out of range
    """
    config = config or {}
    ConfigManager(config).validate(CONFIG_SCHEMA)
    analysis_config = config.get('analysis', {})
    bpm_range = analysis_config.get('bpm_range', [60, 200])

    return AudioAnalysisEngine(
        decoder=create_audio_decoder(config.get('audio', {})),
        energy_estimator=RMSEnergyEstimator(),
        centroid_estimator=DFTCentroidEstimator(),
        beat_detector=OnsetBeatDetector(max_beats=analysis_config.get('max_beats', 500)),
        tempo_estimator=AutocorrelationTempoEstimator(
            bpm_range=(int(bpm_range[0]), int(bpm_range[1])),
            analysis_seconds=analysis_config.get('analysis_seconds', 10.0),
        ),
        key_estimator=ChromaKeyEstimator(max_windows=analysis_config.get('key_max_windows', 20)),
        danceability_estimator=DanceabilityEstimator(),
        max_workers=config.get('performance', {}).get('max_workers', 4),
        parallel_stages=analysis_config.get('parallel_stages', False),
    )


def analyze_audio_file(
    file: Union[str, Path, bytes],
    config: Optional[Dict[str, Any]] = None,
) -> AudioAnalysisResult:
    """Analyze a file path or encoded bytes with a short-lived engine."""
    with create_analysis_engine(config) as engine:
        if isinstance(file, (bytes, bytearray)):
            return engine.analyze_bytes(bytes(file))
        return engine.analyze_file(file)


def analyze_audio_url(url: str, config: Optional[Dict[str, Any]] = None) -> AudioAnalysisResult:
    """Fetch and analyze a remote resource with a short-lived engine."""
    with create_analysis_engine(config) as engine:
        return engine.analyze_url(url)
