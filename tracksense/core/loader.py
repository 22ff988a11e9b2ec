"""
Audio decoder for TrackSense.

Decodes files, in-memory bytes and remote resources into RawAudioBuffer
instances at their native sample rate.
"""

import asyncio
import hashlib
import io
import logging
import ssl
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set, Tuple, Union
from urllib.parse import urlparse

import certifi
import librosa
import numpy as np
import soundfile as sf

from tracksense.core.models import RawAudioBuffer, mix_to_mono
from tracksense.utils.errors import (
    AudioDecodeError,
    AudioFetchError,
    FileTooLargeError,
    UnsupportedFormatError,
)


# Constants
SUPPORTED_FORMATS: Tuple[str, ...] = ('.wav', '.aif', '.aiff', '.mp3', '.flac', '.ogg')
MAX_FILE_SIZE: int = 104857600  # 100 MB
FETCH_TIMEOUT: float = 30.0  # seconds
USER_AGENT: str = "TrackSense/1.0"

logger = logging.getLogger("decoder")

__all__ = [
    "AudioDecoder",
    "AsyncAudioDecoder",
    "create_audio_decoder",
    "mix_to_mono",
]


class AudioDecoder:
    """
    Decodes audio containers into RawAudioBuffer instances.

    Stateless apart from its limits - one instance can be shared across
    threads and injected into engines and tests.
    """

    def __init__(
        self,
        max_file_size: int = MAX_FILE_SIZE,
        supported_formats: Iterable[str] = SUPPORTED_FORMATS,
        fetch_timeout: float = FETCH_TIMEOUT,
    ):
        """
        Args:
            max_file_size: Maximum encoded size in bytes (files and downloads)
            supported_formats: File suffixes accepted by load()
            fetch_timeout: Socket timeout for fetch() in seconds
        """
        self.max_file_size = max_file_size
        self.supported_suffixes: Set[str] = {s.lower() for s in supported_formats}
        self.fetch_timeout = fetch_timeout

    def load(self, file_path: Union[str, Path]) -> RawAudioBuffer:
        """
        Load and decode an audio file.

        Raises:
            FileNotFoundError: File doesn't exist
            UnsupportedFormatError: File suffix not supported
            FileTooLargeError: File exceeds size limit
            AudioDecodeError: Container cannot be decoded
        """
        file_path = Path(file_path)
        self._validate_file(file_path)

        data = file_path.read_bytes()
        # Decode from the path so librosa can fall back to audioread for mp3
        return self._decode(str(file_path), data, source=str(file_path))

    def decode(self, data: bytes, source: str = "<bytes>") -> RawAudioBuffer:
        """
        Decode in-memory container bytes.

        Raises:
            FileTooLargeError: Data exceeds size limit
            AudioDecodeError: Data is empty, corrupt or uses an unsupported codec
        """
        if not data:
            raise AudioDecodeError(f"No audio data to decode: {source}", source=source)
        self._check_size(len(data))
        return self._decode(io.BytesIO(data), data, source=source)

    def fetch(self, url: str) -> bytes:
        """
        Download a remote audio resource.

        Raises:
            AudioFetchError: Bad URL, network failure, HTTP error or oversize body
        """
        scheme = urlparse(url).scheme.lower()
        if scheme not in ('http', 'https'):
            raise AudioFetchError(f"Unsupported URL scheme: {url}", url=url)

        context = ssl.create_default_context(cafile=certifi.where())
        request = urllib.request.Request(url, headers={'User-Agent': USER_AGENT})

        logger.info(f"Fetching audio: {url}")
        try:
            with urllib.request.urlopen(request, timeout=self.fetch_timeout, context=context) as response:
                # Read one byte past the limit to detect oversize bodies
                data = response.read(self.max_file_size + 1)
        except urllib.error.HTTPError as e:
            raise AudioFetchError(
                f"HTTP {e.code} fetching {url}: {e.reason}", url=url, status=e.code
            ) from e
        except (urllib.error.URLError, OSError) as e:
            raise AudioFetchError(f"Failed to fetch {url}: {e}", url=url) from e

        if len(data) > self.max_file_size:
            raise FileTooLargeError(
                f"Remote audio exceeds {self.max_file_size / 1024 / 1024:.1f} MB: {url}",
                file_size=len(data),
                max_size=self.max_file_size
            )
        if not data:
            raise AudioFetchError(f"Empty response from {url}", url=url)

        return data

    def _validate_file(self, file_path: Path) -> None:
        """Validate file exists, has supported format, and is within size limit."""
        if not file_path.exists():
            raise FileNotFoundError(f"Audio file not found: {file_path}")

        suffix = file_path.suffix.lower()
        if suffix not in self.supported_suffixes:
            raise UnsupportedFormatError(
                f"Format {suffix} not supported. "
                f"Supported formats: {', '.join(sorted(self.supported_suffixes))}",
                format=suffix
            )

        self._check_size(file_path.stat().st_size)

    def _check_size(self, size: int) -> None:
        if size > self.max_file_size:
            raise FileTooLargeError(
                f"File too large: {size / 1024 / 1024:.1f} MB. "
                f"Maximum: {self.max_file_size / 1024 / 1024:.1f} MB",
                file_size=size,
                max_size=self.max_file_size
            )

    def _decode(self, src: Any, data: bytes, source: str) -> RawAudioBuffer:
        """Decode ``src`` (path or file-like) without resampling."""
        metadata = self._load_metadata(data, source)

        try:
            audio_data, sample_rate = librosa.load(src, sr=None, mono=False, dtype=np.float32)
        except Exception as e:
            raise AudioDecodeError(
                f"Failed to decode audio from {source}: {e}", source=source
            ) from e

        if audio_data.ndim == 1:
            audio_data = audio_data[np.newaxis, :]

        audio_data = self._validate_audio_data(audio_data, source)

        return RawAudioBuffer(
            audio_data=audio_data,
            sample_rate=int(sample_rate),
            source=source,
            source_hash=hashlib.sha256(data).hexdigest(),
            original_format=metadata.get('format'),
            bit_depth=metadata.get('bit_depth'),
        )

    def _validate_audio_data(self, audio_data: np.ndarray, source: str) -> np.ndarray:
        """
        Warn about suspicious decoded samples without altering them.

        Empty or non-finite audio is passed on; the estimators fall back
        for it stage by stage.
        """
        if audio_data.size == 0:
            logger.warning(f"Audio contains no samples: {source}")
            return audio_data

        finite = np.isfinite(audio_data)
        if not np.all(finite):
            logger.warning(f"Audio contains non-finite samples: {source}")
            if not np.any(finite):
                return audio_data

        max_abs = float(np.max(np.abs(audio_data[finite])))
        if max_abs < 1e-6:
            logger.warning(f"Audio appears to be silent: {source}")
        elif max_abs > 1.0:
            logger.warning(f"Audio contains clipping (max: {max_abs:.2f}): {source}")

        return audio_data

    def _load_metadata(self, data: bytes, source: str) -> Dict[str, Optional[str]]:
        """Read container metadata with soundfile where it can."""
        try:
            info = sf.info(io.BytesIO(data))
        except Exception as e:
            # e.g. mp3 on libsndfile builds without mpeg support
            logger.debug(f"Could not read metadata with soundfile for {source}: {e}")
            return {'format': None, 'bit_depth': None}

        logger.info(
            f"Decoding audio: {info.samplerate} Hz, {info.channels} ch, {info.subtype}"
        )
        return {'format': info.format, 'bit_depth': info.subtype}


class AsyncAudioDecoder:
    """Async wrapper around AudioDecoder for non-blocking I/O."""

    def __init__(
        self,
        decoder: Optional[AudioDecoder] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        """
        Args:
            decoder: AudioDecoder instance (creates default if None)
            executor: ThreadPoolExecutor (creates default if None)
        """
        self.decoder = decoder or AudioDecoder()
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=4)

    async def load(self, file_path: Union[str, Path]) -> RawAudioBuffer:
        """Load and decode a file asynchronously."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.decoder.load, file_path)

    async def decode(self, data: bytes, source: str = "<bytes>") -> RawAudioBuffer:
        """Decode bytes asynchronously."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.decoder.decode, data, source)

    async def fetch(self, url: str) -> bytes:
        """Download a remote resource asynchronously."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.decoder.fetch, url)

    def shutdown(self) -> None:
        """Shutdown the executor if this wrapper created it."""
        if self._owns_executor:
            self.executor.shutdown(wait=True)


def create_audio_decoder(config: Optional[Dict[str, Any]] = None) -> AudioDecoder:
    """
    Factory function to create AudioDecoder from the ``audio`` config section.
    """
    if config is None:
        config = {}

    return AudioDecoder(
        max_file_size=config.get('max_file_size', MAX_FILE_SIZE),
        supported_formats=config.get('supported_formats', SUPPORTED_FORMATS),
        fetch_timeout=config.get('fetch_timeout', FETCH_TIMEOUT),
    )
