"""
Batch processor for analyzing multiple audio files.

Collects files from paths and directories and delegates each one to an
analysis engine, recording failures instead of stopping.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from tracksense.core.loader import SUPPORTED_FORMATS
from tracksense.core.models import AudioAnalysisResult


@dataclass
class BatchResult:
    """Result of a batch processing operation."""
    successful: Dict[Path, AudioAnalysisResult] = field(default_factory=dict)
    failed: Dict[Path, str] = field(default_factory=dict)
    total_files: int = 0
    total_time: float = 0.0

    @property
    def success_count(self) -> int:
        return len(self.successful)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def success_rate(self) -> float:
        """Success rate as percentage."""
        if self.total_files == 0:
            return 0.0
        return (self.success_count / self.total_files) * 100

    @property
    def degraded(self) -> List[Path]:
        """Files whose result used at least one stage fallback."""
        return [path for path, result in self.successful.items() if result.used_any_fallback]


class BatchProcessor:
    """
    Processes multiple audio files using an analysis engine.

    Files are analyzed one at a time; each analysis may still use the
    engine's stage parallelism.
    """

    def __init__(
        self,
        engine,
        extensions: Iterable[str] = SUPPORTED_FORMATS,
        progress_callback: Optional[Callable[[int, int, Path], None]] = None
    ):
        """
        Args:
            engine: Analysis engine instance (dependency injection)
            extensions: File suffixes treated as audio
            progress_callback: Optional callback(current, total, file_path)
        """
        self.engine = engine
        self.extensions = {ext.lower() for ext in extensions}
        self.progress_callback = progress_callback
        self.logger = logging.getLogger("batch_processor")

    def process(
        self,
        inputs: Union[Path, List[Path]],
        recursive: bool = False
    ) -> BatchResult:
        """
        Process one or more audio files or directories.

        Args:
            inputs: Single path or list of paths (files or directories)
            recursive: If True, search directories recursively
        """
        start_time = time.perf_counter()

        files = self.collect_files(inputs, recursive)

        if not files:
            self.logger.warning("No audio files found to process")
            return BatchResult(total_files=0, total_time=0.0)

        self.logger.info(f"Processing {len(files)} audio files")

        result = self._process_files(files)
        result.total_time = time.perf_counter() - start_time

        self.logger.info(
            f"Batch complete: {result.success_count}/{result.total_files} succeeded "
            f"in {result.total_time:.2f}s"
        )

        return result

    def collect_files(
        self,
        inputs: Union[Path, List[Path]],
        recursive: bool = False
    ) -> List[Path]:
        """Collect all audio files from inputs, sorted and de-duplicated."""
        if isinstance(inputs, (str, Path)):
            inputs = [inputs]

        files = []
        for path in inputs:
            path = Path(path)
            if path.is_file():
                if self._is_audio_file(path):
                    files.append(path)
                else:
                    self.logger.warning(f"Skipping non-audio file: {path}")
            elif path.is_dir():
                files.extend(self._scan_directory(path, recursive))
            else:
                self.logger.warning(f"Path not found: {path}")

        return sorted(set(files))

    def _scan_directory(self, directory: Path, recursive: bool) -> List[Path]:
        pattern = "**/*" if recursive else "*"
        return [
            path for path in directory.glob(pattern)
            if path.is_file() and self._is_audio_file(path)
        ]

    def _is_audio_file(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def _process_files(self, files: List[Path]) -> BatchResult:
        result = BatchResult(total_files=len(files))

        for processed, file_path in enumerate(files, start=1):
            if self.progress_callback:
                self.progress_callback(processed, len(files), file_path)

            try:
                result.successful[file_path] = self.engine.analyze_file(file_path)
                self.logger.debug(f"Successfully processed: {file_path}")
            except Exception as e:
                result.failed[file_path] = str(e)
                self.logger.error(f"Failed to process {file_path}: {e}")

        return result
