"""
Result writers for saving analysis results to files.

New output formats can be added as ResultWriter subclasses and
registered in create_result_writer().
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, TextIO

from tracksense.core.models import AudioAnalysisResult


class ResultWriter(ABC):
    """Abstract base class for result writers (Strategy Pattern)."""

    @abstractmethod
    def write(self, results: Dict[Path, AudioAnalysisResult], output_path: Path) -> None:
        """Write results to the specified path."""
        pass


class TextResultWriter(ResultWriter):
    """Writes analysis results to a human-readable text file."""

    def __init__(self, include_timestamp: bool = True, max_beats_shown: int = 16):
        """
        Args:
            include_timestamp: Whether to include timestamp in output
            max_beats_shown: Beat positions listed per file before truncating
        """
        self.include_timestamp = include_timestamp
        self.max_beats_shown = max_beats_shown
        self.logger = logging.getLogger("result_writer.text")

    def write(self, results: Dict[Path, AudioAnalysisResult], output_path: Path) -> None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write("=" * 70 + "\n")
            f.write("TRACKSENSE ANALYSIS RESULTS\n")
            f.write("=" * 70 + "\n")

            if self.include_timestamp:
                f.write(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

            f.write(f"Total Files Analyzed: {len(results)}\n")
            f.write("=" * 70 + "\n\n")

            for file_path, result in results.items():
                self._write_single_result(f, Path(file_path), result)

            f.write("=" * 70 + "\n")
            f.write("END OF REPORT\n")
            f.write("=" * 70 + "\n")

        self.logger.info(f"Results written to: {output_path}")

    def _write_single_result(self, f: TextIO, file_path: Path, result: AudioAnalysisResult) -> None:
        f.write("-" * 70 + "\n")
        f.write(f"FILE: {file_path.name}\n")
        f.write(f"PATH: {file_path}\n")
        f.write("-" * 70 + "\n")
        f.write(format_result(result, max_beats_shown=self.max_beats_shown))
        f.write("\n")


class JSONResultWriter(ResultWriter):
    """Writes analysis results to a JSON file."""

    def __init__(self, indent: int = 2):
        self.indent = indent
        self.logger = logging.getLogger("result_writer.json")

    def write(self, results: Dict[Path, AudioAnalysisResult], output_path: Path) -> None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        output_data = {
            "generated": datetime.now().isoformat(),
            "total_files": len(results),
            "results": {
                str(path): result.to_dict()
                for path, result in results.items()
            }
        }

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(output_data, f, indent=self.indent, default=str)

        self.logger.info(f"Results written to: {output_path}")


def format_result(result: AudioAnalysisResult, max_beats_shown: int = 16) -> str:
    """Render one result as indented report lines (shared by the CLI and TextResultWriter)."""
    lines = [
        f"Duration: {result.duration:.2f}s ({result.sample_rate} Hz, {result.channels} ch)",
        f"Processing Time: {result.processing_time:.3f}s",
        f"Summary: {result.get_summary()}",
        "",
        "Tempo & Rhythm:",
        f"  BPM: {result.bpm}",
        f"  Danceability: {result.danceability:.2f}",
        f"  Beats Detected: {len(result.beat_positions)}",
    ]

    if result.beat_positions:
        shown = ", ".join(f"{t:.2f}" for t in result.beat_positions[:max_beats_shown])
        if len(result.beat_positions) > max_beats_shown:
            shown += ", ..."
        lines.append(f"  Beat Positions: {shown}")

    lines.extend([
        "",
        "Tonality:",
        f"  Key: {result.musical_key} {result.scale}",
        "",
        "Dynamics & Timbre:",
        f"  Energy: {result.energy:.2f}",
        f"  Loudness: {result.loudness:.2f}",
        f"  Spectral Centroid: {result.spectral_centroid:.1f} Hz",
    ])

    degraded = sorted(name for name, used in result.used_fallback.items() if used)
    if degraded:
        lines.extend(["", f"Fallback values used for: {', '.join(degraded)}"])

    return "\n".join(lines) + "\n"


def create_result_writer(format: str = "text", **kwargs) -> ResultWriter:
    """
    Factory function to create appropriate result writer.

    Args:
        format: Output format ("text" or "json")
        **kwargs: Additional arguments for the writer
    """
    writers = {
        "text": TextResultWriter,
        "txt": TextResultWriter,
        "json": JSONResultWriter,
    }

    writer_class = writers.get(format.lower())
    if writer_class is None:
        raise ValueError(f"Unknown format: {format}. Supported: {list(writers.keys())}")

    return writer_class(**kwargs)
