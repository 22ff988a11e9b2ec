"""
TrackSense - audio feature extraction CLI

Installed as the ``tracksense`` console script.

Example usage:
    # Single file analysis
    tracksense path/to/track.wav
    tracksense --output results.json path/to/track.wav

    # Remote resource
    tracksense --url https://example.com/track.mp3

    # Batch processing
    tracksense --batch path/to/directory/
    tracksense --batch --recursive --output-json results.json path/to/directory/
"""

import argparse
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from tracksense import __version__
from tracksense.core.engine import create_analysis_engine
from tracksense.core.models import AudioAnalysisResult
from tracksense.core.result_writer import JSONResultWriter, TextResultWriter, format_result
from tracksense.utils.config import load_config
from tracksense.utils.errors import AudioAnalysisError
from tracksense.utils.logging import setup_logging_from_config


def print_single_result(source: str, result: AudioAnalysisResult) -> None:
    """Print analysis results for a single file to console."""
    print("\n" + "=" * 60)
    print("TRACKSENSE ANALYSIS RESULTS")
    print("=" * 60)
    print(f"Source: {source}")
    print("-" * 60)
    print(format_result(result), end="")
    print("-" * 60)


def analyze_single(
    config: dict,
    audio_file: Optional[Path] = None,
    url: Optional[str] = None,
    output_json: Optional[Path] = None,
    output_txt: Optional[Path] = None,
    verbose: bool = False,
) -> int:
    """
    Analyze a single audio file or URL.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if audio_file is not None and not audio_file.exists():
        print(f"Error: Audio file not found: {audio_file}", file=sys.stderr)
        return 1

    source = url if url is not None else str(audio_file)
    print(f"Analyzing: {source}")

    with create_analysis_engine(config) as engine:
        try:
            if url is not None:
                result = engine.analyze_url(url)
            else:
                result = engine.analyze_file(audio_file)
        except (AudioAnalysisError, OSError) as e:
            print(f"Error during analysis: {e}", file=sys.stderr)
            if verbose:
                traceback.print_exc()
            return 1

    print_single_result(source, result)

    if output_json:
        with open(output_json, 'w', encoding='utf-8') as f:
            f.write(result.to_json(indent=2))
        print(f"\nJSON results saved to: {output_json}")

    if output_txt:
        TextResultWriter().write({Path(source): result}, output_txt)
        print(f"Text results saved to: {output_txt}")

    return 0


def analyze_batch(
    inputs: List[Path],
    config: dict,
    recursive: bool = False,
    output_txt: Optional[Path] = None,
    output_json: Optional[Path] = None,
) -> int:
    """
    Analyze multiple audio files in batch mode.

    Returns:
        Exit code (0 if every file succeeded, 1 otherwise)
    """
    from tracksense.core.batch_processor import BatchProcessor

    def progress_callback(current: int, total: int, file_path: Path) -> None:
        print(f"[{current}/{total}] Processing: {file_path.name}")

    with create_analysis_engine(config) as engine:
        processor = BatchProcessor(
            engine=engine,
            extensions=config.get('audio', {}).get('supported_formats', ['.wav']),
            progress_callback=progress_callback
        )
        batch_result = processor.process(inputs, recursive=recursive)

    print("\n" + "=" * 60)
    print("BATCH PROCESSING COMPLETE")
    print("=" * 60)
    print(f"Total Files: {batch_result.total_files}")
    print(f"Successful: {batch_result.success_count}")
    print(f"Failed: {batch_result.failure_count}")
    print(f"Success Rate: {batch_result.success_rate:.1f}%")
    print(f"Total Time: {batch_result.total_time:.2f}s")

    if batch_result.degraded:
        print(f"Degraded (fallback values used): {len(batch_result.degraded)}")

    if batch_result.failed:
        print("\nFailed Files:")
        for path, error in batch_result.failed.items():
            print(f"  {path.name}: {error}")

    # Text report is the default when nothing else was requested
    if output_txt or (not output_json and batch_result.successful):
        txt_path = output_txt or Path(
            f"tracksense_results_{datetime.now().strftime('%Y%m%d_%H%M%S')}.txt"
        )
        TextResultWriter().write(batch_result.successful, txt_path)
        print(f"\nText results saved to: {txt_path}")

    if output_json:
        JSONResultWriter().write(batch_result.successful, output_json)
        print(f"JSON results saved to: {output_json}")

    if batch_result.total_files == 0:
        return 1
    return 0 if batch_result.failure_count == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tracksense",
        description="Estimate tempo, key, energy, danceability and loudness of audio files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Single file:
    tracksense track.wav
    tracksense --output results.json track.wav

  Remote resource:
    tracksense --url https://example.com/track.mp3

  Batch processing:
    tracksense --batch tracks/
    tracksense --batch --recursive --output-file results.txt tracks/
        """
    )

    parser.add_argument(
        "inputs",
        type=Path,
        nargs="*",
        help="Audio file(s) or directory to analyze"
    )
    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="Analyze a remote audio resource instead of local files"
    )
    parser.add_argument(
        "--batch",
        "-b",
        action="store_true",
        help="Enable batch processing mode for multiple files or directories"
    )
    parser.add_argument(
        "--recursive",
        "-r",
        action="store_true",
        help="Search directories recursively (only with --batch)"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to save JSON output (single file mode)"
    )
    parser.add_argument(
        "--output-file",
        "-o",
        type=Path,
        default=None,
        help="Path to save text results file (.txt)"
    )
    parser.add_argument(
        "--output-json",
        type=Path,
        default=None,
        help="Path to save JSON results file (batch mode)"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"TrackSense {__version__}"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for TrackSense audio analysis."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.url is None and not args.inputs:
        parser.error("provide an audio file, a directory, or --url")
    if args.url is not None and args.inputs:
        parser.error("--url cannot be combined with local inputs")

    try:
        config = load_config(str(args.config) if args.config else None)
    except AudioAnalysisError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging_from_config(config.get("logging", {}), verbose=args.verbose)

    if args.url is not None:
        return analyze_single(
            config,
            url=args.url,
            output_json=args.output,
            output_txt=args.output_file,
            verbose=args.verbose,
        )

    is_batch = args.batch or len(args.inputs) > 1 or args.inputs[0].is_dir()

    if is_batch:
        return analyze_batch(
            inputs=args.inputs,
            config=config,
            recursive=args.recursive,
            output_txt=args.output_file,
            output_json=args.output_json,
        )

    return analyze_single(
        config,
        audio_file=args.inputs[0],
        output_json=args.output,
        output_txt=args.output_file,
        verbose=args.verbose,
    )


if __name__ == "__main__":
    sys.exit(main())
