"""
Core module containing data models, decoding, and the analysis engine.

Uses lazy imports for modules with heavy dependencies (librosa, soundfile).
"""

# Models are lightweight - import directly
from tracksense.core.models import (
    NOTE_NAMES,
    SCALES,
    RawAudioBuffer,
    StageResult,
    EnergyLoudness,
    KeyEstimate,
    AudioAnalysisResult,
    mix_to_mono,
)

__all__ = [
    # Models (always available)
    "NOTE_NAMES",
    "SCALES",
    "RawAudioBuffer",
    "StageResult",
    "EnergyLoudness",
    "KeyEstimate",
    "AudioAnalysisResult",
    "mix_to_mono",
    # Heavy modules (lazy loaded)
    "AudioDecoder",
    "create_audio_decoder",
    "Estimator",
    "BaseEstimator",
    "AudioAnalysisEngine",
    "create_analysis_engine",
    "analyze_audio_file",
    "analyze_audio_url",
    # Batch processing
    "BatchProcessor",
    "BatchResult",
    "ResultWriter",
    "TextResultWriter",
    "JSONResultWriter",
    "create_result_writer",
]


def __getattr__(name: str):
    """Lazy load modules with heavy dependencies."""
    if name in ("AudioDecoder", "create_audio_decoder"):
        from tracksense.core import loader
        return getattr(loader, name)
    elif name in ("Estimator", "BaseEstimator"):
        from tracksense.core import analyzer_base
        return getattr(analyzer_base, name)
    elif name in ("AudioAnalysisEngine", "create_analysis_engine",
                  "analyze_audio_file", "analyze_audio_url"):
        from tracksense.core import engine
        return getattr(engine, name)
    elif name in ("BatchProcessor", "BatchResult"):
        from tracksense.core import batch_processor
        return getattr(batch_processor, name)
    elif name in ("ResultWriter", "TextResultWriter", "JSONResultWriter", "create_result_writer"):
        from tracksense.core import result_writer
        return getattr(result_writer, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
