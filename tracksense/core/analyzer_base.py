"""
Estimator base interface for TrackSense.

Defines the contract for all pipeline stages using Protocol (structural
subtyping) and a template base class that turns stage failures into
documented fallback values.
"""

import logging
import time
from abc import abstractmethod
from typing import Any, Callable, Generic, Protocol, TypeVar

import numpy as np

from tracksense.core.models import StageResult

# Type variable for result types
T = TypeVar('T')


class Estimator(Protocol[T]):
    """
    Base protocol for all estimator stages.

    A class doesn't need to inherit from Estimator to be used by the
    engine - it just needs these members.
    """

    @property
    def name(self) -> str:
        """Stage name (e.g., 'rms_energy', 'chroma_key')."""
        ...

    @property
    def version(self) -> str:
        """Stage version for result tracking."""
        ...

    @property
    def fallback_value(self) -> T:
        """Value substituted when the stage cannot compute a result."""
        ...

    def estimate(self, mono: np.ndarray, sample_rate: int) -> StageResult[T]:
        """Compute the stage value from a mono buffer. Never raises."""
        ...


class BaseEstimator(Generic[T]):
    """
    Common functionality for estimator stages.

    Uses Template Method pattern - estimate() provides timing, logging and
    the fallback policy, subclasses implement _estimate_impl().
    """

    def __init__(self, name: str, version: str, fallback_value: T):
        """
        Args:
            name: Unique stage name
            version: Version string for tracking
            fallback_value: Documented value returned when the stage fails
        """
        self._name = name
        self._version = version
        self._fallback_value = fallback_value
        self.logger = logging.getLogger(f"analyzer.{name}")

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return self._version

    @property
    def fallback_value(self) -> T:
        return self._fallback_value

    def estimate(self, mono: np.ndarray, sample_rate: int) -> StageResult[T]:
        """
        Run the stage on a shared, read-only mono buffer.

        Args:
            mono: Mono samples, nominally in [-1, 1]
            sample_rate: Native sample rate in Hz

        Returns:
            StageResult: computed value, or the fallback with the error text
        """
        return self._guarded(self._estimate_impl, mono, sample_rate)

    def _guarded(self, impl: Callable[..., T], *args: Any) -> StageResult[T]:
        """Call ``impl`` and convert any exception into a fallback result."""
        start_time = time.perf_counter()

        try:
            value = impl(*args)
        except Exception as e:
            self.logger.error(
                f"{self.name} failed, using fallback {self._fallback_value!r}: {e}"
            )
            return StageResult.fallback(
                self._fallback_value, error=f"{type(e).__name__}: {e}"
            )

        elapsed = time.perf_counter() - start_time
        self.logger.debug(f"{self.name} complete in {elapsed:.3f}s")
        return StageResult.computed(value)

    @abstractmethod
    def _estimate_impl(self, mono: np.ndarray, sample_rate: int) -> T:
        """Subclasses implement the numeric stage; may raise freely."""
        raise NotImplementedError


def require_samples(mono: np.ndarray, minimum: int = 1) -> np.ndarray:
    """
    Return ``mono`` as float64, raising ValueError when it is too short
    or contains non-finite values.
    """
    samples = np.asarray(mono, dtype=np.float64)
    if samples.ndim != 1:
        raise ValueError(f"Expected 1-D mono samples, got shape {samples.shape}")
    if samples.size < minimum:
        raise ValueError(f"Need at least {minimum} samples, got {samples.size}")
    if not np.all(np.isfinite(samples)):
        raise ValueError("Samples contain NaN or infinite values")
    return samples
