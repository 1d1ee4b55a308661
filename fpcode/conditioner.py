"""
conditioner.py — Sample Conditioner

Validates the raw buffer handed over by a host before any analysis runs.

What it does:
- Checks the declared sample count against the buffer and the analysis window
- Rejects NaN / infinite samples
- Returns a contiguous float32 view of exactly `num_samples` samples

It never resamples or rescales: audio at the wrong rate is a caller error.
"""

import logging
import numbers

import numpy as np

from .config import CodegenConfig, DEFAULT_CONFIG
from .errors import CorruptSamples, InvalidInput

logger = logging.getLogger(__name__)


def condition(samples, num_samples, config: CodegenConfig = DEFAULT_CONFIG) -> np.ndarray:
    """
    Validate a mono sample buffer and its declared length.

    Args:
        samples: 1-D sequence of float amplitudes at config.sample_rate
        num_samples: how many leading samples of the buffer to analyze
        config: codegen configuration (provides the minimum window)

    Returns:
        Contiguous float32 array of length num_samples

    Raises:
        InvalidInput: bad count, undersized input or non mono buffer
        CorruptSamples: any analyzed sample is not finite
    """
    if isinstance(num_samples, bool) or not isinstance(num_samples, numbers.Integral):
        raise InvalidInput(f"sample count must be an integer, got {num_samples!r}")
    num_samples = int(num_samples)
    if num_samples <= 0:
        raise InvalidInput(f"sample count must be positive, got {num_samples}")
    if num_samples < config.n_fft:
        raise InvalidInput(
            f"need at least {config.n_fft} samples for one analysis window, got {num_samples}"
        )

    try:
        x = np.asarray(samples, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"samples are not numeric: {e}") from e
    if x.ndim != 1:
        raise InvalidInput(f"expected a mono 1-D buffer, got shape {x.shape}")
    if num_samples > x.shape[0]:
        raise InvalidInput(
            f"sample count {num_samples} exceeds buffer length {x.shape[0]}"
        )

    x = np.ascontiguousarray(x[:num_samples])
    finite = np.isfinite(x)
    if not finite.all():
        first_bad = int(np.argmin(finite))
        raise CorruptSamples(
            f"{int(x.size - finite.sum())} non-finite samples, first at index {first_bad}"
        )

    logger.debug(f"Conditioned {num_samples} samples ({num_samples / config.sample_rate:.2f}s)")
    return x
