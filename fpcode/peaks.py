"""
peaks.py — Peak Extractor

For each spectral frame, keep only the few frequency bins that stand out.

A bin is a peak when:
- it is the largest value within +/- peak_neighborhood bins
  (on a flat top, only the lowest bin of the run counts)
- it beats the frame threshold: max(min_peak_magnitude, threshold_ratio * frame mean)

Only the peaks_per_frame strongest survive (ties go to the lower bin), so
the pairing stage never sees more than a fixed number of points per frame.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .config import CodegenConfig, DEFAULT_CONFIG
from .errors import FingerprintCancelled
from .spectral import SpectralFrame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Peak:
    frame: int
    bin: int
    magnitude: float


def frame_threshold(magnitudes: np.ndarray, config: CodegenConfig = DEFAULT_CONFIG) -> float:
    """Noise floor for one frame, follows the frame's overall energy."""
    return max(config.min_peak_magnitude, config.threshold_ratio * float(np.mean(magnitudes)))


def frame_peaks(frame: SpectralFrame, config: CodegenConfig = DEFAULT_CONFIG) -> List[Peak]:
    """Peaks of one frame, strongest first (equal magnitudes: lower bin first)."""
    mag = frame.magnitudes
    k = config.peak_neighborhood

    padded = np.pad(mag, k, mode="constant", constant_values=-np.inf)
    hood = sliding_window_view(padded, 2 * k + 1)  # row i = bins i-k .. i+k
    local_max = hood.max(axis=1)
    left_max = hood[:, :k].max(axis=1)

    is_peak = (mag >= local_max) & (mag > left_max) & (mag > frame_threshold(mag, config))
    idx = np.flatnonzero(is_peak)
    if idx.size == 0:
        return []

    order = np.lexsort((idx, -mag[idx]))[:config.peaks_per_frame]
    return [Peak(frame.index, int(idx[i]), float(mag[idx[i]])) for i in order]


def extract_peaks(frames: Iterable[SpectralFrame], config: CodegenConfig = DEFAULT_CONFIG,
                  cancel=None) -> Iterator[Peak]:
    """
    Lazily pull peaks out of a frame stream.

    Args:
        frames: SpectralFrames in increasing index order
        config: codegen configuration
        cancel: optional object with is_set() (e.g. threading.Event), checked
            between frames only

    Yields:
        Peaks grouped by frame, frames in increasing order

    Raises:
        FingerprintCancelled: cancel was set before a frame was started
    """
    n_frames = n_peaks = 0
    for frame in frames:
        if cancel is not None and cancel.is_set():
            raise FingerprintCancelled(f"cancelled before frame {frame.index}")
        peaks = frame_peaks(frame, config)
        n_frames += 1
        n_peaks += len(peaks)
        yield from peaks
    logger.debug(f"Extracted {n_peaks} peaks from {n_frames} frames")
