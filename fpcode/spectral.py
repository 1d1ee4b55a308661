"""
spectral.py — Windowed Spectral Analyzer

Turns a conditioned sample buffer into a time ordered stream of magnitude
frames.

What it does:
- Slices the buffer into overlapping windows of n_fft samples (hop from config)
- Weights each window with a periodic Hann taper
- Takes the real FFT magnitude, scaled by 1 / sum(window) like scipy's stft,
  so a bin-centred sine of amplitude A reads A / 2

Frames are produced lazily. Iterating the analyzer again starts over from
frame 0, so the stream is restartable without keeping the spectrogram.
"""

import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, List, Optional

import numpy as np
import scipy.fft
from scipy.signal import get_window, stft

from .config import CodegenConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)

# Frames handed to one worker when the analysis runs on a pool
BLOCK_FRAMES = 256


@dataclass(frozen=True, eq=False)
class SpectralFrame:
    """Magnitude spectrum of one analysis window."""
    index: int                 # frame position, in hops from the start
    magnitudes: np.ndarray     # float32, config.bin_count values, all >= 0


class SpectralAnalyzer:
    """
    Lazy STFT magnitude frames over one sample buffer.

    Args:
        samples: conditioned float32 mono buffer (see conditioner.condition)
        config: codegen configuration
        workers: when > 1, blocks of frames are transformed on a thread pool
            and yielded in time order as each block finishes
    """

    def __init__(self, samples: np.ndarray, config: CodegenConfig = DEFAULT_CONFIG,
                 workers: Optional[int] = None):
        self.samples = samples
        self.config = config
        self.workers = workers
        self.window = get_window("hann", config.n_fft).astype(np.float32)
        self._scale = np.float32(1.0 / float(self.window.sum()))

    @property
    def frame_count(self) -> int:
        n = len(self.samples)
        if n < self.config.n_fft:
            return 0
        return 1 + (n - self.config.n_fft) // self.config.hop_length

    @property
    def bin_count(self) -> int:
        return self.config.bin_count

    @property
    def bin_hz(self) -> float:
        """Width of one frequency bin in Hz."""
        return self.config.sample_rate / self.config.n_fft

    def __len__(self) -> int:
        return self.frame_count

    def __iter__(self) -> Iterator[SpectralFrame]:
        if self.workers and self.workers > 1 and self.frame_count > BLOCK_FRAMES:
            return self._iter_parallel()
        return self._iter_sequential()

    def _transform(self, index: int, buf: np.ndarray) -> np.ndarray:
        # buf is scratch space for the windowed slice, reused across frames
        start = index * self.config.hop_length
        np.multiply(self.samples[start:start + self.config.n_fft], self.window, out=buf)
        return np.abs(scipy.fft.rfft(buf)) * self._scale

    def _iter_sequential(self) -> Iterator[SpectralFrame]:
        buf = np.empty(self.config.n_fft, dtype=np.float32)
        for index in range(self.frame_count):
            yield SpectralFrame(index, self._transform(index, buf))

    def _transform_block(self, start: int, stop: int) -> List[np.ndarray]:
        buf = np.empty(self.config.n_fft, dtype=np.float32)
        return [self._transform(index, buf) for index in range(start, stop)]

    def _iter_parallel(self) -> Iterator[SpectralFrame]:
        total = self.frame_count
        blocks = iter([(start, min(start + BLOCK_FRAMES, total))
                       for start in range(0, total, BLOCK_FRAMES)])
        # blocks in flight; at most this many transformed blocks wait for the consumer
        depth = 2 * self.workers
        logger.debug(f"Analyzing {total} frames in blocks of {BLOCK_FRAMES} on {self.workers} workers")

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            pending = deque()
            try:
                for start, stop in blocks:
                    pending.append((start, executor.submit(self._transform_block, start, stop)))
                    if len(pending) == depth:
                        break
                while pending:
                    start, future = pending.popleft()
                    magnitudes = future.result()
                    nxt = next(blocks, None)
                    if nxt is not None:
                        pending.append((nxt[0], executor.submit(self._transform_block, *nxt)))
                    for offset, mag in enumerate(magnitudes):
                        yield SpectralFrame(start + offset, mag)
            finally:
                # consumer stopped early or a block failed
                for _, future in pending:
                    future.cancel()

    def spectrogram(self) -> np.ndarray:
        """
        Materialize every frame at once with scipy.signal.stft.

        Returns:
            float32 array of shape (frame_count, bin_count)
        """
        cfg = self.config
        _, _, Z = stft(self.samples, fs=cfg.sample_rate, window="hann",
                       nperseg=cfg.n_fft, noverlap=cfg.n_fft - cfg.hop_length,
                       detrend=False, padded=False, boundary=None)
        return np.abs(Z).T.astype(np.float32)
