"""
Shared fixtures for the test suite.

Test audio is built from bin-centred sinusoids: a tone at bin k completes
exactly k cycles per window, so a stationary window shows it in three bins
(A/2 at k, A/4 at k +/- 1) and nothing else. That keeps peak picking exact
and the expected landmarks predictable.
"""

import numpy as np
import pytest

from fpcode.config import DEFAULT_CONFIG

SR = DEFAULT_CONFIG.sample_rate
N_FFT = DEFAULT_CONFIG.n_fft
SEGMENT = 8 * DEFAULT_CONFIG.hop_length  # samples per note of a melody
NOTE_AMPLITUDES = (0.3, 0.2, 0.12)


def _bin_tone(k: int, n: int, amplitude: float = 0.5, start: int = 0) -> np.ndarray:
    t = np.arange(start, start + n)
    return amplitude * np.sin(2 * np.pi * k * t / N_FFT)


def _melody(seconds: float, seed: int = 7) -> np.ndarray:
    """Three note chords that change every SEGMENT samples.

    The same seed gives the same opening, so a longer melody extends a
    shorter one.
    """
    rng = np.random.default_rng(seed)
    n = int(seconds * SR)
    x = np.zeros(n)
    for start in range(0, n, SEGMENT):
        stop = min(start + SEGMENT, n)
        bins = rng.choice(np.arange(40, 200, 8), size=3, replace=False)
        for k, amplitude in zip(bins, NOTE_AMPLITUDES):
            x[start:stop] += _bin_tone(int(k), stop - start, amplitude, start)
    return x.astype(np.float32)


@pytest.fixture
def bin_tone():
    return _bin_tone


@pytest.fixture
def melody():
    return _melody


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
