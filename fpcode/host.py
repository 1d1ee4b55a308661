"""
host.py — Host side helpers

Everything a caller needs to get audio into the shape generate() expects.
None of this is part of the fingerprint itself.

What it does:
- Converts recorded 16-bit PCM into floats in [-1, 1]
- Converts audio to mono and normalizes (no sample peak bigger than 1)
- Loads a WAV file and resamples it to the codegen rate
"""

import logging

import numpy as np
import soundfile as sf
from scipy.signal import resample_poly

from .assembler import FingerprintCode
from .codegen import generate
from .config import CodegenConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)

PCM16_FULL_SCALE = 32767.0


def pcm16_to_float(data) -> np.ndarray:
    """Recorders hand over int16 samples, the codegen wants floats in [-1, 1]."""
    return (np.asarray(data, dtype=np.int16) / PCM16_FULL_SCALE).astype(np.float32)


def to_mono(x: np.ndarray) -> np.ndarray:
    x = np.asarray(x, dtype=np.float32)
    if x.ndim == 2:  # (frames, channels): average the channels
        x = np.mean(x, axis=1, dtype=np.float32)
    m = np.max(np.abs(x)) + 1e-9 if x.size else 1.0  # + epsilon in case of silence
    return x / np.float32(m)


def load_audio(path: str, sample_rate: int = DEFAULT_CONFIG.sample_rate) -> np.ndarray:
    """
    Read an audio file into mono float32 at `sample_rate`.

    Args:
        path: anything soundfile can read (WAV, FLAC, OGG...)
        sample_rate: rate the codegen is configured for

    Returns:
        1-D float32 array
    """
    x, sr = sf.read(path, dtype="float32", always_2d=False)
    x = to_mono(x)
    if sr != sample_rate:
        x = resample_poly(x, sample_rate, sr).astype(np.float32)
        logger.debug(f"Resampled {path} from {sr} Hz to {sample_rate} Hz")
    return x


def fingerprint_file(path: str, config: CodegenConfig = DEFAULT_CONFIG, workers=None) -> FingerprintCode:
    x = load_audio(path, config.sample_rate)
    return generate(x, len(x), config, workers=workers)
