"""
codegen.py — Fingerprint pipeline

Conditioner -> Analyzer -> Extractor -> Hasher -> Assembler, in one call.

Input:
    mono float32 PCM at config.sample_rate, plus the number of samples to use

Output:
    FingerprintCode (str() of it is the printable code)
"""

import logging
from typing import Optional

from .assembler import FingerprintCode, assemble
from .conditioner import condition
from .config import CodegenConfig, DEFAULT_CONFIG
from .landmarks import hash_landmarks
from .peaks import extract_peaks
from .spectral import SpectralAnalyzer

logger = logging.getLogger(__name__)


def generate(samples, num_samples: int, config: CodegenConfig = DEFAULT_CONFIG,
             workers: Optional[int] = None, cancel=None) -> FingerprintCode:
    """
    Fingerprint one sample buffer.

    Args:
        samples: 1-D float amplitudes in [-1, 1], mono, at config.sample_rate
        num_samples: how many leading samples to analyze
        config: codegen configuration, fixes the output format
        workers: thread count for the spectral transforms (None/1 = sequential);
            the result does not depend on it
        cancel: optional object with is_set(), checked between frames

    Returns:
        FingerprintCode

    Raises:
        InvalidInput, CorruptSamples, InternalInvariantViolation, FingerprintCancelled
    """
    x = condition(samples, num_samples, config)
    analyzer = SpectralAnalyzer(x, config, workers=workers)
    peaks = extract_peaks(analyzer, config, cancel=cancel)
    code = assemble(hash_landmarks(peaks, config), analyzer.frame_count, config)
    logger.info(
        f"Generated code v{code.version}: {analyzer.frame_count} frames, "
        f"{len(code)} landmarks, {len(code.text)} chars"
    )
    return code


def generate_string(samples, num_samples: int, config: CodegenConfig = DEFAULT_CONFIG,
                    workers: Optional[int] = None, cancel=None) -> str:
    return generate(samples, num_samples, config, workers=workers, cancel=cancel).text
