"""
config.py — Codegen Configuration

Frozen fingerprinting parameters. Every field here changes the bits that
end up in a code, so the whole parameter tuple is packed into the version
header: codes produced under two different configurations never share a
version, and the configuration can be read back from any code.

Runtime knobs that do not change the output (worker count, cancellation)
are call arguments, not fields.
"""

import base64
import hashlib
import json
import math
import struct
from dataclasses import asdict, dataclass
from typing import Dict

from .errors import MalformedCode

# Bumped whenever the serialized layout changes (header or entry packing)
FORMAT_VERSION = 1

# Parameter tuple carried in the version field, in field order:
# sample_rate, log2(n_fft), overlap, peaks_per_frame, peak_neighborhood,
# threshold_ratio, min_peak_magnitude, fan_out, max_frame_delta, max_bin_delta,
# anchor_bits, target_bits, delta_bits, 2 pad bytes (48 bytes, 64 base64 chars)
_PARAMS = struct.Struct(">IBdHHddHIIBBBxx")
VERSION_TAG_CHARS = 2 + 4 * _PARAMS.size // 3


@dataclass(frozen=True)
class CodegenConfig:
    """
    Frozen codegen configuration.

    Input is 11025 Hz mono, as Echoprint style recorders deliver it.
    STFT and pairing defaults: n_fft=1024, hop=256, top 5 peaks per frame,
    fan out of 6.
    """
    # Input
    sample_rate: int = 11025

    # Spectral analysis
    n_fft: int = 1024               # samples per transform window
    overlap: float = 0.75           # fraction of a window shared with the next one

    # Peak extraction
    peaks_per_frame: int = 5        # strongest peaks kept per frame
    peak_neighborhood: int = 3      # +/- bins a peak must dominate
    threshold_ratio: float = 4.0    # peak must beat ratio * mean frame magnitude
    min_peak_magnitude: float = 1e-4  # absolute floor, same units as magnitudes

    # Landmark pairing
    fan_out: int = 6                # targets paired with each anchor
    max_frame_delta: int = 63       # how far ahead (frames) a target may be
    max_bin_delta: int = 96         # how far apart (bins) anchor and target may be

    # Hash layout: [anchor bin | target bin | frame delta]
    anchor_bits: int = 8
    target_bits: int = 8
    delta_bits: int = 6

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.n_fft < 16 or self.n_fft & (self.n_fft - 1):
            raise ValueError(f"n_fft must be a power of two >= 16, got {self.n_fft}")
        if not 0.0 <= self.overlap < 1.0:
            raise ValueError(f"overlap must be in [0, 1), got {self.overlap}")
        if self.hop_length < 1:
            raise ValueError(f"overlap {self.overlap} leaves no hop for n_fft={self.n_fft}")
        if self.peaks_per_frame < 1 or self.fan_out < 1:
            raise ValueError("peaks_per_frame and fan_out must be >= 1")
        if self.peak_neighborhood < 1:
            raise ValueError("peak_neighborhood must be >= 1")
        if self.threshold_ratio < 0 or self.min_peak_magnitude < 0:
            raise ValueError("thresholds must be non-negative")
        if self.max_frame_delta < 1 or self.max_bin_delta < 0:
            raise ValueError("pairing window must span at least one frame")
        if min(self.anchor_bits, self.target_bits, self.delta_bits) < 1:
            raise ValueError("every hash field needs at least one bit")
        if self.hash_bits > 32:
            raise ValueError(f"hash layout needs {self.hash_bits} bits, at most 32 allowed")
        if not all(math.isfinite(v) for v in (self.overlap, self.threshold_ratio, self.min_peak_magnitude)):
            raise ValueError("overlap and thresholds must be finite")
        if self.sample_rate > 0xFFFFFFFF or self.n_fft > 1 << 30:
            raise ValueError("sample_rate or n_fft too large for the version header")
        if max(self.peaks_per_frame, self.peak_neighborhood, self.fan_out) > 0xFFFF:
            raise ValueError("peaks_per_frame, peak_neighborhood and fan_out must fit 16 bits")
        if max(self.max_frame_delta, self.max_bin_delta) > 0xFFFFFFFF:
            raise ValueError("pairing window must fit 32 bits")

    @property
    def hop_length(self) -> int:
        return int(round(self.n_fft * (1.0 - self.overlap)))

    @property
    def bin_count(self) -> int:
        return self.n_fft // 2 + 1

    @property
    def hash_bits(self) -> int:
        return self.anchor_bits + self.target_bits + self.delta_bits

    @property
    def hash_bytes(self) -> int:
        return (self.hash_bits + 7) // 8

    @property
    def config_hash(self) -> str:
        """Deterministic hash of every output-affecting parameter."""
        config_str = json.dumps(asdict(self), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def version_tag(self) -> str:
        """
        Version field written at the head of every code.

        2 hex chars of FORMAT_VERSION followed by the packed parameter tuple in
        urlsafe base64, so two configurations can only share a tag when every
        field is equal.
        """
        packed = _PARAMS.pack(
            self.sample_rate, self.n_fft.bit_length() - 1, self.overlap + 0.0,
            self.peaks_per_frame, self.peak_neighborhood,
            self.threshold_ratio + 0.0, self.min_peak_magnitude + 0.0,
            self.fan_out, self.max_frame_delta, self.max_bin_delta,
            self.anchor_bits, self.target_bits, self.delta_bits,
        )
        return f"{FORMAT_VERSION:02X}" + base64.urlsafe_b64encode(packed).decode("ascii")

    @classmethod
    def from_version_tag(cls, tag: str) -> "CodegenConfig":
        """Rebuild the configuration a code was produced under."""
        if len(tag) != VERSION_TAG_CHARS or tag[:2] != f"{FORMAT_VERSION:02X}":
            raise MalformedCode(f"not a format {FORMAT_VERSION} version tag: {tag!r}")
        try:
            fields = _PARAMS.unpack(base64.b64decode(tag[2:], altchars=b"-_", validate=True))
            config = cls(fields[0], 1 << fields[1], *fields[2:])
        except (ValueError, struct.error) as e:
            raise MalformedCode(f"version tag does not describe a configuration: {e}") from e
        if config.version_tag != tag:
            raise MalformedCode(f"version tag {tag!r} is not canonical")
        return config

    def to_dict(self) -> Dict:
        """Export configuration as dictionary"""
        return {
            "params": asdict(self),
            "meta": {
                "format_version": FORMAT_VERSION,
                "config_hash": self.config_hash,
                "hop_length": self.hop_length,
                "hash_bits": self.hash_bits,
            },
        }


DEFAULT_CONFIG = CodegenConfig()
