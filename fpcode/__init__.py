"""
fpcode — landmark audio fingerprint codegen

Mono float PCM in, one compact printable fingerprint code out.

Modules:
- config: frozen, versioned codegen parameters
- conditioner: input validation
- spectral: windowed STFT magnitude frames
- peaks: per-frame peak picking
- landmarks: anchor/target pairing and hashing
- assembler: code serialization and parsing
- codegen: the whole pipeline in one call
- host: PCM16 conversion, WAV loading, resampling
"""

from .assembler import FingerprintCode, decode
from .codegen import generate, generate_string
from .config import CodegenConfig, DEFAULT_CONFIG, FORMAT_VERSION
from .errors import (
    CorruptSamples,
    FingerprintCancelled,
    FingerprintError,
    InternalInvariantViolation,
    InvalidInput,
    MalformedCode,
)

__version__ = "1.0.0"
