"""
assembler.py — Code Assembler

Turns the landmark stream into the fingerprint string handed back to the host.

Layout:
    <version: 66 chars><duration: 8 hex chars><payload>

- version: 2 hex chars of FORMAT_VERSION + the packed configuration in
  urlsafe base64 (see CodegenConfig.version_tag)
- duration: number of analysis frames
- payload: urlsafe base64 of zlib(entries), where each entry is
  varint(time - previous time) followed by the hash in config.hash_bytes
  big-endian bytes. No entries means an empty payload.

The string is canonical: decode() only accepts what encode() would produce.
"""

import base64
import logging
import re
import zlib
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from .config import VERSION_TAG_CHARS, CodegenConfig, DEFAULT_CONFIG, FORMAT_VERSION
from .errors import InternalInvariantViolation, MalformedCode
from .landmarks import Landmark

logger = logging.getLogger(__name__)

VERSION_CHARS = VERSION_TAG_CHARS
DURATION_CHARS = 8
HEADER_CHARS = VERSION_CHARS + DURATION_CHARS
MAX_DURATION = (1 << (4 * DURATION_CHARS)) - 1
MAX_VARINT_BYTES = 5  # enough for any delta below MAX_DURATION

_HEADER = re.compile(r"([0-9A-F]{2})([A-Za-z0-9_-]{%d})([0-9A-F]{%d})" % (VERSION_CHARS - 2, DURATION_CHARS))

Entry = Tuple[int, int]  # (time offset in frames, hash)


@dataclass(frozen=True)
class FingerprintCode:
    """An assembled fingerprint. `text` is what goes over the wire."""
    version: str
    duration: int
    entries: Tuple[Entry, ...]
    text: str

    def __str__(self) -> str:
        return self.text

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def hashes(self) -> frozenset:
        return frozenset(h for _, h in self.entries)


def _put_varint(out: bytearray, value: int):
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return


def _get_varint(data: bytes, pos: int) -> Tuple[int, int]:
    value = shift = 0
    for _ in range(MAX_VARINT_BYTES):
        if pos >= len(data):
            raise MalformedCode("payload ends inside a time offset")
        byte = data[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            if byte == 0 and shift:
                raise MalformedCode(f"time offset at byte {pos - 1} has a redundant zero byte")
            return value, pos
        shift += 7
    raise MalformedCode(f"time offset longer than {MAX_VARINT_BYTES} bytes")


def pack_entries(entries: Iterable[Entry], config: CodegenConfig = DEFAULT_CONFIG) -> bytes:
    """Delta-encode sorted (time, hash) entries into raw bytes."""
    out = bytearray()
    last = 0
    for t, h in entries:
        _put_varint(out, t - last)
        out += h.to_bytes(config.hash_bytes, "big")
        last = t
    return bytes(out)


def unpack_entries(data: bytes, config: CodegenConfig = DEFAULT_CONFIG) -> List[Entry]:
    entries = []
    pos = t = 0
    width = config.hash_bytes
    while pos < len(data):
        delta, pos = _get_varint(data, pos)
        if pos + width > len(data):
            raise MalformedCode("payload ends inside a hash")
        t += delta
        entries.append((t, int.from_bytes(data[pos:pos + width], "big")))
        pos += width
    return entries


def encode(duration: int, entries: Iterable[Entry], config: CodegenConfig = DEFAULT_CONFIG) -> str:
    """Serialize sorted, unique entries into the printable fingerprint string."""
    if not 0 <= duration <= MAX_DURATION:
        raise InternalInvariantViolation(f"duration {duration} does not fit the header")
    header = f"{config.version_tag}{duration:0{DURATION_CHARS}X}"
    packed = pack_entries(entries, config)
    if not packed:
        return header
    return header + base64.urlsafe_b64encode(zlib.compress(packed, 9)).decode("ascii")


def assemble(landmarks: Iterable[Landmark], duration: int,
             config: CodegenConfig = DEFAULT_CONFIG) -> FingerprintCode:
    """
    Deduplicate, order and serialize a landmark stream.

    Args:
        landmarks: Landmarks from hash_landmarks, in any order
        duration: number of analysis frames the landmarks came from
        config: codegen configuration

    Returns:
        FingerprintCode with entries sorted by time, then hash
    """
    entries = tuple(sorted({(lm.time, lm.hash) for lm in landmarks}))

    limit = duration * config.peaks_per_frame * config.fan_out
    if len(entries) > limit:
        raise InternalInvariantViolation(
            f"{len(entries)} entries exceed the bound of {limit} for {duration} frames"
        )
    if entries and not 0 <= entries[0][0] <= entries[-1][0] < duration:
        raise InternalInvariantViolation(
            f"landmark times {entries[0][0]}..{entries[-1][0]} outside {duration} frames"
        )
    if entries and max(h for _, h in entries) >> config.hash_bits:
        raise InternalInvariantViolation(f"hash wider than {config.hash_bits} bits")

    if not entries and duration > 0:
        logger.warning(f"No landmarks in {duration} frames, emitting an empty fingerprint")

    text = encode(duration, entries, config)
    logger.debug(f"Assembled {len(entries)} entries into {len(text)} chars")
    return FingerprintCode(config.version_tag, duration, entries, text)


def _check_entries(entries: List[Entry], duration: int, config: CodegenConfig):
    bound = duration * config.peaks_per_frame * config.fan_out
    if len(entries) > bound:
        raise MalformedCode(f"{len(entries)} entries exceed the bound of {bound} for {duration} frames")
    limit = 1 << config.hash_bits
    previous = None
    for t, h in entries:
        if t >= duration:
            raise MalformedCode(f"entry at frame {t} is past the {duration} frame duration")
        if h >= limit:
            raise MalformedCode(f"hash {h:#x} wider than {config.hash_bits} bits")
        if previous is not None and (t, h) <= previous:
            raise MalformedCode(f"entry {(t, h)} is not after {previous}")
        previous = (t, h)


def decode(text: str, config: CodegenConfig = DEFAULT_CONFIG) -> FingerprintCode:
    """
    Parse a fingerprint string produced under `config` back into entries.

    Only the exact string encode() would produce is accepted, so the result
    always re-encodes to `text`.

    Raises:
        MalformedCode: bad header, foreign configuration, or a damaged payload
    """
    header = _HEADER.fullmatch(text[:HEADER_CHARS])
    if header is None:
        raise MalformedCode(f"header {text[:HEADER_CHARS]!r} is not a format {FORMAT_VERSION} header")

    format_version = int(header.group(1), 16)
    version = text[:VERSION_CHARS]
    duration = int(header.group(3), 16)
    payload = text[HEADER_CHARS:]

    if format_version != FORMAT_VERSION:
        raise MalformedCode(f"format version {format_version}, expected {FORMAT_VERSION}")
    if version != config.version_tag:
        raise MalformedCode(
            f"code was produced under configuration {version}, not {config.version_tag}"
        )

    if not payload:
        return FingerprintCode(version, duration, (), text)

    # no valid code unpacks to more than this many bytes
    max_packed = duration * config.peaks_per_frame * config.fan_out * (config.hash_bytes + MAX_VARINT_BYTES)
    if max_packed == 0:
        raise MalformedCode(f"payload present but {duration} frames allow no entries")

    try:
        inflater = zlib.decompressobj()
        packed = inflater.decompress(base64.b64decode(payload, altchars=b"-_", validate=True),
                                     max_packed + 1)
    except (ValueError, zlib.error) as e:
        raise MalformedCode(f"payload does not decode: {e}") from e
    if len(packed) > max_packed:
        raise MalformedCode(f"payload inflates past {max_packed} bytes")
    if not inflater.eof:
        raise MalformedCode("payload ends inside the compressed stream")
    if inflater.unused_data:
        raise MalformedCode(f"{len(inflater.unused_data)} stray bytes after the compressed stream")

    entries = unpack_entries(packed, config)
    _check_entries(entries, duration, config)
    if encode(duration, entries, config) != text:
        raise MalformedCode("payload is not in canonical form")
    return FingerprintCode(version, duration, tuple(entries), text)
