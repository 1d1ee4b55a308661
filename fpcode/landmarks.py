"""
landmarks.py — Landmark Hasher

Create Shazam-style hashes from pairs of nearby peaks.

Every peak acts as an anchor and is paired with up to fan_out later peaks
(the target zone) that sit within max_frame_delta frames ahead and
max_bin_delta bins away. Each pair is packed into one integer:

    [ anchor bin (anchor_bits) | target bin (target_bits) | frame delta (delta_bits) ]

Each field is quantized to its bit width, so small drifts land in the
same level. The anchor frame becomes the landmark's time offset.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Iterator

from .config import CodegenConfig, DEFAULT_CONFIG
from .errors import InternalInvariantViolation
from .peaks import Peak

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Landmark:
    anchor: Peak
    target: Peak
    hash: int

    @property
    def time(self) -> int:
        return self.anchor.frame

    @property
    def frame_delta(self) -> int:
        return self.target.frame - self.anchor.frame


def quantize(value: int, span: int, bits: int) -> int:
    """Map value in [0, span) onto 2**bits evenly sized levels."""
    if not 0 <= value < span:
        raise InternalInvariantViolation(f"value {value} outside [0, {span})")
    return value * (1 << bits) // span


def landmark_hash(anchor: Peak, target: Peak, config: CodegenConfig = DEFAULT_CONFIG) -> int:
    """Pack one anchor/target pair into a config.hash_bits wide integer."""
    dt = target.frame - anchor.frame
    if not 1 <= dt <= config.max_frame_delta:
        raise InternalInvariantViolation(
            f"frame delta {dt} outside pairing window 1..{config.max_frame_delta}"
        )
    f1 = quantize(anchor.bin, config.bin_count, config.anchor_bits)
    f2 = quantize(target.bin, config.bin_count, config.target_bits)
    d = quantize(dt, config.max_frame_delta + 1, config.delta_bits)
    return (f1 << (config.target_bits + config.delta_bits)) | (f2 << config.delta_bits) | d


class _Anchor:
    __slots__ = ("peak", "paired")

    def __init__(self, peak: Peak):
        self.peak = peak
        self.paired = 0


def hash_landmarks(peaks: Iterable[Peak], config: CodegenConfig = DEFAULT_CONFIG) -> Iterator[Landmark]:
    """
    Pair every anchor with its first fan_out targets, looking forward only.

    Args:
        peaks: Peaks in non-decreasing frame order, as yielded by extract_peaks
        config: codegen configuration

    Yields:
        Landmarks; only anchors still inside their target zone are kept around
    """
    pending = deque()  # anchors in time order whose target zone is still open
    last_frame = -1
    count = 0

    for peak in peaks:
        if peak.frame < last_frame:
            raise InternalInvariantViolation(
                f"peak stream went back in time: frame {peak.frame} after {last_frame}"
            )
        last_frame = peak.frame

        while pending and peak.frame - pending[0].peak.frame > config.max_frame_delta:
            pending.popleft()

        for slot in pending:
            anchor = slot.peak
            if anchor.frame == peak.frame:
                break  # rest of the queue is this same frame
            if slot.paired >= config.fan_out:
                continue
            if abs(peak.bin - anchor.bin) > config.max_bin_delta:
                continue
            slot.paired += 1
            count += 1
            yield Landmark(anchor, peak, landmark_hash(anchor, peak, config))

        pending.append(_Anchor(peak))

    logger.debug(f"Hashed {count} landmarks")
