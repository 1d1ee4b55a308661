"""Tests for fpcode/assembler.py — code layout, dedup/ordering, parsing."""

import base64
import logging
import string
import zlib

import pytest

from fpcode.assembler import (
    HEADER_CHARS,
    VERSION_CHARS,
    FingerprintCode,
    assemble,
    decode,
    encode,
    pack_entries,
    unpack_entries,
)
from fpcode.config import DEFAULT_CONFIG, CodegenConfig
from fpcode.errors import InternalInvariantViolation, MalformedCode
from fpcode.landmarks import Landmark
from fpcode.peaks import Peak

PRINTABLE = set(string.ascii_letters + string.digits + "-_=")


def _code(duration, raw, level=9, tail=b""):
    payload = base64.urlsafe_b64encode(zlib.compress(bytes(raw), level) + tail).decode()
    return f"{DEFAULT_CONFIG.version_tag}{duration:08X}{payload}"


def _lm(time, h):
    return Landmark(Peak(time, 10, 1.0), Peak(time + 1, 12, 1.0), h)


class TestAssemble:
    def test_dedup_and_order(self):
        landmarks = [_lm(5, 9), _lm(2, 300), _lm(5, 3), _lm(2, 300), _lm(0, 7)]
        code = assemble(landmarks, duration=10)
        assert code.entries == ((0, 7), (2, 300), (5, 3), (5, 9))
        assert len(code) == 4
        assert code.hashes == frozenset({7, 300, 3, 9})

    def test_header(self):
        code = assemble([_lm(1, 42)], duration=0x1234)
        assert code.text[:VERSION_CHARS] == DEFAULT_CONFIG.version_tag
        assert code.text[VERSION_CHARS:HEADER_CHARS] == "00001234"
        assert code.version == DEFAULT_CONFIG.version_tag
        assert code.duration == 0x1234
        assert str(code) == code.text

    def test_printable(self):
        landmarks = [_lm(t, (t * 7919) % (1 << 22)) for t in range(200)]
        code = assemble(landmarks, duration=200)
        assert set(code.text) <= PRINTABLE

    def test_empty_stream(self, caplog):
        with caplog.at_level(logging.WARNING, logger="fpcode.assembler"):
            code = assemble([], duration=1)
        assert code.entries == ()
        assert code.text == DEFAULT_CONFIG.version_tag + "00000001"
        assert "empty fingerprint" in caplog.text

    def test_payload_layout(self):
        code = assemble([_lm(3, 0x0A0B0C), _lm(300, 1)], duration=400)
        packed = zlib.decompress(base64.urlsafe_b64decode(code.text[HEADER_CHARS:]))
        # varint(3) hash, varint(297) hash
        assert packed == bytes([3, 0x0A, 0x0B, 0x0C, 0xA9, 0x02, 0x00, 0x00, 0x01])


class TestInvariants:
    def test_too_many_entries(self):
        cfg = CodegenConfig(peaks_per_frame=1, fan_out=1)
        with pytest.raises(InternalInvariantViolation):
            assemble([_lm(0, 1), _lm(0, 2)], duration=1, config=cfg)

    def test_time_beyond_duration(self):
        with pytest.raises(InternalInvariantViolation):
            assemble([_lm(3, 1)], duration=2)

    def test_hash_too_wide(self):
        with pytest.raises(InternalInvariantViolation):
            assemble([_lm(0, 1 << 22)], duration=1)


class TestRoundTrip:
    def test_decode_then_encode_is_identical(self):
        landmarks = [_lm(t, (t * 104729) % (1 << 22)) for t in range(0, 500, 3)]
        code = assemble(landmarks, duration=600)
        parsed = decode(code.text)
        assert parsed == code
        assert encode(parsed.duration, parsed.entries) == code.text

    def test_empty(self):
        code = assemble([], duration=1)
        assert decode(code.text) == code

    def test_pack_unpack_large_deltas(self):
        entries = [(0, 5), (127, 6), (128, 7), (1 << 20, 8)]
        assert unpack_entries(pack_entries(entries)) == entries

    def test_decoded_code_is_a_fingerprint_code(self):
        parsed = decode(assemble([_lm(1, 2)], duration=3).text)
        assert isinstance(parsed, FingerprintCode)
        assert parsed.entries == ((1, 2),)


class TestMalformed:
    def test_too_short(self):
        with pytest.raises(MalformedCode):
            decode("01AB")

    def test_non_hex_header(self):
        with pytest.raises(MalformedCode):
            decode(DEFAULT_CONFIG.version_tag + "zzzzzzzz")

    def test_other_format_version(self):
        text = "7F" + DEFAULT_CONFIG.version_tag[2:] + "00000001"
        with pytest.raises(MalformedCode, match="format version"):
            decode(text)

    def test_other_configuration(self):
        text = assemble([_lm(1, 2)], duration=3).text
        with pytest.raises(MalformedCode, match="configuration"):
            decode(text, CodegenConfig(fan_out=3))

    def test_bad_base64(self):
        with pytest.raises(MalformedCode):
            decode(DEFAULT_CONFIG.version_tag + "00000001" + "!!!!")

    def test_not_zlib(self):
        payload = base64.urlsafe_b64encode(b"definitely not zlib").decode()
        with pytest.raises(MalformedCode):
            decode(DEFAULT_CONFIG.version_tag + "00000001" + payload)

    @pytest.mark.parametrize("raw", [bytes([3, 0x0A]), bytes([0x80])])
    def test_truncated_entries(self, raw):
        payload = base64.urlsafe_b64encode(zlib.compress(raw)).decode()
        with pytest.raises(MalformedCode):
            decode(DEFAULT_CONFIG.version_tag + "00000010" + payload)

    @pytest.mark.parametrize("other", [
        CodegenConfig(max_bin_delta=95),
        CodegenConfig(fan_out=7, max_bin_delta=12),
        CodegenConfig(min_peak_magnitude=2e-4),
    ])
    def test_any_parameter_change_is_rejected(self, other):
        text = assemble([_lm(1, 2)], duration=3).text
        with pytest.raises(MalformedCode, match="configuration"):
            decode(text, other)

    def test_valid_helper_code_decodes(self):
        assert decode(_code(16, [1, 0, 0, 5])).entries == ((1, 5),)

    def test_duplicate_entries(self):
        with pytest.raises(MalformedCode, match="not after"):
            decode(_code(16, [1, 0, 0, 5, 0, 0, 0, 5]))

    def test_entries_out_of_order(self):
        with pytest.raises(MalformedCode, match="not after"):
            decode(_code(16, [1, 0, 0, 9, 0, 0, 0, 5]))

    def test_time_past_duration(self):
        with pytest.raises(MalformedCode, match="past the 16 frame duration"):
            decode(_code(16, [127, 0, 0, 0x10]))

    def test_hash_too_wide(self):
        with pytest.raises(MalformedCode, match="wider than 22 bits"):
            decode(_code(16, [0, 0xFF, 0xFF, 0xFF]))

    @pytest.mark.parametrize("duration_field", ["0000000a", " 000000A", "+000000A", "0000_00A", "0x00000A"])
    def test_duration_must_be_upper_hex(self, duration_field):
        with pytest.raises(MalformedCode, match="header"):
            decode(DEFAULT_CONFIG.version_tag + duration_field)

    def test_stray_bytes_after_stream(self):
        with pytest.raises(MalformedCode, match="stray bytes"):
            decode(_code(16, [1, 0, 0, 5], tail=b"\x00\x01"))

    def test_truncated_stream(self):
        payload = base64.urlsafe_b64encode(zlib.compress(bytes([1, 0, 0, 5]))[:-3]).decode()
        with pytest.raises(MalformedCode):
            decode(DEFAULT_CONFIG.version_tag + "00000010" + payload)

    def test_redundant_varint_byte(self):
        with pytest.raises(MalformedCode, match="redundant zero byte"):
            decode(_code(16, [0x81, 0x00, 0, 0, 1]))

    def test_overlong_varint(self):
        with pytest.raises(MalformedCode, match="longer than"):
            decode(_code(16, [0x80] * 6 + [1, 0, 0, 1]))

    def test_inflates_past_bound(self):
        # one frame allows 5 * 6 entries of at most 8 bytes
        with pytest.raises(MalformedCode, match="inflates past 240 bytes"):
            decode(_code(1, bytes(241)))

    def test_payload_with_zero_duration(self):
        with pytest.raises(MalformedCode, match="allow no entries"):
            decode(_code(0, [0, 0, 0, 1]))

    def test_other_compression_level(self):
        with pytest.raises(MalformedCode, match="canonical"):
            decode(_code(16, [1, 0, 0, 5], level=0))

    def test_trailing_whitespace(self):
        text = assemble([_lm(1, 2)], duration=3).text
        with pytest.raises(MalformedCode):
            decode(text + "\n")
