"""Tests for the XAR header."""

import struct
from io import BytesIO

import pytest

from xar_toolkit.errors import (
    BadMagicError,
    HeaderTooSmallError,
    TruncatedInputError,
    UnsupportedVersionError,
)
from xar_toolkit.xar.header import (
    XAR_MAGIC,
    ChecksumAlgorithm,
    UnknownChecksumAlgorithm,
    XARHeader,
    checksum_algorithm_from_code,
    decode_header,
    validate_header,
)


def create_xar_header(
    magic: int = XAR_MAGIC,
    size: int = 28,
    version: int = 1,
    toc_compressed: int = 353,
    toc_uncompressed: int = 710,
    checksum: int = 1,
    data: bytes = b"",
) -> bytes:
    """Create a XAR header for testing."""
    return struct.pack(
        ">IHHQQI", magic, size, version, toc_compressed, toc_uncompressed, checksum
    ) + data


class TestChecksumAlgorithm:
    """Tests for checksum algorithm codes."""

    @pytest.mark.parametrize(
        "code,expected",
        [
            (0, ChecksumAlgorithm.NONE),
            (1, ChecksumAlgorithm.SHA1),
            (2, ChecksumAlgorithm.MD5),
            (3, ChecksumAlgorithm.SHA256),
            (4, ChecksumAlgorithm.SHA512),
        ],
    )
    def test_known_codes(self, code, expected):
        assert checksum_algorithm_from_code(code) is expected

    def test_unknown_code(self):
        algorithm = checksum_algorithm_from_code(99)
        assert algorithm == UnknownChecksumAlgorithm(99)
        assert algorithm.code == 99
        assert algorithm.name == "UNKNOWN"
        assert str(algorithm) == "Unknown(99)"

    def test_digest_names(self):
        assert ChecksumAlgorithm.SHA256.digest_name == "sha256"
        assert ChecksumAlgorithm.MD5.digest_name == "md5"
        assert ChecksumAlgorithm.NONE.digest_name is None
        assert UnknownChecksumAlgorithm(7).digest_name is None


class TestDecodeHeader:
    """Tests for decode_header."""

    def test_minimal_header(self):
        header = decode_header(create_xar_header())

        assert header.magic == 0x78617221
        assert header.size == 28
        assert header.version == 1
        assert header.toc_length_compressed == 353
        assert header.toc_length_uncompressed == 710
        assert header.checksum_algorithm is ChecksumAlgorithm.SHA1
        assert header.data == b""
        validate_header(header)
        assert header.is_valid

    def test_literal_bytes(self):
        raw = bytes.fromhex(
            "78617221 001C 0001 0000000000000010 0000000000000020 00000001".replace(" ", "")
        )
        header = decode_header(raw)
        assert header.magic == XAR_MAGIC
        assert header.size == 28
        assert header.version == 1
        assert header.toc_length_compressed == 16
        assert header.toc_length_uncompressed == 32
        assert header.checksum_algorithm is ChecksumAlgorithm.SHA1

    def test_unknown_checksum_is_not_an_error(self):
        header = decode_header(create_xar_header(checksum=99))
        assert header.checksum_algorithm == UnknownChecksumAlgorithm(99)
        assert header.is_valid

    def test_trailing_data_read_exactly(self):
        stream = BytesIO(create_xar_header(size=32, checksum=3, data=b"\x01\x02\x03\x04") + b"TOC")
        header = decode_header(stream)

        assert header.data == b"\x01\x02\x03\x04"
        assert stream.read() == b"TOC"

    def test_small_size_reads_no_trailing_data(self):
        stream = BytesIO(create_xar_header(size=20) + b"TOC")
        header = decode_header(stream)

        assert header.size == 20
        assert header.data == b""
        assert stream.read() == b"TOC"

    def test_truncated_fixed_fields(self):
        with pytest.raises(TruncatedInputError):
            decode_header(create_xar_header()[:20])

    def test_truncated_trailing_data(self):
        with pytest.raises(TruncatedInputError):
            decode_header(create_xar_header(size=40, data=b"\x00" * 4))

    def test_from_stream(self):
        header = XARHeader.from_stream(BytesIO(create_xar_header(checksum=4)))
        assert header.checksum_algorithm is ChecksumAlgorithm.SHA512


class TestValidateHeader:
    """Tests for validate_header."""

    @pytest.mark.parametrize("index", range(4))
    def test_any_magic_byte_flip_fails(self, index):
        raw = bytearray(create_xar_header())
        raw[index] ^= 0xFF
        header = decode_header(bytes(raw))

        with pytest.raises(BadMagicError):
            validate_header(header)
        assert not header.is_valid

    def test_magic_checked_before_version(self):
        header = decode_header(create_xar_header(magic=0, version=0))
        with pytest.raises(BadMagicError) as exc_info:
            header.validate()
        assert exc_info.value.magic == 0

    def test_header_too_small(self):
        header = decode_header(create_xar_header(size=27))
        with pytest.raises(HeaderTooSmallError) as exc_info:
            validate_header(header)
        assert exc_info.value.size == 27

    def test_unsupported_version(self):
        raw = bytearray(create_xar_header())
        raw[6] = 0
        raw[7] = 0
        header = decode_header(bytes(raw))

        assert header.version == 0
        with pytest.raises(UnsupportedVersionError) as exc_info:
            validate_header(header)
        assert exc_info.value.version == 0
        assert "wrong version: 0" in str(exc_info.value).lower()

    def test_larger_header_is_valid(self):
        header = decode_header(create_xar_header(size=36, data=b"\x00" * 8))
        validate_header(header)


class TestHeaderEncoding:
    """Tests for re-encoding and rendering headers."""

    @pytest.mark.parametrize(
        "raw",
        [
            create_xar_header(),
            create_xar_header(size=32, checksum=3, data=b"\xDE\xAD\xBE\xEF"),
            create_xar_header(toc_compressed=2**64 - 1, toc_uncompressed=0, checksum=99),
        ],
    )
    def test_to_bytes_reproduces_input(self, raw):
        assert decode_header(raw).to_bytes() == raw

    def test_to_dict(self):
        header = decode_header(create_xar_header(size=30, checksum=3, data=b"\xAB\xCD"))
        info = header.to_dict()

        assert info["magic"] == XAR_MAGIC
        assert info["size"] == 30
        assert info["checksum_algorithm"] == {"name": "SHA256", "code": 3}
        assert info["data"] == "abcd"

    def test_str(self):
        text = str(decode_header(create_xar_header()))
        assert "0x78617221" in text
        assert "SHA1" in text
        assert "toc length (compressed)" in text
