"""XAR header structures.

The header is a fixed 28-byte big-endian record followed by
``size - 28`` reserved bytes:

    0: uint32  magic ("xar!")
    4: uint16  header size
    6: uint16  version
    8: uint64  compressed TOC length
   16: uint64  uncompressed TOC length
   24: uint32  checksum algorithm code
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO, Optional, Union

from ..errors import BadMagicError, HeaderTooSmallError, UnsupportedVersionError
from ..utils.binary import BinaryReader, BinaryWriter

XAR_MAGIC = 0x78617221  # "xar!"
XAR_HEADER_SIZE = 28
XAR_VERSION = 1


class ChecksumAlgorithm(IntEnum):
    """Checksum algorithm codes stored in the header."""

    NONE = 0
    SHA1 = 1
    MD5 = 2
    SHA256 = 3
    SHA512 = 4

    @property
    def code(self) -> int:
        return int(self)

    @property
    def digest_name(self) -> Optional[str]:
        """Name accepted by hashlib, or None when no checksum is used."""
        if self is ChecksumAlgorithm.NONE:
            return None
        return self.name.lower()


@dataclass(frozen=True)
class UnknownChecksumAlgorithm:
    """A checksum code outside the known set."""

    code: int

    @property
    def name(self) -> str:
        return "UNKNOWN"

    @property
    def digest_name(self) -> Optional[str]:
        return None

    def __str__(self) -> str:
        return f"Unknown({self.code})"


ChecksumAlg = Union[ChecksumAlgorithm, UnknownChecksumAlgorithm]


def checksum_algorithm_from_code(code: int) -> ChecksumAlg:
    """Map a header code to its algorithm. Unknown codes are never an error."""
    try:
        return ChecksumAlgorithm(code)
    except ValueError:
        return UnknownChecksumAlgorithm(code)


@dataclass
class XARHeader:
    """XAR archive header."""

    magic: int  # 4 bytes: 0x78617221
    size: int  # 2 bytes: total header length
    version: int  # 2 bytes: only 1 is supported
    toc_length_compressed: int  # 8 bytes
    toc_length_uncompressed: int  # 8 bytes: capacity hint
    checksum_algorithm: ChecksumAlg  # 4 bytes: algorithm code
    data: bytes = b""  # size - 28 reserved bytes, kept verbatim

    @classmethod
    def from_stream(cls, source: Union[bytes, BinaryIO]) -> "XARHeader":
        return decode_header(source)

    @property
    def is_valid(self) -> bool:
        try:
            validate_header(self)
        except (BadMagicError, HeaderTooSmallError, UnsupportedVersionError):
            return False
        return True

    def validate(self) -> None:
        validate_header(self)

    def to_bytes(self) -> bytes:
        """Re-encode the header, trailing data included."""
        writer = BinaryWriter()
        writer.write_u32(self.magic)
        writer.write_u16(self.size)
        writer.write_u16(self.version)
        writer.write_u64(self.toc_length_compressed)
        writer.write_u64(self.toc_length_uncompressed)
        writer.write_u32(self.checksum_algorithm.code)
        writer.write_bytes(self.data)
        return writer.getvalue()

    def to_dict(self) -> dict:
        return {
            "magic": self.magic,
            "size": self.size,
            "version": self.version,
            "toc_length_compressed": self.toc_length_compressed,
            "toc_length_uncompressed": self.toc_length_uncompressed,
            "checksum_algorithm": {
                "name": self.checksum_algorithm.name,
                "code": self.checksum_algorithm.code,
            },
            "data": self.data.hex(),
        }

    def __str__(self) -> str:
        rows = [
            ("magic", f"0x{self.magic:08X}"),
            ("size (header)", self.size),
            ("version", self.version),
            ("toc length (compressed)", self.toc_length_compressed),
            ("toc length", self.toc_length_uncompressed),
            ("checksum algorithm", self.checksum_algorithm.name),
            ("extra data", self.data.hex() or "-"),
        ]
        return "\n".join(f"{name:25}: {value}" for name, value in rows)


def decode_header(source: Union[bytes, BinaryIO]) -> XARHeader:
    """Read a header from the start of ``source``.

    Only the layout is decoded here; call :func:`validate_header` to check
    magic, size and version. Raises TruncatedInputError if the source ends
    before the fixed fields or the trailing bytes are read.
    """
    reader = BinaryReader(source)

    magic = reader.read_u32()
    size = reader.read_u16()
    version = reader.read_u16()
    toc_length_compressed = reader.read_u64()
    toc_length_uncompressed = reader.read_u64()
    checksum_code = reader.read_u32()

    data = reader.read_bytes(max(size - XAR_HEADER_SIZE, 0))

    return XARHeader(
        magic=magic,
        size=size,
        version=version,
        toc_length_compressed=toc_length_compressed,
        toc_length_uncompressed=toc_length_uncompressed,
        checksum_algorithm=checksum_algorithm_from_code(checksum_code),
        data=data,
    )


def validate_header(header: XARHeader) -> None:
    """Check magic, header size and version, in that order."""
    if header.magic != XAR_MAGIC:
        raise BadMagicError(header.magic)

    if header.size < XAR_HEADER_SIZE:
        raise HeaderTooSmallError(header.size)

    if header.version != XAR_VERSION:
        raise UnsupportedVersionError(header.version)
