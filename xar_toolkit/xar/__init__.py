"""XAR archive decoding."""

from .header import (
    ChecksumAlgorithm,
    UnknownChecksumAlgorithm,
    XARHeader,
    checksum_algorithm_from_code,
    decode_header,
    validate_header,
)
from .reader import Archive, XARReader
from .toc import FileData, FileEntry, Files, FileType, XARToc, decode_toc, find_entry, recurse

__all__ = [
    "Archive",
    "ChecksumAlgorithm",
    "FileData",
    "FileEntry",
    "FileType",
    "Files",
    "UnknownChecksumAlgorithm",
    "XARHeader",
    "XARReader",
    "XARToc",
    "checksum_algorithm_from_code",
    "decode_header",
    "decode_toc",
    "find_entry",
    "recurse",
    "validate_header",
]
