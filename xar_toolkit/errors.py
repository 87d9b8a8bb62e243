"""Exceptions raised while decoding XAR archives."""

from typing import Optional


class XARError(Exception):
    """Base class for XAR decoding errors."""


# Header
class HeaderError(XARError):
    pass


class TruncatedInputError(HeaderError, EOFError):
    """The source ran out before a field could be read."""

    def __init__(self, expected: int, got: int):
        super().__init__(f"Truncated input: expected {expected} bytes, got {got}")
        self.expected = expected
        self.got = got


class BadMagicError(HeaderError):
    def __init__(self, magic: int):
        super().__init__(f"Invalid XAR magic: 0x{magic:08X}, expected 0x78617221")
        self.magic = magic


class HeaderTooSmallError(HeaderError):
    def __init__(self, size: int):
        super().__init__(f"Header too small: {size} bytes")
        self.size = size


class UnsupportedVersionError(HeaderError):
    def __init__(self, version: int):
        super().__init__(f"Wrong version: {version}")
        self.version = version


# Table of contents
class TocError(XARError):
    pass


class DecompressionError(TocError):
    pass


class InvalidUtf8Error(TocError):
    pass


class TocParseError(TocError):
    pass


class TocElementMissingError(TocError):
    def __init__(self):
        super().__init__("<toc> element doesn't exist in TOC")


class CreationTimeMissingError(TocError):
    def __init__(self):
        super().__init__("<creation-time> element doesn't exist in TOC")


class CreationTimeParseError(TocError):
    def __init__(self, text: str):
        super().__init__(f"Cannot parse <creation-time>: {text!r}")
        self.text = text


class ChecksumElementMissingError(TocError):
    def __init__(self):
        super().__init__("<checksum> element missing")


class ChecksumTypeMissingError(TocError):
    def __init__(self):
        super().__init__("style attribute in <checksum> element missing")


class ChecksumOffsetInvalidError(TocError):
    def __init__(self, text: Optional[str] = None):
        super().__init__(f"<checksum> <offset> missing or invalid: {text!r}")
        self.text = text


class ChecksumSizeInvalidError(TocError):
    def __init__(self, text: Optional[str] = None):
        super().__init__(f"<checksum> <size> missing or invalid: {text!r}")
        self.text = text


class FileIdMissingError(TocError):
    def __init__(self, text: Optional[str] = None):
        super().__init__(f"<file> id attribute missing or invalid: {text!r}")
        self.text = text


class InvalidFieldError(TocError):
    """A numeric <file> field is present but not an unsigned integer."""

    def __init__(self, field: str, value: Optional[str], file_id: int):
        super().__init__(f"File {file_id}: invalid <{field}> value {value!r}")
        self.field = field
        self.value = value
        self.file_id = file_id
