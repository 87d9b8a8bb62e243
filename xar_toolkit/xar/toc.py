"""XAR table of contents.

The TOC is a zlib-compressed XML document that follows the header. It
describes the archive checksum and a tree of ``<file>`` elements:

    <xar>
      <toc>
        <creation-time>2020-01-02T03:04:05</creation-time>
        <checksum style="sha1"><offset>0</offset><size>20</size></checksum>
        <file id="1">
          <name>dir</name>
          <type>directory</type>
          <file id="2">...</file>
        </file>
      </toc>
    </xar>

Decoding builds the whole entry tree up front. The tree is immutable
afterwards; iteration, walking and path lookup only read it.
"""

import logging
import zlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from io import BytesIO
from pathlib import PurePosixPath
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Sequence, TextIO, Tuple, Union
from xml.etree import ElementTree

import defusedxml
from defusedxml import ElementTree as SafeElementTree

from ..errors import (
    ChecksumElementMissingError,
    ChecksumOffsetInvalidError,
    ChecksumSizeInvalidError,
    ChecksumTypeMissingError,
    CreationTimeMissingError,
    CreationTimeParseError,
    DecompressionError,
    FileIdMissingError,
    InvalidFieldError,
    InvalidUtf8Error,
    TocElementMissingError,
    TocParseError,
)

logger = logging.getLogger(__name__)

CREATION_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

# Read size for the compressed stream
_CHUNK_SIZE = 64 * 1024


class FileType(Enum):
    """Known values of a file's <type> element."""

    FILE = "file"
    DIRECTORY = "directory"
    CHARACTER_SPECIAL = "character special"

    @classmethod
    def from_text(cls, text: Optional[str]) -> Optional["FileType"]:
        """Return the matching type, or None for absent or unrecognised text."""
        try:
            return cls(text)
        except ValueError:
            return None


@dataclass(frozen=True)
class EntryChecksum:
    """An <extracted-checksum> or <archived-checksum> of a file's data."""

    style: Optional[str]
    value: Optional[str]


@dataclass(frozen=True)
class FileData:
    """Location of a file's payload in the heap (<data> element)."""

    length: Optional[int] = None  # Bytes stored in the heap
    offset: Optional[int] = None  # Offset from the start of the heap
    size: Optional[int] = None  # Bytes after extraction
    encoding: Optional[str] = None  # <encoding style="...">
    extracted_checksum: Optional[EntryChecksum] = None
    archived_checksum: Optional[EntryChecksum] = None

    def to_dict(self) -> dict:
        result = {
            "length": self.length,
            "offset": self.offset,
            "size": self.size,
            "encoding": self.encoding,
        }
        for key in ("extracted_checksum", "archived_checksum"):
            checksum = getattr(self, key)
            result[key] = (
                {"style": checksum.style, "value": checksum.value} if checksum else None
            )
        return result


@dataclass(frozen=True)
class FileEntry:
    """One <file> element of the TOC."""

    id: int
    name: Optional[str] = None
    file_type: Optional[FileType] = None
    type_text: Optional[str] = None  # Raw <type> text, kept for unknown types
    user: Optional[str] = None
    group: Optional[str] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    device_number: Optional[int] = None
    inode: Optional[int] = None
    mode: Optional[str] = None
    ctime: Optional[str] = None
    mtime: Optional[str] = None
    atime: Optional[str] = None
    data: Optional[FileData] = None
    children: Tuple["FileEntry", ...] = field(default=(), repr=False)

    @property
    def files(self) -> "Files":
        return Files(self.children)

    @property
    def is_directory(self) -> bool:
        return self.file_type is FileType.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.file_type is FileType.FILE

    @property
    def length(self) -> Optional[int]:
        return self.data.length if self.data else None

    @property
    def offset(self) -> Optional[int]:
        return self.data.offset if self.data else None

    @property
    def size(self) -> Optional[int]:
        return self.data.size if self.data else None

    def to_dict(self, recursive: bool = False) -> dict:
        result = {
            "id": self.id,
            "name": self.name,
            "type": self.type_text,
            "user": self.user,
            "group": self.group,
            "uid": self.uid,
            "gid": self.gid,
            "deviceno": self.device_number,
            "inode": self.inode,
            "mode": self.mode,
            "ctime": self.ctime,
            "mtime": self.mtime,
            "atime": self.atime,
            "data": self.data.to_dict() if self.data else None,
        }
        if not recursive:
            return result

        result["children"] = []
        stack = [(self, result)]
        while stack:
            entry, info = stack.pop()
            for child in entry.children:
                child_info = child.to_dict()
                child_info["children"] = []
                info["children"].append(child_info)
                stack.append((child, child_info))
        return result


class Files:
    """One level of the entry tree, in document order.

    Iterating always starts again from the first entry.
    """

    def __init__(self, entries: Sequence[FileEntry] = ()):
        self._entries = tuple(entries)

    def __iter__(self) -> Iterator[FileEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> FileEntry:
        return self._entries[index]

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"Files({len(self._entries)} entries)"

    def walk(self, parent: str = "") -> Iterator[Tuple[str, FileEntry]]:
        """Yield (path, entry) for every entry below this level, pre-order."""
        # (path, remaining entries) for each open level
        stack = [(parent, iter(self))]
        while stack:
            level_path, entries = stack[-1]
            entry = next(entries, None)
            if entry is None:
                stack.pop()
                continue
            path = join_entry_path(level_path, entry)
            yield path, entry
            stack.append((path, iter(entry.files)))

    def find(self, path: Union[str, PurePosixPath]) -> Optional[FileEntry]:
        return find_entry(self, path)


def join_entry_path(parent: str, entry: FileEntry) -> str:
    """Append an entry's name to a path. Unnamed entries add no segment."""
    if not entry.name:
        return parent
    return f"{parent}/{entry.name}" if parent else entry.name


def recurse(files: Files, visit: Callable[[str, FileEntry], None], parent: str = "") -> None:
    """Call ``visit(path, entry)`` for every entry, parents before children."""
    for path, entry in files.walk(parent):
        visit(path, entry)


def find_entry(files: Files, path: Union[str, PurePosixPath]) -> Optional[FileEntry]:
    """Resolve a slash-separated path one component at a time.

    Returns None when any component has no match. Names are compared
    exactly; "." and ".." have no special meaning.
    """
    components = [part for part in str(path).split("/") if part]
    if not components:
        return None

    level = files
    entry = None
    for component in components:
        entry = next((candidate for candidate in level if candidate.name == component), None)
        if entry is None:
            return None
        level = entry.files
    return entry


class XARToc:
    """Decoded table of contents."""

    def __init__(
        self,
        creation_time: datetime,
        checksum_type: str,
        checksum_offset: int,
        checksum_size: int,
        files: Files,
        xml_text: str = "",
    ):
        self.creation_time = creation_time
        self.checksum_type = checksum_type
        self.checksum_offset = checksum_offset
        self.checksum_size = checksum_size
        self.files = files
        self.xml_text = xml_text

    @classmethod
    def from_stream(
        cls, source: Union[bytes, BinaryIO], expected_length: int = 0
    ) -> "XARToc":
        return decode_toc(source, expected_length)

    def find(self, path: Union[str, PurePosixPath]) -> Optional[FileEntry]:
        return find_entry(self.files, path)

    def walk(self) -> Iterator[Tuple[str, FileEntry]]:
        return self.files.walk()

    def write(self, stream: TextIO, pretty: bool = True) -> None:
        """Write the TOC XML, verbatim or re-indented."""
        if not pretty:
            stream.write(self.xml_text)
            return

        root = SafeElementTree.fromstring(self.xml_text.encode("utf-8"))
        try:
            ElementTree.indent(root, space="  ")
            body = ElementTree.tostring(root, encoding="unicode")
        except RecursionError:
            logger.warning("TOC is nested too deeply to re-indent, writing it verbatim")
            stream.write(self.xml_text)
            return

        stream.write(XML_DECLARATION)
        stream.write("\n")
        stream.write(body)
        stream.write("\n")

    def to_dict(self) -> dict:
        return {
            "creation_time": self.creation_time.isoformat(),
            "checksum_type": self.checksum_type,
            "checksum_offset": self.checksum_offset,
            "checksum_size": self.checksum_size,
            "files": [entry.to_dict(recursive=True) for entry in self.files],
        }

    def __str__(self) -> str:
        return "\n".join(
            [
                f"creation-time   {self.creation_time.isoformat()}",
                f"checksum-kind   {self.checksum_type}",
                f"checksum-offset {self.checksum_offset}",
                f"checksum-size   {self.checksum_size}",
            ]
        )

    def __repr__(self) -> str:
        return (
            f"XARToc(created={self.creation_time.isoformat()}, "
            f"checksum={self.checksum_type}, files={len(self.files)})"
        )


def decode_toc(
    source: Union[bytes, BinaryIO],
    expected_length: int,
    compressed_length: Optional[int] = None,
) -> XARToc:
    """Decompress and decode a TOC positioned at the start of ``source``.

    ``expected_length`` (the header's uncompressed length) and
    ``compressed_length`` are only compared against what was actually
    read; a mismatch is logged, never fatal.
    """
    stream = BytesIO(source) if isinstance(source, (bytes, bytearray)) else source

    raw = _inflate(stream, compressed_length)
    if expected_length and len(raw) != expected_length:
        logger.warning(
            "TOC decompressed to %d bytes, header says %d", len(raw), expected_length
        )

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidUtf8Error(f"TOC is not valid UTF-8: {e}") from e

    try:
        root = SafeElementTree.fromstring(raw)
    except (ElementTree.ParseError, defusedxml.DefusedXmlException) as e:
        raise TocParseError(f"TOC is not valid XML: {e}") from e

    toc = _decode_toc_element(root, text)
    logger.debug("Decoded TOC with %d top-level entries", len(toc.files))
    return toc


def _inflate(stream: BinaryIO, compressed_length: Optional[int]) -> bytes:
    """Decompress one zlib stream, stopping at its logical end."""
    decompressor = zlib.decompressobj()
    output = bytearray()
    consumed = 0

    while not decompressor.eof:
        # Prefer the declared length, but keep going if zlib wants more.
        remaining = (compressed_length or 0) - consumed
        chunk = stream.read(min(remaining, _CHUNK_SIZE) if remaining > 0 else _CHUNK_SIZE)
        if not chunk:
            raise DecompressionError("TOC zlib stream ended unexpectedly")
        consumed += len(chunk)
        try:
            output += decompressor.decompress(chunk)
        except zlib.error as e:
            raise DecompressionError(f"Cannot decompress TOC: {e}") from e

    unused = len(decompressor.unused_data)
    consumed -= unused
    if unused and stream.seekable():
        stream.seek(-unused, 1)

    if compressed_length is not None and consumed != compressed_length:
        logger.warning(
            "TOC used %d compressed bytes, header says %d", consumed, compressed_length
        )
    return bytes(output)


def _decode_toc_element(root: ElementTree.Element, text: str) -> XARToc:
    toc = root if root.tag == "toc" else root.find("toc")
    if toc is None:
        raise TocElementMissingError()

    creation_time = _parse_creation_time(toc)

    checksum = toc.find("checksum")
    if checksum is None:
        raise ChecksumElementMissingError()
    checksum_type = checksum.get("style")
    if checksum_type is None:
        raise ChecksumTypeMissingError()

    offset_text = _child_text(checksum, "offset")
    checksum_offset = _parse_unsigned(offset_text)
    if checksum_offset is None:
        raise ChecksumOffsetInvalidError(offset_text)

    size_text = _child_text(checksum, "size")
    checksum_size = _parse_unsigned(size_text)
    if checksum_size is None:
        raise ChecksumSizeInvalidError(size_text)

    return XARToc(
        creation_time=creation_time,
        checksum_type=checksum_type,
        checksum_offset=checksum_offset,
        checksum_size=checksum_size,
        files=Files([_decode_file(child) for child in toc if child.tag == "file"]),
        xml_text=text,
    )


def _parse_creation_time(toc: ElementTree.Element) -> datetime:
    text = _child_text(toc, "creation-time")
    if text is None or not text.strip():
        raise CreationTimeMissingError()
    text = text.strip()

    # Some writers append a UTC designator.
    value = text[:-1] if text.endswith("Z") else text
    try:
        return datetime.strptime(value, CREATION_TIME_FORMAT)
    except ValueError as e:
        raise CreationTimeParseError(text) from e


def _element_text(element: ElementTree.Element) -> Optional[str]:
    """Text content, verbatim. Empty elements have none."""
    return element.text or None


def _child_text(element: ElementTree.Element, tag: str) -> Optional[str]:
    child = element.find(tag)
    return _element_text(child) if child is not None else None


def _parse_unsigned(text: Optional[str]) -> Optional[int]:
    if text is None:
        return None
    text = text.strip()
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


def _unsigned_field(
    element: Optional[ElementTree.Element], field_name: str, file_id: int
) -> Optional[int]:
    """Absent is fine; present but empty or malformed is an error."""
    if element is None:
        return None
    text = _element_text(element) or ""
    value = _parse_unsigned(text)
    if value is None:
        raise InvalidFieldError(field_name, text, file_id)
    return value


def _text_handler(attr: str):
    def handler(element: ElementTree.Element, file_id: int):
        return attr, _element_text(element)

    return handler


def _unsigned_handler(attr: str):
    def handler(element: ElementTree.Element, file_id: int):
        return attr, _unsigned_field(element, element.tag, file_id)

    return handler


def _checksum(element: Optional[ElementTree.Element]) -> Optional[EntryChecksum]:
    if element is None:
        return None
    return EntryChecksum(style=element.get("style"), value=_element_text(element))


def _data_handler(element: ElementTree.Element, file_id: int):
    encoding = element.find("encoding")
    data = FileData(
        length=_unsigned_field(element.find("length"), "length", file_id),
        offset=_unsigned_field(element.find("offset"), "offset", file_id),
        size=_unsigned_field(element.find("size"), "size", file_id),
        encoding=encoding.get("style") if encoding is not None else None,
        extracted_checksum=_checksum(element.find("extracted-checksum")),
        archived_checksum=_checksum(element.find("archived-checksum")),
    )
    return "data", data


# <file> child element -> handler returning (FileEntry attribute, value)
_FILE_ELEMENT_HANDLERS: Dict[str, Callable] = {
    "name": _text_handler("name"),
    "type": _text_handler("type_text"),
    "user": _text_handler("user"),
    "group": _text_handler("group"),
    "uid": _unsigned_handler("uid"),
    "gid": _unsigned_handler("gid"),
    "inode": _unsigned_handler("inode"),
    "deviceno": _unsigned_handler("device_number"),
    "mode": _text_handler("mode"),
    "ctime": _text_handler("ctime"),
    "mtime": _text_handler("mtime"),
    "atime": _text_handler("atime"),
    "data": _data_handler,
}


class _FileBuilder:
    """A <file> element whose attributes are decoded and whose children are pending."""

    def __init__(self, element: ElementTree.Element):
        id_text = element.get("id")
        self.file_id = _parse_unsigned(id_text)
        if self.file_id is None:
            raise FileIdMissingError(id_text)

        self.attrs = {}
        for child in element:
            handler = _FILE_ELEMENT_HANDLERS.get(child.tag)
            if handler is None:
                continue
            attr, value = handler(child, self.file_id)
            # First occurrence wins
            self.attrs.setdefault(attr, value)

        self.pending = (child for child in element if child.tag == "file")
        self.children: List[FileEntry] = []

    def build(self) -> FileEntry:
        return FileEntry(
            id=self.file_id,
            file_type=FileType.from_text(self.attrs.get("type_text")),
            children=tuple(self.children),
            **self.attrs,
        )


def _decode_file(element: ElementTree.Element) -> FileEntry:
    """Decode a <file> subtree, children first, with an explicit stack."""
    stack = [_FileBuilder(element)]
    while True:
        builder = stack[-1]
        child = next(builder.pending, None)
        if child is not None:
            stack.append(_FileBuilder(child))
            continue

        stack.pop()
        entry = builder.build()
        if not stack:
            return entry
        stack[-1].children.append(entry)
