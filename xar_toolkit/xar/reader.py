"""XAR archive reader."""

import logging
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union

from .header import XARHeader, decode_header, validate_header
from .toc import FileEntry, Files, XARToc, decode_toc

logger = logging.getLogger(__name__)


class Archive:
    """A decoded header paired with its decoded TOC."""

    def __init__(self, header: XARHeader, toc: XARToc):
        self.header = header
        self.toc = toc

    @classmethod
    def from_stream(cls, stream: BinaryIO, validate: bool = True) -> "Archive":
        """Decode an archive from a stream positioned at its first byte."""
        header = decode_header(stream)
        if validate:
            validate_header(header)
        logger.debug(
            "XAR header: size=%d version=%d toc=%d/%d checksum=%s",
            header.size,
            header.version,
            header.toc_length_compressed,
            header.toc_length_uncompressed,
            header.checksum_algorithm.name,
        )

        toc = decode_toc(
            stream,
            header.toc_length_uncompressed,
            compressed_length=header.toc_length_compressed,
        )
        return cls(header, toc)

    @classmethod
    def from_bytes(cls, data: bytes, validate: bool = True) -> "Archive":
        return cls.from_stream(BytesIO(data), validate=validate)

    @classmethod
    def from_file(cls, path: Union[str, Path], validate: bool = True) -> "Archive":
        with open(path, "rb") as f:
            return cls.from_stream(f, validate=validate)

    @property
    def files(self) -> Files:
        return self.toc.files

    @property
    def heap_offset(self) -> int:
        """Archive offset where the heap starts."""
        return self.header.size + self.header.toc_length_compressed

    def find(self, path: str) -> Optional[FileEntry]:
        return self.toc.find(path)


class XARReader:
    """Reader for XAR archive files."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._archive: Optional[Archive] = None

    def __enter__(self) -> "XARReader":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def open(self) -> None:
        """Read and decode the header and TOC."""
        self._archive = Archive.from_file(self.path)

    def close(self) -> None:
        self._archive = None

    @property
    def archive(self) -> Archive:
        if not self._archive:
            raise RuntimeError("Archive not opened")
        return self._archive

    @property
    def header(self) -> XARHeader:
        return self.archive.header

    @property
    def toc(self) -> XARToc:
        return self.archive.toc

    @property
    def files(self) -> Files:
        return self.archive.files

    def walk(self, path: Optional[str] = None) -> Iterator[Tuple[str, FileEntry]]:
        """Yield (path, entry) pairs below ``path`` (or the root), pre-order."""
        if not path:
            return self.files.walk()
        entry = self.get_entry_by_name(path)
        if entry is None:
            return iter(())
        return entry.files.walk(path.strip("/"))

    def list_files(self, path: Optional[str] = None, recursive: bool = False) -> List[str]:
        """List entry paths, either one level or the whole subtree."""
        if recursive:
            return [entry_path for entry_path, _ in self.walk(path)]

        if path:
            entry = self.get_entry_by_name(path)
            level = entry.files if entry else Files()
        else:
            level = self.files
        return [entry.name for entry in level if entry.name]

    def get_entry_by_name(self, filename: str) -> Optional[FileEntry]:
        """Find an entry by its slash-separated path."""
        return self.archive.find(filename)
