"""Binary reading and writing utilities for big-endian XAR data."""

import struct
from io import BytesIO
from typing import BinaryIO, Union

from ..errors import TruncatedInputError


class BinaryReader:
    """Helper for reading big-endian binary data from a forward-only stream."""

    def __init__(self, data: Union[bytes, BinaryIO]):
        if isinstance(data, (bytes, bytearray)):
            self._stream = BytesIO(data)
        else:
            self._stream = data

    @property
    def stream(self) -> BinaryIO:
        return self._stream

    def read(self, size: int = -1) -> bytes:
        return self._stream.read(size)

    def read_bytes(self, size: int) -> bytes:
        # Streams may return short reads before EOF, so keep reading.
        chunks = []
        remaining = size
        while remaining > 0:
            chunk = self._stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        if len(data) < size:
            raise TruncatedInputError(size, len(data))
        return data

    def read_u16(self) -> int:
        return struct.unpack(">H", self.read_bytes(2))[0]

    def read_u32(self) -> int:
        return struct.unpack(">I", self.read_bytes(4))[0]

    def read_u64(self) -> int:
        return struct.unpack(">Q", self.read_bytes(8))[0]


class BinaryWriter:
    """Helper for building big-endian binary data."""

    def __init__(self):
        self._buffer = bytearray()

    def write_bytes(self, data: bytes) -> None:
        self._buffer.extend(data)

    def write_u16(self, value: int) -> None:
        self._buffer.extend(struct.pack(">H", value))

    def write_u32(self, value: int) -> None:
        self._buffer.extend(struct.pack(">I", value))

    def write_u64(self, value: int) -> None:
        self._buffer.extend(struct.pack(">Q", value))

    def getvalue(self) -> bytes:
        return bytes(self._buffer)
