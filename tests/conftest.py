"""Shared fixtures for XAR tests."""

import struct
import zlib

import pytest

TOC_XML = """<?xml version="1.0" encoding="UTF-8"?>
<xar>
 <toc>
  <checksum style="sha1">
   <offset>0</offset>
   <size>20</size>
  </checksum>
  <creation-time>2020-01-02T03:04:05</creation-time>
  <file id="1">
   <name>docs</name>
   <type>directory</type>
   <mode>0755</mode>
   <file id="2">
    <name>readme.txt</name>
    <type>file</type>
    <user>alice</user>
    <data>
     <length>11</length>
     <offset>20</offset>
     <size>11</size>
     <encoding style="application/octet-stream"/>
    </data>
   </file>
  </file>
  <file id="3">
   <name>null</name>
   <type>character special</type>
   <deviceno>3</deviceno>
  </file>
 </toc>
</xar>
"""


def build_archive(
    toc_xml: str = TOC_XML,
    version: int = 1,
    checksum: int = 1,
    extra: bytes = b"",
    heap: bytes = b"\x00" * 20 + b"hello world",
) -> bytes:
    """Build a complete XAR archive in memory."""
    raw = toc_xml.encode("utf-8")
    compressed = zlib.compress(raw)
    header = struct.pack(
        ">IHHQQI", 0x78617221, 28 + len(extra), version, len(compressed), len(raw), checksum
    )
    return header + extra + compressed + heap


@pytest.fixture
def make_archive():
    """Factory for in-memory archives."""
    return build_archive


@pytest.fixture
def archive_path(tmp_path):
    path = tmp_path / "test.xar"
    path.write_bytes(build_archive())
    return path
