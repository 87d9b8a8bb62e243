"""XAR Toolkit - Inspect XAR archives without extracting them."""

__version__ = "0.1.0"

from .errors import XARError
from .xar import Archive, XARReader, decode_header, decode_toc, validate_header

__all__ = ["Archive", "XARError", "XARReader", "decode_header", "decode_toc", "validate_header"]
