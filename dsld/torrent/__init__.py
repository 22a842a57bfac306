"""
Torrent file helpers.

This package provides:
- A bencode scanner and decoder
- Torrent metadata extraction
- Magnet link construction
"""

from .bencode import (
    BencodeValue,
    ByteRange,
    MalformedBencode,
    decode,
    find_top_level_section,
    loads,
    skip_value,
)
from .magnet import build_magnet, extract_magnets, info_hash, magnet_from_torrent
from .metadata import TorrentMetadata, extract


__all__ = [
    # Codec
    "BencodeValue",
    "ByteRange",
    "MalformedBencode",
    "decode",
    "find_top_level_section",
    "loads",
    "skip_value",
    # Metadata
    "TorrentMetadata",
    "extract",
    # Magnet
    "build_magnet",
    "extract_magnets",
    "info_hash",
    "magnet_from_torrent",
]
