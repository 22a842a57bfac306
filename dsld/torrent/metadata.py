import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from .bencode import BencodeValue, MalformedBencode, find_top_level_section, loads


_L = logging.getLogger(__name__)


@dataclass(frozen=True)
class TorrentMetadata:
    """What is needed to rebuild a magnet link from a torrent file"""

    info_section: memoryview
    display_name: str = ""
    trackers: list[str] = field(default_factory=list)


def extract(buffer: bytes) -> TorrentMetadata | None:
    """
    Locates the info section and reads the optional display fields.

    Returns None if the root dictionary has no info section. Structural errors
    found while locating the info section are raised as MalformedBencode,
    errors while reading the display fields are not.
    """
    if not buffer:
        return None

    section = find_top_level_section(buffer, "info")
    if section is None:
        return None
    info_section = memoryview(buffer)[section.start : section.end]

    try:
        root = loads(buffer)
    except MalformedBencode as e:
        _L.debug(f"cannot read torrent display fields: {e}")
        return TorrentMetadata(info_section=info_section)

    if not isinstance(root, dict):
        return TorrentMetadata(info_section=info_section)

    return TorrentMetadata(
        info_section=info_section,
        display_name=_get_display_name(root.get(b"info")),
        trackers=_get_trackers(root),
    )


def _get_display_name(info: BencodeValue | None) -> str:
    if not isinstance(info, dict):
        return ""
    name = info.get(b"name.utf-8") or info.get(b"name")
    return _to_text(name).strip()


def _get_trackers(root: dict[bytes, BencodeValue]) -> list[str]:
    raw = _flatten([root.get(b"announce"), root.get(b"announce-list")])
    trackers = (_to_text(_).strip() for _ in raw)
    # dict keeps the first-seen order
    return list(dict.fromkeys(_ for _ in trackers if _))


def _flatten(value: object) -> Iterator[bytes]:
    match value:
        case bytes():
            yield value
        case list():
            for item in value:
                yield from _flatten(item)


def _to_text(value: BencodeValue | None) -> str:
    if not isinstance(value, bytes):
        return ""
    return value.decode("utf-8", errors="replace")
