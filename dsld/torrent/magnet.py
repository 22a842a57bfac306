import hashlib
import re
from urllib.parse import quote

from .metadata import TorrentMetadata, extract


# same set as encodeURIComponent
_SAFE = "-_.!~*'()"
_MAGNET_PATTERN = re.compile(r"magnet:\?xt=urn:[^\s<>\"']+", re.I)


def info_hash(info_section: bytes | memoryview) -> str:
    return hashlib.sha1(info_section).hexdigest()


def build_magnet(
    info_section: bytes | memoryview, metadata: TorrentMetadata | None = None
) -> str | None:
    if len(info_section) == 0:
        return None

    parts = [f"xt=urn:btih:{info_hash(info_section)}"]
    if metadata:
        display_name = metadata.display_name.strip()
        if display_name:
            parts.append(f"dn={quote(display_name, safe=_SAFE)}")
        for tracker in metadata.trackers:
            tracker = tracker.strip()
            if tracker:
                parts.append(f"tr={quote(tracker, safe=_SAFE)}")
    return "magnet:?" + "&".join(parts)


def magnet_from_torrent(buffer: bytes) -> str | None:
    metadata = extract(buffer)
    if not metadata:
        return None
    return build_magnet(metadata.info_section, metadata)


def extract_magnets(text: str | None) -> list[str]:
    """
    Finds magnet links in free text, without duplicates.
    """
    if not text:
        return []
    found = _MAGNET_PATTERN.findall(text)
    return list(dict.fromkeys(found))
