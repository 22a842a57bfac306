import asyncio
import re
import secrets
import time
import unicodedata
from contextlib import contextmanager
from pathlib import Path


_TORRENT_SUFFIX = ".torrent"


def sanitize_torrent_filename(name: str | None) -> str:
    """
    Returns a plain ASCII file name which is safe in paths and headers.
    """
    base = name if isinstance(name, str) else ""
    if base.lower().endswith(_TORRENT_SUFFIX):
        base = base[: -len(_TORRENT_SUFFIX)]

    base = unicodedata.normalize("NFKD", base)
    base = re.sub(r"[^\x20-\x7e]", "", base)
    base = re.sub(r"[^A-Za-z0-9._-]", "_", base)
    base = re.sub(r"_+", "_", base)
    base = base.strip("_")

    if not base:
        base = f"upload_{_now_ms()}"
    return f"{base}{_TORRENT_SUFFIX}"


async def enqueue_to_watch_dir(watch_dir: Path, filename: str, data: bytes) -> Path:
    """
    Puts a torrent file into the folder watched by the remote.

    The file is written under a temporary name first and renamed when
    complete, so the watcher never sees a partial file.
    """
    if not data:
        raise ValueError("empty torrent data")
    safe_name = sanitize_torrent_filename(filename)
    target_name = f"{_now_ms()}_{secrets.token_hex(3)}_{safe_name}"
    return await asyncio.to_thread(_write_atomically, watch_dir, target_name, data)


def _write_atomically(watch_dir: Path, target_name: str, data: bytes) -> Path:
    watch_dir.mkdir(parents=True, exist_ok=True)
    target_path = watch_dir / target_name
    with partial_file(target_path.with_name(f"{target_name}.part")) as tmp_path:
        tmp_path.write_bytes(data)
        tmp_path.rename(target_path)
    return target_path


@contextmanager
def partial_file(path: Path):
    try:
        yield path
    except BaseException:
        path.unlink(missing_ok=True)
        raise


def _now_ms() -> int:
    return int(time.time() * 1000)
