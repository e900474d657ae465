"""
File-backed Local Cache

One JSON file per key inside a cache directory. Writes go through a
temporary file and an atomic rename, so a crash mid-write leaves either
the previous snapshot or the new one, never a truncated file.
"""

import re
from pathlib import Path
from typing import Optional

from fluxcash.services.cache.interface import CacheError, LocalCacheInterface


_UNSAFE = re.compile(r"[^A-Za-z0-9_.@-]")


class FileCache(LocalCacheInterface):

    SUFFIX = ".json"

    def __init__(self, directory: Path):
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not key or _UNSAFE.search(key) or key.startswith("."):
            raise CacheError(f"Invalid cache key: {key!r}")
        return self._directory / f"{key}{self.SUFFIX}"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise CacheError(f"Failed to read cache entry {key}: {e}")

    def write(self, key: str, blob: str) -> None:
        path = self._path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(blob, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise CacheError(f"Failed to write cache entry {key}: {e}")

    def clear(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise CacheError(f"Failed to clear cache entry {key}: {e}")

    def keys(self) -> list[str]:
        if not self._directory.exists():
            return []
        return sorted(p.stem for p in self._directory.glob(f"*{self.SUFFIX}"))
