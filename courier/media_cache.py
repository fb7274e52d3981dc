"""In-memory map from local media identity to the file id the Bot API issued.

Once a file has been uploaded the API hands back a ``file_id`` that can be
sent again without re-uploading the bytes.  :class:`MediaCache` remembers that
id under the media's local cache key (path, buffer digest or original token).

Entries are insert-once: a second :meth:`MediaCache.store` for a key that is
already present is a no-op.  Nothing is evicted or persisted; the cache lives
as long as the process (or the client that owns it).
"""

from __future__ import annotations

from typing import Dict, Optional

from courier.logger import CourierLogger

logger = CourierLogger.get_logger()


class MediaCache:
    """Insert-once ``cache_key -> file_id`` mapping."""

    def __init__(self) -> None:
        self._file_ids: Dict[str, str] = {}

    def lookup(self, key: str) -> Optional[str]:
        """Return the cached file id for *key*, or ``None``."""
        return self._file_ids.get(key)

    def has(self, key: str) -> bool:
        return key in self._file_ids

    def store(self, key: str, file_id: str) -> bool:
        """Remember *file_id* for *key* unless *key* is already cached.

        Returns ``True`` when the entry was inserted, ``False`` when an
        earlier id was kept.
        """
        if key in self._file_ids:
            return False
        self._file_ids[key] = file_id
        logger.debug("Media file id cached", extra={"cache_key": key, "file_id": file_id})
        return True

    def __contains__(self, key: object) -> bool:
        return key in self._file_ids

    def __len__(self) -> int:
        return len(self._file_ids)


_default_cache: MediaCache | None = None


def get_default_cache() -> MediaCache:
    """Return (and lazily create) the process-wide cache."""
    global _default_cache
    if _default_cache is None:
        _default_cache = MediaCache()
    return _default_cache
