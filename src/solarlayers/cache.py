"""Layer result cache: key derivation and a JSON file implementation."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

from solarlayers.raster.models import Location

LOGGER = logging.getLogger(__name__)

CACHE_VERSION = 1


class LayerCache(Protocol):
    """Key-value store for serialized layer results."""

    def get(self, key: str) -> dict[str, Any] | None:
        ...

    def put(self, key: str, value: Mapping[str, Any]) -> None:
        ...


def cache_key(
    prefix: str,
    layer_type: str,
    location: Location,
    options: Mapping[str, Any],
) -> str:
    """Return a stable cache key for a layer request."""
    relevant = {key: value for key, value in sorted(options.items()) if value is not None}
    digest = hashlib.sha256(json.dumps(relevant, sort_keys=True).encode("utf-8")).hexdigest()
    return (
        f"{prefix}{layer_type}_{location.latitude:.5f}_{location.longitude:.5f}_{digest[:16]}"
    )


@dataclass(frozen=True)
class CacheEntry:
    """Cached payload with its write timestamp."""

    version: int
    timestamp: float
    value: dict[str, Any]

    def expired(self, now: float, lifetime: float) -> bool:
        return now - self.timestamp > lifetime

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "timestamp": self.timestamp, "value": self.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CacheEntry":
        return cls(
            version=int(data["version"]),
            timestamp=float(data["timestamp"]),
            value=dict(data["value"]),
        )


class JsonFileCache:
    """Store each cache entry as a JSON file under a directory."""

    def __init__(
        self,
        directory: Path,
        *,
        expiration_seconds: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory)
        self.expiration_seconds = expiration_seconds
        self._clock = clock

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def get(self, key: str) -> dict[str, Any] | None:
        """Return the cached value, or None when missing, stale, or unreadable."""
        path = self._path(key)
        if not path.exists():
            return None
        try:
            entry = CacheEntry.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError):
            LOGGER.debug("Ignoring unreadable cache entry %s", path)
            return None
        if entry.version != CACHE_VERSION or entry.expired(self._clock(), self.expiration_seconds):
            return None
        return entry.value

    def put(self, key: str, value: Mapping[str, Any]) -> None:
        """Write a value with the current timestamp."""
        self.directory.mkdir(parents=True, exist_ok=True)
        entry = CacheEntry(version=CACHE_VERSION, timestamp=self._clock(), value=dict(value))
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(entry.to_dict()), encoding="utf-8")
        tmp_path.replace(path)

    def clear(self) -> int:
        """Delete every cache file and return the number removed."""
        if not self.directory.exists():
            return 0
        removed = 0
        for path in self.directory.glob("*.json"):
            path.unlink()
            removed += 1
        return removed
