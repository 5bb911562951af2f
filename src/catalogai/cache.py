"""
Time-bounded cache of analysis results.

Keys are content fingerprints: two contexts describing the same packages,
workspace and analysis type for the same provider share a key regardless of
object identity. Entries expire lazily on read. With persistence enabled,
each entry is also written to its own JSON file so results survive process
restarts.

catalogai/src/catalogai/cache.py
"""

import copy
import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from .config import CacheConfig
from .models import AnalysisContext, AnalysisResult, CacheEntry, CacheStats

logger = logging.getLogger(__name__)

__all__ = ["AnalysisCache", "make_cache_key"]

DEFAULT_CACHE_DIR = Path.home() / ".catalogai" / "cache" / "ai-analysis"


def make_cache_key(context: AnalysisContext, provider: str) -> str:
    """Deterministic fingerprint of (provider, analysis type, workspace, ordered packages)."""
    document = {
        "provider": provider,
        "analysisType": context.analysis_type.value,
        "workspace": {"name": context.workspace_info.name, "path": context.workspace_info.path},
        "packages": [
            f"{p.name}@{p.current_version}->{p.target_version}:{p.update_type.value}" for p in context.packages
        ],
    }
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class AnalysisCache:
    """Thread-safe result cache with optional on-disk persistence."""

    def __init__(
        self,
        ttl: float = 3600,
        max_entries: int = 500,
        persist: bool = False,
        cache_dir: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self.persist = persist
        self.cache_dir = Path(cache_dir) if cache_dir else DEFAULT_CACHE_DIR
        self._clock = clock

        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._loaded = not persist
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: CacheConfig, clock: Callable[[], float] = time.time) -> "AnalysisCache":
        return cls(
            ttl=config.ttl,
            max_entries=config.max_entries,
            persist=config.persist,
            cache_dir=config.cache_dir,
            clock=clock,
        )

    def get(self, context: AnalysisContext, provider: str) -> Optional[AnalysisResult]:
        """Cached result for ``context`` from ``provider``, counting a hit or miss."""
        key = make_cache_key(context, provider)
        with self._lock:
            self._ensure_loaded()
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                logger.debug(f"Cache entry {key[:12]} expired")
                self._remove(key)
                entry = None

            if entry is None:
                self._misses += 1
                return None

            self._hits += 1
            return copy.deepcopy(entry.value)

    def set(
        self, context: AnalysisContext, provider: str, result: AnalysisResult, ttl: Optional[float] = None
    ) -> None:
        key = make_cache_key(context, provider)
        entry = CacheEntry(
            key=key,
            value=copy.deepcopy(result),
            created_at=self._clock(),
            ttl=self.ttl if ttl is None else ttl,
            packages=[p.name for p in context.packages],
        )
        with self._lock:
            self._ensure_loaded()
            self._entries.pop(key, None)
            self._entries[key] = entry
            self._evict()
            if self.persist:
                self._write(entry)

    def invalidate_for_packages(self, names: Iterable[str]) -> int:
        """Remove every entry whose package list includes any of ``names``."""
        wanted = set(names)
        with self._lock:
            self._ensure_loaded()
            doomed = [key for key, entry in self._entries.items() if wanted.intersection(entry.packages)]
            for key in doomed:
                self._remove(key)
        if doomed:
            logger.debug(f"Invalidated {len(doomed)} cache entries for {', '.join(sorted(wanted))}")
        return len(doomed)

    def clear(self) -> None:
        """Drop all entries (including persisted ones) and reset statistics."""
        with self._lock:
            self._ensure_loaded()
            for key in list(self._entries):
                self._remove(key)
            self._hits = 0
            self._misses = 0

    def get_stats(self) -> CacheStats:
        with self._lock:
            self._ensure_loaded()
            total = self._hits + self._misses
            created = [entry.created_at for entry in self._entries.values()]
            return CacheStats(
                total_entries=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / total if total else 0.0,
                miss_rate=self._misses / total if total else 0.0,
                oldest_entry=min(created) if created else None,
                newest_entry=max(created) if created else None,
            )

    def __len__(self) -> int:
        with self._lock:
            self._ensure_loaded()
            return len(self._entries)

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _evict(self) -> None:
        while len(self._entries) > self.max_entries:
            oldest = min(self._entries.values(), key=lambda e: e.created_at)
            logger.debug(f"Evicting cache entry {oldest.key[:12]}")
            self._remove(oldest.key)

    def _remove(self, key: str) -> None:
        self._entries.pop(key, None)
        if self.persist:
            path = self._path_for(key)
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to remove cache file {path}: {e}")

    def _path_for(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def _write(self, entry: CacheEntry) -> None:
        payload = {
            "key": entry.key,
            "createdAt": entry.created_at,
            "ttl": entry.ttl,
            "packages": entry.packages,
            "value": entry.value.to_dict(),
        }
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f)
                os.replace(tmp_path, self._path_for(entry.key))
            except BaseException:
                os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to persist cache entry {entry.key[:12]}: {e}")

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True

        if not self.cache_dir.is_dir():
            return

        now = self._clock()
        try:
            paths = sorted(self.cache_dir.glob("*.json"))
        except OSError as e:
            logger.warning(f"Failed to read cache directory {self.cache_dir}: {e}")
            return

        for path in paths:
            if path.name.startswith(".tmp-"):
                continue
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                entry = CacheEntry(
                    key=data["key"],
                    value=AnalysisResult.from_dict(data["value"]),
                    created_at=float(data["createdAt"]),
                    ttl=float(data["ttl"]),
                    packages=list(data.get("packages", [])),
                )
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.debug(f"Skipping unreadable cache file {path}: {e}")
                continue

            if entry.is_expired(now):
                self._remove(entry.key)
                continue
            self._entries[entry.key] = entry

        logger.debug(f"Loaded {len(self._entries)} cache entries from {self.cache_dir}")
        self._evict()
