"""Thread-safe, load-once resource store backed by a directory.

Each file in the directory whose extension the store accepts is a
resource; its file stem is the identifier. Resources are decoded on
first access and cached for the store's lifetime.

Concurrency: a lock guards the cache dict and a per-identifier
in-flight Future. The first caller for an uncached id performs the load
outside the lock; concurrent callers for the same id wait on its Future
and receive the same object (or the same exception). Failures are never
cached, so a later call retries the load.
"""

import os
import threading
from concurrent.futures import Future
from pathlib import Path

from loguru import logger

from .common import normalize_id
from .errors import ConfigError, ResourceKind, ResourceLoadError, ResourceNotFound


def check_directory(path: str | Path, what: str) -> Path:
    """Return path as a Path, or raise ConfigError if it isn't a readable directory."""
    directory = Path(path)
    if not directory.is_dir():
        raise ConfigError(f"{what} directory does not exist: {directory}")
    if not os.access(directory, os.R_OK | os.X_OK):
        raise ConfigError(f"{what} directory is not readable: {directory}")
    return directory


class ResourceStore:
    """Base class for the template and font stores.

    Subclasses set `kind` and `extensions` and implement _decode().
    """

    kind: ResourceKind
    extensions: frozenset[str] = frozenset()

    def __init__(self, directory: str | Path):
        self.directory = check_directory(directory, self.kind.value.capitalize())
        self._lock = threading.Lock()
        self._entries = {}
        self._pending: dict[str, Future] = {}
        self._hits = 0
        self._misses = 0
        self._loads = 0

    def __repr__(self):
        return f"{type(self).__name__}({str(self.directory)!r})"

    # ── File lookup ───────────────────────────────────────────────

    def _accepts(self, path: Path) -> bool:
        return (
            path.is_file()
            and not path.name.startswith(".")
            and path.suffix.lower().lstrip(".") in self.extensions
        )

    def _candidates(self, resource_id: str) -> list[Path]:
        # Identifiers never address anything outside the directory.
        if not resource_id or resource_id.startswith(".") or "/" in resource_id \
                or "\\" in resource_id:
            return []
        return sorted(
            p for p in self.directory.iterdir()
            if normalize_id(p.stem) == resource_id and self._accepts(p)
        )

    def find_path(self, resource_id: str) -> Path:
        """Find the single source file for a (normalized) identifier.

        Raises:
            ResourceNotFound: No file matches.
            ResourceLoadError: Several files match (e.g. foo.png and foo.jpg).
        """
        matches = self._candidates(resource_id)
        if not matches:
            raise ResourceNotFound(self.kind, resource_id)
        if len(matches) > 1:
            names = ", ".join(p.name for p in matches)
            logger.warning("Ambiguous {} '{}': {}", self.kind.value, resource_id, names)
            raise ResourceLoadError(
                self.kind, resource_id,
                ValueError(f"ambiguous name matching {len(matches)} files: {names}"),
            )
        return matches[0]

    def list_ids(self) -> list[str]:
        """Sorted identifiers of all files this store could load."""
        ids = {normalize_id(p.stem) for p in self.directory.iterdir() if self._accepts(p)}
        return sorted(ids)

    # ── Loading ───────────────────────────────────────────────────

    def _decode(self, resource_id: str, path: Path):
        raise NotImplementedError

    def _load(self, resource_id: str):
        try:
            path = self.find_path(resource_id)
        except OSError as e:
            raise ResourceLoadError(self.kind, resource_id, e) from e
        logger.debug("Loading {} '{}' from {}", self.kind.value, resource_id, path)
        with self._lock:
            self._loads += 1
        try:
            return self._decode(resource_id, path)
        except ResourceLoadError:
            raise
        except (OSError, ValueError, SyntaxError) as e:
            logger.warning("Failed to load {} '{}': {}", self.kind.value, resource_id, e)
            raise ResourceLoadError(self.kind, resource_id, e) from e

    def get_or_load(self, resource_id: str):
        """Return the cached resource, loading it on first access.

        Raises:
            ResourceNotFound: No source file for the identifier.
            ResourceLoadError: The source file could not be decoded.
        """
        key = normalize_id(resource_id)
        with self._lock:
            if key in self._entries:
                self._hits += 1
                return self._entries[key]
            future = self._pending.get(key)
            owner = future is None
            if owner:
                self._misses += 1
                future = Future()
                self._pending[key] = future

        if not owner:
            logger.debug("Waiting for in-flight load of {} '{}'", self.kind.value, key)
            return future.result()

        try:
            resource = self._load(key)
        except BaseException as e:
            with self._lock:
                del self._pending[key]
            future.set_exception(e)
            raise

        with self._lock:
            self._entries[key] = resource
            del self._pending[key]
        future.set_result(resource)
        return resource

    def preload(self, resource_id: str) -> None:
        self.get_or_load(resource_id)

    def stats(self) -> dict[str, int]:
        """Cache statistics: hits, misses, loads (decode attempts), entries."""
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "loads": self._loads,
                "entries": len(self._entries),
            }

    def clear(self) -> None:
        """Drop every cached resource (engine teardown)."""
        with self._lock:
            self._entries.clear()
