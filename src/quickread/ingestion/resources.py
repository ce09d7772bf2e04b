"""Opaque display handles for embedded resources (images)."""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
import threading
import uuid

HANDLE_PREFIX = "quickread-resource:"


@dataclass(slots=True)
class StoredResource:
    media_type: str
    data: bytes = field(repr=False)


class ResourceStore:
    """Two-phase owner of resource payloads.

    Handles are acquired while a document is parsed and stay valid until the
    caller releases them when the document is discarded.
    """

    def __init__(self) -> None:
        self._resources: dict[str, StoredResource] = {}
        self._lock = threading.Lock()

    def acquire(self, data: bytes, media_type: str) -> str:
        handle = f"{HANDLE_PREFIX}{uuid.uuid4().hex}"
        with self._lock:
            self._resources[handle] = StoredResource(media_type=media_type, data=bytes(data))
        return handle

    def resolve(self, handle: str) -> StoredResource | None:
        with self._lock:
            return self._resources.get(handle)

    def release(self, handle: str) -> bool:
        with self._lock:
            return self._resources.pop(handle, None) is not None

    def release_all(self, handles: list[str]) -> int:
        return sum(1 for handle in set(handles) if self.release(handle))

    def release_untracked(self, acquired: Iterable[str], tracked: Iterable[str]) -> int:
        """Release handles acquired during a parse that no preview unit kept."""

        kept = set(tracked)
        return self.release_all([handle for handle in acquired if handle not in kept])

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._resources

    def __len__(self) -> int:
        with self._lock:
            return len(self._resources)


@contextmanager
def acquisition_cache(store: ResourceStore | None) -> Iterator[dict[Hashable, str]]:
    """Per-parse cache of acquired handles, all released if the parse fails."""

    cache: dict[Hashable, str] = {}
    try:
        yield cache
    except Exception:
        if store is not None:
            store.release_all(list(cache.values()))
        raise
