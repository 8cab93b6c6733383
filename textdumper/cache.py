"""
Textdumper Metadata Cache

Memoizes TypeMetadata per type. Keys are type identity, entries live as long as the cache,
there is no invalidation: register shadow metadata before the first dump of a type, or use
a separate registry and cache.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import threading

from typing import Iterator

# Local ----------------------------------------------------------------------------------------------------------------
from .introspect import TypeMetadata
from .registry import MetadataRegistry
from .utils import fmt_type


# Classes --------------------------------------------------------------------------------------------------------------

class MetadataCache:
    """
    Thread-safe, build-once cache of TypeMetadata.

    Lookups of cached types take no lock. A miss takes the lock, checks again and builds,
    so every type is built at most once even under concurrent first use.
    """

    def __init__(self, registry: MetadataRegistry | None = None):
        if registry is not None and not isinstance(registry, MetadataRegistry):
            raise TypeError(f"registry must be a MetadataRegistry instance, but found {fmt_type(registry)}")
        self._registry = registry if registry is not None else MetadataRegistry()
        self._lock = threading.Lock()
        self._entries: dict[type, TypeMetadata] = {}
        self._builds = 0

    @property
    def registry(self) -> MetadataRegistry:
        return self._registry

    @property
    def builds(self) -> int:
        """Number of metadata builds performed, one per distinct type."""
        return self._builds

    def get_or_build(self, cls: type) -> TypeMetadata:
        """
        Cached metadata of cls, built on first request.

        Raises:
            TypeError: If cls is not a type.
        """
        metadata = self._entries.get(cls)
        if metadata is not None:
            return metadata
        if not isinstance(cls, type):
            raise TypeError(f"cls must be a type, but found {fmt_type(cls)}")

        with self._lock:
            metadata = self._entries.get(cls)
            if metadata is None:
                metadata = self._registry.build(cls)
                self._entries[cls] = metadata
                self._builds += 1
        return metadata

    def get(self, cls: type) -> TypeMetadata | None:
        return self._entries.get(cls)

    def snapshot(self) -> dict[type, TypeMetadata]:
        with self._lock:
            return dict(self._entries)

    def __contains__(self, cls: object) -> bool:
        return cls in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[type]:
        return iter(self.snapshot())
