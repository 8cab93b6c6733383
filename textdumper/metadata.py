"""
Built-in shadow metadata for stdlib types, and the process-wide registry and cache.

Shadow descriptor properties are computed members: their getter runs with the dumped
instance as self.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import functools
import threading

# Local ----------------------------------------------------------------------------------------------------------------
from .annotations import Dump, ShouldDump, dump
from .cache import MetadataCache
from .registry import MetadataRegistry

__all__ = [
    "ExceptionShadow",
    "OSErrorShadow",
    "PartialShadow",
    "ThreadShadow",
    "default_cache",
    "default_registry",
    "register_builtin_metadata",
]


# Shadow Descriptors ---------------------------------------------------------------------------------------------------

class ExceptionShadow:
    @dump(order=0)
    @property
    def message(self) -> str:
        return str(self)

    __cause__ = Dump(order=1, include_nulls=ShouldDump.SKIP)
    __notes__ = Dump(order=2, include_nulls=ShouldDump.SKIP)


class OSErrorShadow(ExceptionShadow):
    errno = Dump(include_nulls=ShouldDump.SKIP)
    strerror = Dump(include_nulls=ShouldDump.SKIP)
    filename = Dump(include_nulls=ShouldDump.SKIP)
    filename2 = Dump(include_nulls=ShouldDump.SKIP)


class ThreadShadow:
    name = Dump(order=0)
    ident = Dump()
    daemon = Dump()

    @dump
    @property
    def alive(self) -> bool:
        return self.is_alive()


class PartialShadow:
    func = Dump(order=0)
    args = Dump()
    keywords = Dump()


# Methods --------------------------------------------------------------------------------------------------------------

def register_builtin_metadata(registry: MetadataRegistry) -> MetadataRegistry:
    """Register the built-in shadow descriptors; returns the registry for chaining."""
    return (
        registry
        .register_shadow(BaseException, ExceptionShadow)
        .register_shadow(OSError, OSErrorShadow)
        .register_shadow(threading.Thread, ThreadShadow)
        .register_shadow(functools.partial, PartialShadow)
    )


def default_registry() -> MetadataRegistry:
    """Process-wide registry with the built-in shadow metadata, created on first use."""
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                _default_registry = register_builtin_metadata(MetadataRegistry())
    return _default_registry


def default_cache() -> MetadataCache:
    """Process-wide metadata cache bound to default_registry()."""
    global _default_cache
    if _default_cache is None:
        registry = default_registry()
        with _default_lock:
            if _default_cache is None:
                _default_cache = MetadataCache(registry)
    return _default_cache


# Private --------------------------------------------------------------------------------------------------------------

_default_lock = threading.Lock()
_default_registry: MetadataRegistry | None = None
_default_cache: MetadataCache | None = None
