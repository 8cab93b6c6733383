#
# Textdumper - Cache Tests
#

# Standard library -----------------------------------------------------------------------------------------------------
import threading
import time

# Third-party ----------------------------------------------------------------------------------------------------------
import pytest

# Local ----------------------------------------------------------------------------------------------------------------
from textdumper.annotations import Dump
from textdumper.cache import MetadataCache
from textdumper.registry import MetadataRegistry


# Local Classes & Methods ----------------------------------------------------------------------------------------------

class CountingRegistry(MetadataRegistry):
    """Registry counting build() calls, with a slow build to widen race windows."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def build(self, cls):
        self.calls += 1
        time.sleep(0.01)
        return super().build(cls)


class Item:
    name: str
    price: int


# Tests ----------------------------------------------------------------------------------------------------------------

class TestMetadataCache:
    def test_build_once(self):
        """The same metadata object is returned on every lookup."""
        cache = MetadataCache()
        first = cache.get_or_build(Item)
        assert cache.get_or_build(Item) is first
        assert cache.builds == 1
        assert Item in cache
        assert cache.get(Item) is first

    def test_distinct_types(self):
        """list and tuple are separate entries."""
        cache = MetadataCache()
        assert cache.get_or_build(list) is not cache.get_or_build(tuple)
        assert cache.builds == 2
        assert len(cache) == 2
        assert set(cache) == {list, tuple}

    def test_miss(self):
        cache = MetadataCache()
        assert cache.get(Item) is None
        assert Item not in cache

    def test_uses_registry(self):
        registry = MetadataRegistry().register(Item, annotation=Dump(order=1))
        cache = MetadataCache(registry)
        assert cache.registry is registry
        assert cache.get_or_build(Item).annotation == Dump(order=1)

    def test_default_registry(self):
        assert isinstance(MetadataCache().registry, MetadataRegistry)

    def test_snapshot_is_copy(self):
        cache = MetadataCache()
        cache.get_or_build(Item)
        cache.snapshot().clear()
        assert Item in cache

    def test_concurrent_first_use(self):
        """Concurrent first lookups of a type build its metadata exactly once."""
        registry = CountingRegistry()
        cache = MetadataCache(registry)
        workers = 8
        barrier = threading.Barrier(workers)
        results = []
        results_lock = threading.Lock()

        def worker():
            barrier.wait()
            meta = cache.get_or_build(Item)
            with results_lock:
                results.append(meta)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert registry.calls == 1
        assert cache.builds == 1
        assert len(results) == workers
        assert all(meta is results[0] for meta in results)

    @pytest.mark.parametrize(
        "value",
        [
            pytest.param(Item(), id="instance"),
            pytest.param("Item", id="str"),
        ],
    )
    def test_rejects_non_type(self, value):
        with pytest.raises(TypeError, match=r"(?i)cls must be a type"):
            MetadataCache().get_or_build(value)

    def test_rejects_bad_registry(self):
        with pytest.raises(TypeError, match=r"(?i)registry must be a MetadataRegistry"):
            MetadataCache(registry={})
