#
# Pytest Fixtures
#

# Third-party ----------------------------------------------------------------------------------------------------------
import pytest

# Local ----------------------------------------------------------------------------------------------------------------
from textdumper.cache import MetadataCache
from textdumper.dumper import DumpOptions, TextDumper, configure
from textdumper.metadata import register_builtin_metadata
from textdumper.registry import MetadataRegistry


# Fixtures -------------------------------------------------------------------------------------------------------------

@pytest.fixture
def registry() -> MetadataRegistry:
    """Isolated registry with the built-in shadow metadata."""
    return register_builtin_metadata(MetadataRegistry())


@pytest.fixture
def cache(registry) -> MetadataCache:
    """Isolated metadata cache bound to the registry fixture."""
    return MetadataCache(registry)


@pytest.fixture
def make_dumper(cache):
    """Factory of dumpers sharing the isolated cache; short type headers unless asked otherwise."""

    def _make(**kwargs) -> TextDumper:
        kwargs.setdefault("fully_qualified_names", False)
        return TextDumper(DumpOptions(**kwargs), cache=cache)

    return _make


@pytest.fixture
def dumper(make_dumper) -> TextDumper:
    return make_dumper()


@pytest.fixture(autouse=True)
def reset_module_options():
    """Restore module level options changed by configure()."""
    yield
    configure("default")
