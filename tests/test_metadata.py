#
# Textdumper - Built-in Metadata Tests
#

# Standard library -----------------------------------------------------------------------------------------------------
import functools
import threading

# Local ----------------------------------------------------------------------------------------------------------------
from textdumper.metadata import (
    ExceptionShadow,
    OSErrorShadow,
    PartialShadow,
    ThreadShadow,
    default_cache,
    default_registry,
)


# Local Classes & Methods ----------------------------------------------------------------------------------------------

def chained_error() -> ValueError:
    try:
        try:
            raise KeyError("k")
        except KeyError as e:
            raise ValueError("outer") from e
    except ValueError as e:
        return e


# Tests ----------------------------------------------------------------------------------------------------------------

class TestRegistration:
    def test_builtin_shadows_registered(self, registry):
        assert registry.shadow_of(ValueError).descriptor is ExceptionShadow
        assert registry.shadow_of(FileNotFoundError).descriptor is OSErrorShadow
        assert registry.shadow_of(threading.Thread).descriptor is ThreadShadow
        assert registry.shadow_of(functools.partial).descriptor is PartialShadow

    def test_default_singletons(self):
        """Process-wide registry and cache are created once and bound together."""
        assert default_registry() is default_registry()
        assert default_cache() is default_cache()
        assert default_cache().registry is default_registry()
        assert BaseException in default_registry()


class TestExceptionDump:
    def test_message(self, dumper):
        assert dumper.dumps(ValueError("boom")) == "ValueError:\n  message: boom"

    def test_chained_cause(self, dumper):
        """The cause is dumped as a nested exception; a missing cause is skipped."""
        text = dumper.dumps(chained_error())
        assert text == (
            "ValueError:\n"
            "  message: outer\n"
            "  __cause__: KeyError:\n"
            "    message: 'k'"
        )

    def test_notes(self, dumper):
        exc = RuntimeError("failed")
        exc.add_note("while loading")
        text = dumper.dumps(exc)
        assert "  __notes__: list[1]:\n    while loading" in text

    def test_os_error_fields(self, dumper):
        """OSError fields are listed, unset ones skipped."""
        text = dumper.dumps(FileNotFoundError(2, "No such file", "x.txt"))
        assert text == (
            "FileNotFoundError:\n"
            "  message: [Errno 2] No such file: 'x.txt'\n"
            "  errno: 2\n"
            "  strerror: No such file\n"
            "  filename: x.txt"
        )


class TestThreadDump:
    def test_thread(self, dumper):
        thread = threading.Thread(name="worker", target=lambda: None)
        text = dumper.dumps(thread)
        assert text.startswith("Thread:\n  name: worker")
        assert "  ident: None" in text
        assert "  daemon: False" in text
        assert "  alive: False" in text


class TestPartialDump:
    def test_partial(self, dumper):
        text = dumper.dumps(functools.partial(int, "7", base=10))
        assert text == (
            "partial:\n"
            "  func: int\n"
            "  args: tuple[1]:\n"
            "    7\n"
            "  keywords: dict[1]:\n"
            "    base: 10"
        )
