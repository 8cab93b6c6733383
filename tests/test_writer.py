#
# Textdumper - Writer Tests
#

# Standard library -----------------------------------------------------------------------------------------------------
import io

# Third-party ----------------------------------------------------------------------------------------------------------
import pytest

# Local ----------------------------------------------------------------------------------------------------------------
from textdumper.writer import DUMP_EXCEEDED, DumpWriter


# Local Classes & Methods ----------------------------------------------------------------------------------------------

class ListSink:
    """Sink without getvalue(), collects chunks."""

    def __init__(self):
        self.chunks = []

    def write(self, text):
        self.chunks.append(text)


# Tests ----------------------------------------------------------------------------------------------------------------

class TestDumpWriter:
    def test_label_and_value(self):
        w = DumpWriter()
        w.write_label("name")
        w.write_value("Ann")
        assert w.getvalue() == "name: Ann"

    def test_custom_separator(self):
        w = DumpWriter()
        w.write_label("name", " = ")
        w.write_value("Ann")
        assert w.getvalue() == "name = Ann"

    def test_indentation_after_newline(self):
        """Indentation is inserted at the start of each new line."""
        w = DumpWriter(indent_size=4)
        w.write("root:")
        w.indent()
        w.new_line()
        w.write("child")
        w.dedent()
        w.new_line()
        w.write("sibling")
        assert w.getvalue() == "root:\n    child\nsibling"

    def test_multiline_value_is_indented(self):
        """Newlines inside a value keep the current indentation."""
        w = DumpWriter()
        w.indent()
        w.write("a\nb\nc")
        assert w.getvalue() == "  a\n  b\n  c"

    def test_empty_lines_have_no_trailing_spaces(self):
        w = DumpWriter()
        w.indent()
        w.write("a\n\nb")
        assert w.getvalue() == "  a\n\n  b"

    def test_indented_context(self):
        w = DumpWriter()
        with w.indented():
            assert w.level == 1
            with w.indented():
                assert w.level == 2
        assert w.level == 0

    def test_dedent_floor(self):
        """Dedent below zero is a no-op."""
        w = DumpWriter()
        w.dedent()
        assert w.level == 0

    def test_max_length_notice_written_once(self):
        """Output is cut at max_length and the overflow notice appears once."""
        w = DumpWriter(max_length=10)
        w.write("0123456789ABCDEF")
        w.write("more text")
        value = w.getvalue()
        assert value == "0123456789\n" + DUMP_EXCEEDED.format(10)
        assert w.exceeded
        assert w.length == 10

    def test_unlimited_length(self):
        w = DumpWriter(max_length=-1)
        w.write("x" * 1000)
        assert w.length == 1000
        assert not w.exceeded

    def test_stream_and_buffer_match(self):
        """Streaming to a sink produces the same text as the internal buffer."""
        sink = ListSink()
        streamed, buffered = DumpWriter(sink), DumpWriter()
        for w in (streamed, buffered):
            w.write("a:")
            with w.indented():
                w.new_line()
                w.write_label("b")
                w.write_value("1\n2")
        assert "".join(sink.chunks) == buffered.getvalue()

    def test_string_io_sink(self):
        sink = io.StringIO()
        w = DumpWriter(sink)
        w.write("x")
        assert w.sink is sink
        assert w.getvalue() == "x"

    def test_getvalue_unsupported(self):
        """Sinks without getvalue() can not be read back."""
        w = DumpWriter(ListSink())
        with pytest.raises(TypeError, match=r"(?i)does not support getvalue"):
            w.getvalue()

    @pytest.mark.parametrize(
        ("kwargs", "exc", "match"),
        [
            pytest.param({"sink": object()}, TypeError, r"(?i)write\(\) method", id="no-write"),
            pytest.param({"sink": io.StringIO(), "indent_size": -1}, ValueError, r"(?i)indent_size", id="indent-neg"),
            pytest.param({"sink": io.StringIO(), "indent_size": "2"}, TypeError, r"(?i)indent_size", id="indent-str"),
        ],
    )
    def test_invalid_arguments(self, kwargs, exc, match):
        with pytest.raises(exc, match=match):
            DumpWriter(**kwargs)
