"""
Indenting text writer of the text dumper.

DumpWriter appends fragments to a sink and keeps the line layout consistent:
indentation is inserted after every newline, including newlines inside written values,
and the total output is capped so that a dump of a huge graph stays usable in logs.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import io

from contextlib import contextmanager
from typing import Any, Iterator

# Local ----------------------------------------------------------------------------------------------------------------
from .utils import fmt_type

DEFAULT_INDENT_SIZE = 2
DEFAULT_MAX_DUMP_LENGTH = 4 * 1024 * 1024

DUMP_EXCEEDED = "<dump exceeded the maximum length of {} characters>"


# Classes --------------------------------------------------------------------------------------------------------------

class DumpWriter:
    """
    Append-only writer with indentation and an output length cap.

    Args:
        sink: Object with a write(str) method; None writes to an internal buffer readable with getvalue().
        indent_size: Spaces per indentation level.
        max_length: Maximum number of characters written, the overflow notice excluded; negative is unlimited.

    Raises:
        TypeError: If sink has no callable write() method.
        ValueError: If indent_size is negative.

    Examples:
        >>> w = DumpWriter()
        >>> w.write_label("name"); w.write_value("value")
        >>> w.indent(); w.new_line(); w.write_value("nested")
        >>> w.getvalue()
        'name: value\\n  nested'
    """

    def __init__(self,
                 sink: Any = None,
                 *,
                 indent_size: int = DEFAULT_INDENT_SIZE,
                 max_length: int = DEFAULT_MAX_DUMP_LENGTH,
                 ):
        if sink is None:
            sink = io.StringIO()
        elif not callable(getattr(sink, "write", None)):
            raise TypeError(f"sink must have a write() method, but found {fmt_type(sink)}")
        if isinstance(indent_size, bool) or not isinstance(indent_size, int):
            raise TypeError(f"indent_size must be an int, but found {fmt_type(indent_size)}")
        if indent_size < 0:
            raise ValueError(f"indent_size must be >= 0, but found {indent_size}")

        self._sink = sink
        self._indent_size = indent_size
        self._max_length = max_length
        self._level = 0
        self._length = 0
        self._at_line_start = True
        self._exceeded = False

    # Properties -------------------------------------

    @property
    def sink(self) -> Any:
        return self._sink

    @property
    def level(self) -> int:
        """Current indentation level."""
        return self._level

    @property
    def length(self) -> int:
        """Number of characters written so far."""
        return self._length

    @property
    def exceeded(self) -> bool:
        """True once output was cut at max_length."""
        return self._exceeded

    # Methods ----------------------------------------

    def write(self, text: str) -> None:
        """Write text, indenting every line which starts after a newline."""
        if self._exceeded or not text:
            return

        lines = text.split("\n")
        for i, line in enumerate(lines):
            if i:
                self._emit("\n")
                self._at_line_start = True
            if line:
                if self._at_line_start:
                    self._emit(" " * (self._indent_size * self._level))
                    self._at_line_start = False
                self._emit(line)
            if self._exceeded:
                return

    def write_label(self, label: str, separator: str = ": ") -> None:
        self.write(f"{label}{separator}")

    def write_value(self, text: str) -> None:
        self.write(text)

    def new_line(self) -> None:
        self.write("\n")

    def indent(self) -> None:
        self._level += 1

    def dedent(self) -> None:
        if self._level > 0:
            self._level -= 1

    @contextmanager
    def indented(self) -> Iterator["DumpWriter"]:
        """Indent one level for the duration of the with-block."""
        self.indent()
        try:
            yield self
        finally:
            self.dedent()

    def getvalue(self) -> str:
        """
        Text written so far.

        Raises:
            TypeError: If the sink keeps no text, like a file or a socket wrapper.
        """
        getvalue = getattr(self._sink, "getvalue", None)
        if not callable(getvalue):
            raise TypeError(f"sink {fmt_type(self._sink)} does not support getvalue()")
        return getvalue()

    # Private ----------------------------------------

    def _emit(self, chunk: str) -> None:
        if self._max_length >= 0 and self._length + len(chunk) > self._max_length:
            room = self._max_length - self._length
            if room > 0:
                self._sink.write(chunk[:room])
                self._length += room
            self._sink.write("\n" + DUMP_EXCEEDED.format(self._max_length))
            self._exceeded = True
            return
        self._sink.write(chunk)
        self._length += len(chunk)
