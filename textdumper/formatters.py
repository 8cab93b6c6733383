"""
Leaf value rendering and inline markers of the text dumper.

All renderers are total: a broken __str__ or __format__ never escapes, it is rendered
as a fallback token instead. Markers are the placeholders written in place of further
recursion: null, cycle, depth and truncation markers, and inline error markers.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import collections.abc as abc
import datetime
import enum
import ipaddress
import pathlib
import re
import types
import uuid

from decimal import Decimal
from fractions import Fraction
from itertools import islice
from typing import Any, Iterable, Tuple
from urllib.parse import ParseResult, SplitResult

# Local ----------------------------------------------------------------------------------------------------------------
from .utils import class_name, short_name

# Markers --------------------------------------------------------------------------------------------------------------

NULL = "None"
ELLIPSIS = "..."
CYCLE = "<cycle detected: {}>"
MAX_DEPTH = "<max depth reached: {}>"
MORE = "... {} more"
ERROR = "<error: {}>"

# Types rendered by their natural string form, never traversed. Order matters for
# fmt_leaf dispatch: bool before int, Enum before int and str.
LEAF_TYPES = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    memoryview,
    Decimal,
    Fraction,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    datetime.tzinfo,
    uuid.UUID,
    pathlib.PurePath,
    ipaddress.IPv4Address,
    ipaddress.IPv6Address,
    ipaddress.IPv4Network,
    ipaddress.IPv6Network,
    ParseResult,
    SplitResult,
    enum.Enum,
    range,
    slice,
    re.Pattern,
    type,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.ModuleType,
    type(Ellipsis),
    type(NotImplemented),
)

BYTES_TYPES = (bytes, bytearray, memoryview)

COLLECTION_TYPES = (
    abc.Mapping,
    abc.Set,
    abc.Sequence,
    abc.MappingView,
    abc.Collection,
)


# Methods --------------------------------------------------------------------------------------------------------------

def is_leaf_type(cls: type) -> bool:
    """Check whether instances of cls are rendered as leaves."""
    try:
        return issubclass(cls, LEAF_TYPES)
    except TypeError:
        return False


def is_collection_type(cls: type) -> bool:
    """Check whether instances of cls are collections which can be enumerated (text and bytes excluded)."""
    if is_leaf_type(cls):
        return False
    try:
        return issubclass(cls, COLLECTION_TYPES)
    except TypeError:
        return False


def fmt_leaf(value: Any, max_bytes: int = -1) -> str:
    """
    Natural string form of a leaf value.

    Examples:
        >>> fmt_leaf(None)
        'None'
        >>> fmt_leaf(b"\\x00\\x01\\xff")
        'bytes[3]: 00-01-FF'
        >>> fmt_leaf(datetime.date(2024, 2, 29))
        '2024-02-29'
    """
    if value is None:
        return NULL
    if isinstance(value, enum.Enum):
        return fmt_enum(value)
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, str):
        return str.__str__(value)
    if isinstance(value, BYTES_TYPES):
        return fmt_bytes(value, max_bytes)
    if isinstance(value, (datetime.date, datetime.time)):
        return _safe_call(value.isoformat, value)
    if isinstance(value, (ParseResult, SplitResult)):
        return _safe_call(value.geturl, value)
    if isinstance(value, type):
        return class_name(value, fully_qualified=True)
    if isinstance(value, (types.FunctionType, types.BuiltinFunctionType, types.MethodType)):
        return fmt_callable(value)
    if isinstance(value, types.ModuleType):
        return f"<module {value.__name__}>"
    if isinstance(value, re.Pattern):
        return f"re.compile({value.pattern!r})"
    return safe_str(value)


def fmt_bytes(value: bytes | bytearray | memoryview, max_bytes: int = -1) -> str:
    """
    Hex dump of a bytes-like value with a length header, like 'bytes[3]: 00-01-FF'.

    Shows at most max_bytes bytes followed by an ellipsis; max_bytes < 0 shows all.
    """
    try:
        data = bytes(value)
    except (TypeError, ValueError) as exc:
        return fmt_error(exc)

    head = data if max_bytes < 0 else data[:max_bytes]
    text = head.hex("-").upper()
    if len(head) < len(data):
        text += ELLIPSIS
    return f"{class_name(value)}[{len(data)}]: {text}"


def fmt_enum(value: enum.Enum) -> str:
    """
    Enum member as 'Color.RED'; a combination of flags as 'Perm (R | W)'.
    """
    cls = type(value)
    cls_name = short_name(cls)

    if isinstance(value, enum.Flag):
        members = _flag_members(value)
        if len(members) > 1:
            return f"{cls_name} ({' | '.join(m.name for m in members)})"
        if not members and value.name is None:
            return f"{cls_name}({value.value!r})"

    return f"{cls_name}.{value.name}"


def fmt_callable(fn: Any) -> str:
    """Function or method as '<function module.qualname>'."""
    module = getattr(fn, "__module__", None)
    name = getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or safe_str(fn)
    kind = "method" if isinstance(fn, types.MethodType) else "function"
    if module and module != "builtins":
        return f"<{kind} {module}.{name}>"
    return f"<{kind} {name}>"


def fmt_type_header(value: Any, fully_qualified: bool = True) -> str:
    """
    Header of a composite value: 'Node (package.module.Node)', or just 'Node'.
    """
    cls = type(value)
    name = short_name(cls)
    if not fully_qualified:
        return name
    return f"{name} ({class_name(cls, fully_qualified=True, fully_qualified_builtins=True)})"


def fmt_collection_header(value: Any, count: int | None) -> str:
    """Summary of a collection: runtime type name and element count, like 'list[3]'."""
    name = class_name(value)
    return f"{name}[{count}]" if count is not None else f"{name}[?]"


def fmt_cycle(value: Any) -> str:
    return CYCLE.format(short_name(value))


def fmt_max_depth(value: Any) -> str:
    return MAX_DEPTH.format(short_name(value))


def fmt_more(count: int) -> str:
    return MORE.format(count)


def fmt_error(exc: BaseException) -> str:
    """Inline error marker '<error: message>'; the exception type name stands in for an empty message."""
    try:
        message = str(exc)
    except Exception:
        message = ""
    return ERROR.format(message or type(exc).__name__)


def fmt_template(template: str, value: Any) -> str:
    """
    Apply a positional template like '{0:.2f}' to value.

    Raises:
        ValueError, TypeError, IndexError, KeyError: If the template does not fit the value.
    """
    return template.format(value)


def truncate(text: str, max_len: int, suffix: str = ELLIPSIS) -> str:
    """
    Keep the first max_len characters of text and append suffix when something was cut.

    max_len < 0 means unlimited.
    """
    if max_len < 0 or len(text) <= max_len:
        return text
    return text[:max_len] + suffix


def head(iterable: Iterable[Any], n: int) -> Tuple[list[Any], bool]:
    """Take up to n items and indicate whether there were more items; n < 0 takes all."""
    if n < 0:
        return list(iterable), False
    it = iter(iterable)
    buf = list(islice(it, n + 1))
    if len(buf) <= n:
        return buf, False
    return buf[:n], True


def safe_str(obj: Any) -> str:
    """
    Defensive str() call - handle broken __str__ methods gracefully
    """
    try:
        return str(obj)
    except Exception as e:
        return f"<{type(obj).__name__} object (str failed: {type(e).__name__})>"


def safe_len(obj: Any) -> int | None:
    try:
        return len(obj)
    except Exception:
        return None


# Private Methods ------------------------------------------------------------------------------------------------------

def _flag_members(value: enum.Flag) -> list[enum.Flag]:
    """Single-bit members contained in a flag value, in definition order."""
    bits = value.value
    if not isinstance(bits, int):
        return []
    members = []
    for member in type(value).__members__.values():
        v = member.value
        if isinstance(v, int) and v > 0 and v & (v - 1) == 0 and bits & v == v and member not in members:
            members.append(member)
    return members


def _safe_call(fn, value: Any) -> str:
    try:
        return fn()
    except Exception:
        return safe_str(value)
