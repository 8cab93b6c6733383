"""
Textdumper Utilities
"""

# Standard library -----------------------------------------------------------------------------------------------------
from typing import Any


# Methods --------------------------------------------------------------------------------------------------------------

def class_name(
    obj: Any,
    fully_qualified: bool = False,
    fully_qualified_builtins: bool = False,
) -> str:
    """
    Get the class name of an object or a class.

    Returns class name whether given an instance or the class itself.
    For example, both `class_name(10)` and `class_name(int)` return 'int'.

    Parameters:
        obj (Any): An object or a class.
        fully_qualified (bool): If true, returns the qualified name with module for user objects or classes.
        fully_qualified_builtins (bool): If true, returns the qualified name with module for builtins.

    Returns:
        str: The class name. Nested classes keep their dotted __qualname__.

    Examples:
        >>> class_name(10)
        'int'
        >>> class_name(10, fully_qualified_builtins=True)
        'builtins.int'
        >>> class Node: ...
        >>> class_name(Node(), fully_qualified=True)
        '__main__.Node'
    """
    cls = obj if isinstance(obj, type) else type(obj)

    name = getattr(cls, "__qualname__", None) or getattr(cls, "__name__", None) or repr(cls)
    module = getattr(cls, "__module__", None)

    if module == "builtins":
        return f"{module}.{name}" if fully_qualified_builtins else name

    if fully_qualified and module:
        return f"{module}.{name}"
    return name


def fmt_type(obj: Any, fully_qualified: bool = False) -> str:
    """
    Format type of obj for exception messages, like '<int>' or '<mod.Node>'.
    """
    return f"<{class_name(obj, fully_qualified=fully_qualified)}>"


def short_name(obj: Any) -> str:
    """Type name without module and without enclosing scopes, 'Outer.Inner' -> 'Inner'."""
    cls = obj if isinstance(obj, type) else type(obj)
    return getattr(cls, "__name__", None) or class_name(cls)


def is_user_type(cls: type) -> bool:
    """
    Check whether cls is defined outside the interpreter core and the standard library modules
    which the dumper treats as opaque leaves or plain collections.
    """
    module = getattr(cls, "__module__", None) or ""
    root = module.partition(".")[0]
    return root not in _OPAQUE_MODULE_ROOTS


# Private --------------------------------------------------------------------------------------------------------------

_OPAQUE_MODULE_ROOTS = frozenset({
    "builtins",
    "collections",
    "array",
    "datetime",
    "decimal",
    "fractions",
    "ipaddress",
    "pathlib",
    "uuid",
    "re",
    "types",
    "typing",
    "abc",
    "_abc",
    "_collections",
    "_collections_abc",
    "_decimal",
    "_pydecimal",
    "_datetime",
    "_pydatetime",
    "posixpath",
    "ntpath",
    "threading",
    "_thread",
    "io",
    "_io",
})
