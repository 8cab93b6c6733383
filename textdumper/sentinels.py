"""
Sentinel objects for distinguishing an unset limit from None and from explicit values.

The dumper limits (max_length, max_depth) have three meaningful states: not set at all
(inherit the ambient limit), explicitly unlimited (-1) and an explicit bound. UNSET marks
the first one; it is a singleton compared by identity.

Sentinels:
    UNSET: Represents an unprovided optional value (distinguishes from None and from -1)

Helper Functions:
    ifunset: Return default if value is UNSET, otherwise return value
    isunset: True if value is the UNSET sentinel

Example:
    >>> def limit(max_length: int | UnsetType = UNSET) -> int:
    ...     return ifunset(max_length, default=10)
"""

from typing import Any, Callable, Final

__all__ = [
    'UNSET',
    'UnsetType',
    'ifunset',
    'isunset',
]


# Sentinel Type --------------------------------------------------------------------------------------------------------

class UnsetType:
    """
    Type of the UNSET singleton: a limit not provided, inherited from the enclosing scope.

    Falsy and compared by identity; copy and pickle return the same object.
    """
    __slots__ = ()

    _instance: 'UnsetType | None' = None

    def __new__(cls) -> 'UnsetType':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return '<UNSET>'

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        # Module level name, unpickles to the singleton
        return 'UNSET'

    def __copy__(self) -> 'UnsetType':
        return self

    def __deepcopy__(self, memo: dict) -> 'UnsetType':
        return self


# Sentinel Instances ---------------------------------------------------------------------------------------------------

UNSET: Final[UnsetType] = UnsetType()


# Helper Functions -----------------------------------------------------------------------------------------------------

def ifunset(value: Any, *, default: Any | Callable[[], Any]) -> Any:
    """
    Return default if value is UNSET, otherwise return value.

    If default is callable, it is called lazily only when value is UNSET.

    Examples:
        >>> ifunset(UNSET, default=10)
        10
        >>> ifunset(-1, default=10)
        -1
        >>> ifunset(UNSET, default=lambda: 3)
        3
    """
    if value is UNSET:
        return default() if callable(default) else default
    return value


def isunset(value: Any) -> bool:
    """Check whether value is the UNSET sentinel."""
    return value is UNSET
