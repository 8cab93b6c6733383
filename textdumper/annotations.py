"""
Textdumper Annotation Model

Declarative per-type and per-member dump configuration. A Dump annotation is an immutable
value object which can be attached:

    - to a class with the ``@dump(...)`` decorator (type level);
    - to a member through ``typing.Annotated[T, Dump(...)]``;
    - to a dataclass field through ``field(metadata=dump_metadata(...))``;
    - to a property or cached_property with ``@dump(...)``;
    - to a name in a class body by assigning a Dump instance, which is the usual way
      of declaring members of a shadow descriptor class.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import functools
import typing

from dataclasses import dataclass, replace as dataclasses_replace
from enum import Enum, unique
from typing import Any, Callable, ClassVar

# Local ----------------------------------------------------------------------------------------------------------------
from .sentinels import UNSET, UnsetType
from .utils import fmt_type

__all__ = [
    "DEFAULT_MASK_VALUE",
    "DUMP_ATTR",
    "DUMP_METADATA_KEY",
    "Dump",
    "ShouldDump",
    "annotation_of",
    "annotation_from_hint",
    "combine",
    "dump",
    "dump_metadata",
    "effective",
    "type_annotation",
]

DEFAULT_MASK_VALUE = "******"
DEFAULT_DUMP_METHOD = "dump"

# Attribute storing the annotation on decorated classes and getter functions
DUMP_ATTR = "__dump_annotation__"

# Key of a Dump annotation inside dataclasses.field(metadata=...)
DUMP_METADATA_KEY = "textdumper.dump"


# Classes --------------------------------------------------------------------------------------------------------------

@unique
class ShouldDump(str, Enum):
    """
    Tri-state dump flag:
        - "default": not decided here, inherit from the enclosing scope
        - "dump": dump the value
        - "skip": do not dump the value
    """
    DEFAULT = "default"
    DUMP = "dump"
    SKIP = "skip"


@dataclass(frozen=True)
class Dump:
    """
    Immutable dump configuration of a type or a member.

    Attributes:
        order: Position among sibling members, ascending. Negative values go before zero.
               None means unordered: after all ordered members, in declaration order.
        include: False removes the member from output regardless of every other flag.
        include_nulls: Whether a member holding None is written.
        recurse: Whether to descend into the value or render its plain str() form.
        enumerate: For collections, whether to list elements or write a count summary only.
        max_length: UNSET inherits the ambient limit, -1 is explicitly unlimited, N >= 0 caps
                    string characters or collection elements.
        max_depth: UNSET inherits, N >= 0 caps the depth of the subtree rooted here.
        mask: Replace the value with mask_value.
        mask_value: Placeholder written for masked values.
        value_format: Positional template applied to the value, like "{0:.2f}" or "{0!r}".
        label_format: Positional template applied to the member name, like "[{0}]".
        dump_method: Custom formatter. A callable gets the value and returns a string.
                     A string names a static method of dump_class, or a method of the value itself
                     when dump_class is not set.
        dump_class: Class holding the custom formatter. Without dump_method its "dump" method is used.
        default_property: Type level shorthand, dump instances as the value of this member only.
    """
    order: int | None = None
    include: bool = True
    include_nulls: ShouldDump = ShouldDump.DEFAULT
    recurse: ShouldDump = ShouldDump.DEFAULT
    enumerate: ShouldDump = ShouldDump.DEFAULT
    max_length: int | UnsetType = UNSET
    max_depth: int | UnsetType = UNSET
    mask: bool = False
    mask_value: str = DEFAULT_MASK_VALUE
    value_format: str | None = None
    label_format: str | None = None
    dump_method: Callable[[Any], str] | str | None = None
    dump_class: type | None = None
    default_property: str | None = None

    DEFAULT: ClassVar["Dump"]

    def __post_init__(self):
        if self.order is not None and (isinstance(self.order, bool) or not isinstance(self.order, int)):
            raise TypeError(f"order must be an int or None, but found {fmt_type(self.order)}")
        for name in ("include", "mask"):
            if not isinstance(getattr(self, name), bool):
                raise TypeError(f"{name} must be a bool, but found {fmt_type(getattr(self, name))}")

        # Accept plain strings for tri-state flags
        for name in ("include_nulls", "recurse", "enumerate"):
            value = getattr(self, name)
            if isinstance(value, ShouldDump):
                continue
            try:
                object.__setattr__(self, name, ShouldDump(value))
            except ValueError:
                raise ValueError(f"{name} must be one of {[m.value for m in ShouldDump]}, but found {value!r}")

        if self.max_length is not UNSET:
            _check_int("max_length", self.max_length, minimum=-1)
        if self.max_depth is not UNSET:
            _check_int("max_depth", self.max_depth, minimum=0)

        if not isinstance(self.mask_value, str):
            raise TypeError(f"mask_value must be a str, but found {fmt_type(self.mask_value)}")
        for name in ("value_format", "label_format", "default_property"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise TypeError(f"{name} must be a str or None, but found {fmt_type(value)}")
        if self.default_property == "":
            raise ValueError("default_property must be a non-empty member name")

        if self.dump_method is not None and not (isinstance(self.dump_method, str) or callable(self.dump_method)):
            raise TypeError(f"dump_method must be a callable or a method name, but found {fmt_type(self.dump_method)}")
        if self.dump_class is not None and not isinstance(self.dump_class, type):
            raise TypeError(f"dump_class must be a type or None, but found {fmt_type(self.dump_class)}")

    @property
    def has_custom_dumper(self) -> bool:
        return self.dump_method is not None or self.dump_class is not None

    @property
    def is_default(self) -> bool:
        return self == Dump.DEFAULT

    def merge(self, **changes) -> "Dump":
        """Return a copy with the given fields replaced."""
        return dataclasses_replace(self, **changes)

    def custom_dumper(self) -> Callable[[Any], str] | None:
        """
        Resolve dump_method/dump_class to a callable receiving the value, or None if no custom dumper is set.

        Raises:
            AttributeError: If the named method does not exist on dump_class.
            TypeError: If the resolved attribute is not callable.
        """
        method, cls = self.dump_method, self.dump_class
        if method is None and cls is None:
            return None
        if callable(method):
            return method

        if cls is not None:
            fn = getattr(cls, method or DEFAULT_DUMP_METHOD)
            if not callable(fn):
                raise TypeError(f"{cls.__name__}.{method or DEFAULT_DUMP_METHOD} is not callable")
            return fn

        # Method of the dumped value itself
        return functools.partial(_call_value_method, method)

    def __repr__(self) -> str:
        # Non-default fields only
        changed = [
            f"{name}={getattr(self, name)!r}"
            for name in self.__dataclass_fields__
            if getattr(self, name) != getattr(Dump.DEFAULT, name)
        ]
        return f"Dump({', '.join(changed)})"


Dump.DEFAULT = Dump()


# Methods --------------------------------------------------------------------------------------------------------------

def effective(*flags: ShouldDump, default: ShouldDump = ShouldDump.DUMP) -> ShouldDump:
    """
    Resolve tri-state flags by precedence: the first flag which is not DEFAULT wins, else default.

    Pass flags nearest first, e.g. ``effective(member.recurse, type_level.recurse)``.
    """
    for flag in flags:
        if flag is not ShouldDump.DEFAULT:
            return flag
    return default


def combine(instance: "Dump | None", type_level: "Dump | None") -> Dump:
    """
    Merge an instance annotation (e.g. the one passed to a dump call or found on a member)
    with the type level annotation of the value's type.

    Instance values win where they are set; the type level fills the rest in.
    """
    if instance is None or instance is Dump.DEFAULT:
        return type_level or Dump.DEFAULT
    if type_level is None or type_level is Dump.DEFAULT or type_level is instance:
        return instance

    return Dump(
        order=instance.order,
        include=instance.include and type_level.include,
        include_nulls=effective(instance.include_nulls, type_level.include_nulls, default=ShouldDump.DEFAULT),
        recurse=effective(instance.recurse, type_level.recurse, default=ShouldDump.DEFAULT),
        enumerate=effective(instance.enumerate, type_level.enumerate, default=ShouldDump.DEFAULT),
        max_length=type_level.max_length if instance.max_length is UNSET else instance.max_length,
        max_depth=type_level.max_depth if instance.max_depth is UNSET else instance.max_depth,
        mask=instance.mask or type_level.mask,
        mask_value=instance.mask_value if instance.mask else type_level.mask_value,
        value_format=instance.value_format or type_level.value_format,
        label_format=instance.label_format or type_level.label_format,
        dump_method=instance.dump_method if instance.has_custom_dumper else type_level.dump_method,
        dump_class=instance.dump_class if instance.has_custom_dumper else type_level.dump_class,
        default_property=instance.default_property or type_level.default_property,
    )


def dump(_target: Any = None, **kwargs) -> Any:
    """
    Attach a Dump annotation to a class, a property, a cached_property or a getter function.

    Usable bare (``@dump``) or with arguments (``@dump(order=1, mask=True)``). Keyword arguments
    are the fields of Dump. Place it above ``@property``, or below it to annotate the getter.

    Examples:
        >>> @dump(default_property="name")
        ... class Tag:
        ...     def __init__(self, name): self.name = name

        >>> class User:
        ...     @dump(mask=True)
        ...     @property
        ...     def token(self): return self._token

    Raises:
        TypeError: If the target can not carry an annotation; use MetadataRegistry.register
                   for types which can not be modified.
    """
    annotation = Dump(**kwargs)

    def decorator(target):
        return _annotate(target, annotation)

    if _target is not None:
        return decorator(_target)
    return decorator


def dump_metadata(**kwargs) -> dict[str, Dump]:
    """
    Build a dataclasses.field metadata mapping carrying a Dump annotation.

    Example:
        >>> @dataclass
        ... class Login:
        ...     password: str = field(metadata=dump_metadata(mask=True))
    """
    return {DUMP_METADATA_KEY: Dump(**kwargs)}


def type_annotation(cls: type) -> Dump | None:
    """Annotation declared on the class itself with @dump, not inherited from bases."""
    try:
        value = vars(cls).get(DUMP_ATTR)
    except TypeError:
        return None
    return value if isinstance(value, Dump) else None


def annotation_of(member: Any) -> Dump | None:
    """
    Annotation carried by a class body member: a Dump instance, or a property,
    cached_property or function decorated with @dump.
    """
    if isinstance(member, Dump):
        return member
    if isinstance(member, property):
        member = member.fget
    elif isinstance(member, functools.cached_property):
        member = member.func
    value = getattr(member, DUMP_ATTR, None)
    return value if isinstance(value, Dump) else None


def annotation_from_hint(hint: Any) -> Dump | None:
    """Last Dump instance in the metadata of an ``Annotated[T, ...]`` hint, or None."""
    if typing.get_origin(hint) is not typing.Annotated:
        return None
    found = None
    for item in getattr(hint, "__metadata__", ()):
        if isinstance(item, Dump):
            found = item
    return found


# Private Methods ------------------------------------------------------------------------------------------------------

def _annotate(target: Any, annotation: Dump) -> Any:
    if isinstance(target, type):
        try:
            setattr(target, DUMP_ATTR, annotation)
        except (TypeError, AttributeError):
            raise TypeError(f"can not annotate {fmt_type(target, fully_qualified=True)}, "
                            f"register a shadow descriptor with MetadataRegistry.register instead")
        return target

    if isinstance(target, property):
        if target.fget is None:
            raise TypeError("can not annotate a property without a getter")
        _annotate(target.fget, annotation)
        return target

    if isinstance(target, functools.cached_property):
        _annotate(target.func, annotation)
        return target

    if callable(target):
        try:
            setattr(target, DUMP_ATTR, annotation)
        except (TypeError, AttributeError):
            raise TypeError(f"can not annotate {fmt_type(target)}")
        return target

    raise TypeError(f"@dump expects a class, property or function, but found {fmt_type(target)}")


def _call_value_method(name: str, value: Any) -> str:
    return getattr(value, name)()


def _check_int(name: str, value: Any, minimum: int):
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, but found {fmt_type(value)}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, but found {value}")
