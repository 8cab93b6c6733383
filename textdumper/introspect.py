"""
Member discovery for the text dumper.

Lists the dumpable members of a class with their declared annotations:
annotated fields (plain classes, dataclasses, named tuples), __slots__, properties and
cached properties, and class attributes holding a Dump instance. Base classes come first;
a member overridden in a subclass keeps its base position and takes the most derived
explicit annotation.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import dataclasses
import functools
import inspect
import typing

from dataclasses import dataclass, field
from operator import attrgetter
from typing import Any, Callable, ClassVar, Mapping

# Local ----------------------------------------------------------------------------------------------------------------
from .annotations import (
    DUMP_ATTR,
    DUMP_METADATA_KEY,
    Dump,
    annotation_from_hint,
    annotation_of,
)

__all__ = [
    "MemberInfo",
    "MemberKind",
    "TypeMetadata",
    "list_members",
    "sort_members",
]


# Classes --------------------------------------------------------------------------------------------------------------

class MemberKind:
    FIELD = "field"
    SLOT = "slot"
    PROPERTY = "property"
    DECLARED = "declared"
    SHADOW = "shadow"
    DYNAMIC = "dynamic"


@dataclass(frozen=True)
class MemberInfo:
    """
    A dumpable member of a type.

    Attributes:
        name: Attribute name read from instances.
        annotation: Effective member annotation, Dump.DEFAULT when nothing was declared.
        kind: One of MemberKind values.
        declared_in: Class (or shadow descriptor) which declared the member.
        explicit: True if the annotation was declared rather than defaulted.
    """
    name: str
    annotation: Dump = Dump.DEFAULT
    kind: str = MemberKind.FIELD
    declared_in: type | None = None
    explicit: bool = False
    getter: Callable[[Any], Any] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.getter is None:
            object.__setattr__(self, "getter", attrgetter(self.name))

    @property
    def optional(self) -> bool:
        """Missing attribute means 'not set' rather than a failure, true for everything except properties."""
        return self.kind != MemberKind.PROPERTY

    def with_annotation(self, annotation: Dump, explicit: bool = True, **changes) -> "MemberInfo":
        return dataclasses.replace(self, annotation=annotation, explicit=explicit, **changes)


@dataclass(frozen=True)
class TypeMetadata:
    """
    Resolved dump metadata of a type, built once and cached.

    Attributes:
        type: The described type.
        annotation: Effective type level annotation.
        members: Dumpable members sorted by order, declaration order among equals.
        category: "leaf", "collection" or "composite".
        member_annotations: Shadow member annotations by name, applied to attributes
                            discovered on instances at dump time.
    """
    type: type
    annotation: Dump
    members: tuple[MemberInfo, ...] = ()
    category: str = "composite"
    member_annotations: Mapping[str, Dump] = field(default_factory=dict)

    @property
    def member_names(self) -> frozenset[str]:
        return frozenset(m.name for m in self.members)

    def member(self, name: str) -> MemberInfo | None:
        for m in self.members:
            if m.name == name:
                return m
        return None


# Methods --------------------------------------------------------------------------------------------------------------

def list_members(cls: type) -> list[MemberInfo]:
    """
    List the dumpable members of cls in declaration order, base classes first.

    Private names (leading underscore) are listed only when they carry an explicit annotation.
    Methods, class methods, static methods and nested classes are never members.
    """
    members: dict[str, MemberInfo] = {}

    for klass in reversed(_mro(cls)):
        for info in _own_members(klass):
            if info.name.startswith("_") and not info.explicit:
                continue
            previous = members.get(info.name)
            if previous is not None and not info.explicit:
                info = info.with_annotation(previous.annotation, explicit=previous.explicit)
            # dict keeps the base position on update
            members[info.name] = info

    return list(members.values())


def sort_members(members: typing.Iterable[MemberInfo]) -> list[MemberInfo]:
    """Stable sort by order; unordered members go last in their current order."""
    return sorted(members, key=_order_key)


# Private Methods ------------------------------------------------------------------------------------------------------

def _mro(cls: type) -> tuple[type, ...]:
    try:
        mro = inspect.getmro(cls)
    except AttributeError:
        return ()
    return tuple(k for k in mro if k is not object)


def _own_members(klass: type) -> list[MemberInfo]:
    """Members declared in the body of klass itself."""
    found: dict[str, MemberInfo] = {}
    try:
        namespace = dict(vars(klass))
    except TypeError:
        return []

    dataclass_fields = {f.name: f for f in dataclasses.fields(klass)} if dataclasses.is_dataclass(klass) else {}

    # Annotated names
    class_vars = set()
    for name, hint in _own_hints(klass).items():
        if _is_classvar(hint):
            class_vars.add(name)
            continue
        if isinstance(hint, dataclasses.InitVar):
            continue
        value = namespace.get(name)
        if (callable(value) and not isinstance(value, type)) or isinstance(value, (classmethod, staticmethod)):
            continue

        annotation = annotation_from_hint(hint)
        dc_field = dataclass_fields.get(name)
        if dc_field is not None:
            annotation = dc_field.metadata.get(DUMP_METADATA_KEY, annotation)
        if annotation is None and isinstance(value, Dump):
            annotation = value

        found[name] = _member(name, annotation, MemberKind.FIELD, klass)

    # __slots__
    for name in _own_slots(klass):
        if name in found or name in ("__dict__", "__weakref__"):
            continue
        found[name] = _member(name, None, MemberKind.SLOT, klass)

    # Properties and Dump declarations, in class body order
    for name, value in namespace.items():
        if name in found or name in class_vars or name == DUMP_ATTR:
            continue
        if isinstance(value, (property, functools.cached_property)):
            found[name] = _member(name, annotation_of(value), MemberKind.PROPERTY, klass)
        elif isinstance(value, Dump):
            found[name] = _member(name, value, MemberKind.DECLARED, klass)

    return list(found.values())


def _own_hints(klass: type) -> dict[str, Any]:
    """Own annotations of klass, string annotations resolved where possible."""
    try:
        raw = inspect.get_annotations(klass)
    except Exception:
        return {}
    if not raw:
        return {}

    try:
        resolved = typing.get_type_hints(klass, include_extras=True)
    except Exception:
        resolved = {}
    return {name: resolved.get(name, hint) for name, hint in raw.items()}


def _own_slots(klass: type) -> list[str]:
    slots = vars(klass).get("__slots__", ())
    if isinstance(slots, str):
        return [slots]
    try:
        return [s for s in slots if isinstance(s, str)]
    except TypeError:
        return []


def _is_classvar(hint: Any) -> bool:
    if hint is ClassVar or typing.get_origin(hint) is ClassVar:
        return True
    if isinstance(hint, str):
        return hint.startswith(("ClassVar", "typing.ClassVar"))
    return False


def _member(name: str, annotation: Dump | None, kind: str, klass: type) -> MemberInfo:
    return MemberInfo(
        name=name,
        annotation=annotation or Dump.DEFAULT,
        kind=kind,
        declared_in=klass,
        explicit=annotation is not None,
    )


def _order_key(member: MemberInfo) -> tuple[int, int]:
    order = member.annotation.order
    return (0, order) if order is not None else (1, 0)
