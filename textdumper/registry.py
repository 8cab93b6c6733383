"""
Textdumper Metadata Registry

Resolves the effective annotations of a type and its members from the annotations declared
on the type itself and from externally attached "shadow" descriptors, which annotate types
the application does not own (stdlib and third-party classes).

A shadow descriptor is a plain class whose body mirrors the members of the target:

    >>> @dump(default_property="path")
    ... class UrlShadow:
    ...     path = Dump(order=0)
    ...     password = Dump(mask=True)
    >>> registry = MetadataRegistry().register_shadow(Url, UrlShadow)
"""

# Standard library -----------------------------------------------------------------------------------------------------
import functools
import inspect
import logging
import threading

from dataclasses import dataclass
from typing import Iterator

# Local ----------------------------------------------------------------------------------------------------------------
from .annotations import Dump, type_annotation
from .formatters import is_collection_type, is_leaf_type
from .introspect import MemberInfo, MemberKind, TypeMetadata, list_members, sort_members
from .utils import class_name, fmt_type, is_user_type

logger = logging.getLogger(__name__)


# Classes --------------------------------------------------------------------------------------------------------------

@dataclass(frozen=True)
class ShadowEntry:
    """Shadow registration of a target type: a descriptor class and/or a type level annotation."""
    target: type
    descriptor: type | None = None
    annotation: Dump | None = None

    @property
    def type_annotation(self) -> Dump | None:
        if self.annotation is not None:
            return self.annotation
        if self.descriptor is not None:
            return type_annotation(self.descriptor)
        return None


class MetadataRegistry:
    """
    Table of shadow metadata keyed by target type, with annotation resolution.

    Registration is an upsert, the last write for a target wins. All methods are safe for
    concurrent use; resolution never raises for a valid type, missing annotations degrade
    to Dump.DEFAULT.

    Resolution order of a type annotation, walking the MRO from the type itself:
        1. annotation declared on the class with @dump
        2. annotation registered for the class
        3. type annotation of the class's shadow descriptor
    The first class in the MRO which yields an annotation wins; Dump.DEFAULT if none does.

    Member annotations: a member's own explicit annotation wins, else the annotation of the
    same-named member of the nearest shadow descriptor, else Dump.DEFAULT. Descriptor members
    which the type does not declare are appended after its own members.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._entries: dict[type, ShadowEntry] = {}

    # Registration -----------------------------------

    def register_shadow(self, target: type, descriptor: type) -> "MetadataRegistry":
        """
        Attach the annotations of descriptor to target.

        Returns:
            Self, to allow chaining.

        Raises:
            TypeError: If target or descriptor is not a type.
        """
        if not isinstance(descriptor, type):
            raise TypeError(f"descriptor must be a type, but found {fmt_type(descriptor)}")
        return self.register(target, descriptor)

    def register(self,
                 target: type,
                 descriptor: type | None = None,
                 *,
                 annotation: Dump | None = None,
                 ) -> "MetadataRegistry":
        """
        Register a shadow descriptor and/or a type level annotation for target.

        Returns:
            Self, to allow chaining.

        Raises:
            TypeError: If target is not a type, descriptor is not a type or None,
                       or annotation is not a Dump or None.
            ValueError: If neither descriptor nor annotation is given.
        """
        if not isinstance(target, type):
            raise TypeError(f"target must be a type, but found {fmt_type(target)}")
        if descriptor is not None and not isinstance(descriptor, type):
            raise TypeError(f"descriptor must be a type or None, but found {fmt_type(descriptor)}")
        if annotation is not None and not isinstance(annotation, Dump):
            raise TypeError(f"annotation must be a Dump instance or None, but found {fmt_type(annotation)}")
        if descriptor is None and annotation is None:
            raise ValueError("descriptor or annotation required")

        entry = ShadowEntry(target=target, descriptor=descriptor, annotation=annotation)
        with self._lock:
            replaced = self._entries.get(target)
            self._entries[target] = entry
        if replaced is not None and replaced != entry:
            logger.debug("shadow metadata of %s replaced", class_name(target, fully_qualified=True))
        return self

    def unregister(self, target: type) -> "MetadataRegistry":
        with self._lock:
            self._entries.pop(target, None)
        return self

    # Lookup -----------------------------------------

    def shadow_of(self, cls: type) -> ShadowEntry | None:
        """Registration of cls or of its nearest registered ancestor."""
        with self._lock:
            if not self._entries:
                return None
            for klass in _mro(cls):
                entry = self._entries.get(klass)
                if entry is not None:
                    return entry
        return None

    def snapshot(self) -> dict[type, ShadowEntry]:
        """Copy of the registration table."""
        with self._lock:
            return dict(self._entries)

    def __contains__(self, cls: object) -> bool:
        with self._lock:
            return cls in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[type]:
        return iter(self.snapshot())

    # Resolution -------------------------------------

    def resolve_type_annotation(self, cls: type) -> Dump:
        """
        Effective type level annotation of cls, Dump.DEFAULT when nothing is declared or registered.

        The nearest annotation along the MRO wins. A custom dumper declared on an ancestor
        still applies when the nearer annotation declares none.
        """
        resolved = None
        for found in self._mro_annotations(cls):
            if resolved is None:
                resolved = found
            elif found.has_custom_dumper:
                resolved = resolved.merge(dump_method=found.dump_method, dump_class=found.dump_class)
            if resolved.has_custom_dumper:
                break
        return resolved or Dump.DEFAULT

    def resolve_members(self, cls: type) -> list[MemberInfo]:
        """
        Dumpable members of cls with their effective annotations, in declaration order.

        Builtin and stdlib types have no members of their own, only shadow declared ones.
        """
        own = self._own_members(cls)
        shadow = self._shadow_members(cls)
        if not shadow:
            return own

        resolved = []
        for member in own:
            declared = shadow.pop(member.name, None)
            if declared is not None and not member.explicit:
                member = member.with_annotation(declared.annotation)
            resolved.append(member)

        for declared in shadow.values():
            kind = MemberKind.PROPERTY if declared.kind == MemberKind.PROPERTY else MemberKind.SHADOW
            resolved.append(declared.with_annotation(declared.annotation, explicit=True, kind=kind))
        return resolved

    def resolve_member_annotations(self, cls: type) -> list[tuple[str, Dump]]:
        """Dumpable member names of cls paired with their effective annotations, in declaration order."""
        return [(m.name, m.annotation) for m in self.resolve_members(cls)]

    def shadow_member_annotations(self, cls: type) -> dict[str, Dump]:
        """Annotations of the nearest shadow descriptor's members, by name."""
        return {name: m.annotation for name, m in self._shadow_members(cls).items()}

    def build(self, cls: type) -> TypeMetadata:
        """Resolve the complete metadata of cls."""
        if not isinstance(cls, type):
            raise TypeError(f"cls must be a type, but found {fmt_type(cls)}")

        annotation = self.resolve_type_annotation(cls)
        if is_leaf_type(cls):
            return TypeMetadata(type=cls, annotation=annotation, category="leaf")

        members = tuple(sort_members(self.resolve_members(cls)))
        category = "collection" if is_collection_type(cls) else "composite"
        return TypeMetadata(
            type=cls,
            annotation=annotation,
            members=members,
            category=category,
            member_annotations=self.shadow_member_annotations(cls),
        )

    # Private ----------------------------------------

    def _mro_annotations(self, cls: type) -> Iterator[Dump]:
        """Type level annotations along the MRO, nearest first; own @dump before the registered one."""
        entries = self.snapshot()
        for klass in _mro(cls):
            own = type_annotation(klass)
            if own is not None:
                yield own
            entry = entries.get(klass)
            if entry is not None and entry.type_annotation is not None:
                yield entry.type_annotation

    def _own_members(self, cls: type) -> list[MemberInfo]:
        if not is_user_type(cls):
            return []
        try:
            return list_members(cls)
        except Exception:
            logger.debug("member discovery failed for %s", class_name(cls, fully_qualified=True), exc_info=True)
            return []

    def _shadow_members(self, cls: type) -> dict[str, MemberInfo]:
        entry = self.shadow_of(cls)
        if entry is None or entry.descriptor is None:
            return {}
        try:
            members = list_members(entry.descriptor)
        except Exception:
            logger.debug("member discovery failed for shadow %s", class_name(entry.descriptor), exc_info=True)
            return {}
        return {m.name: _bind_computed(entry.descriptor, m) for m in members}


# Private Methods ------------------------------------------------------------------------------------------------------

def _mro(cls: type) -> tuple[type, ...]:
    mro = getattr(cls, "__mro__", None) or (cls,)
    return tuple(k for k in mro if k is not object)


def _bind_computed(descriptor: type, member: MemberInfo) -> MemberInfo:
    """Descriptor properties read the dumped instance through their own getter."""
    if member.kind != MemberKind.PROPERTY:
        return member
    attr = inspect.getattr_static(descriptor, member.name, None)
    if isinstance(attr, property) and attr.fget is not None:
        return member.with_annotation(member.annotation, explicit=member.explicit, getter=attr.fget)
    if isinstance(attr, functools.cached_property):
        return member.with_annotation(member.annotation, explicit=member.explicit, getter=attr.func)
    return member
