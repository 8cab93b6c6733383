"""
Textdumper Traversal Engine

Walks an object graph and writes an indented, human readable rendering:

    >>> dumps(Order(id=7, items=["tea", "milk"]))
    Order (shop.Order):
      id: 7
      items: list[2]:
        tea
        milk

Traversal never raises for the dumped value itself: cycles, exhausted depth, failing getters,
failing custom dumpers and oversized output are all written as inline markers. Only invalid
arguments to the entry points raise.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import collections.abc as abc
import logging
import threading

from dataclasses import dataclass, field, replace as dataclasses_replace
from typing import Any, Callable, Dict, Type

# Local ----------------------------------------------------------------------------------------------------------------
from .annotations import Dump, ShouldDump, combine, effective
from .cache import MetadataCache
from .formatters import (
    BYTES_TYPES,
    NULL,
    fmt_bytes,
    fmt_collection_header,
    fmt_cycle,
    fmt_error,
    fmt_leaf,
    fmt_max_depth,
    fmt_more,
    fmt_template,
    fmt_type_header,
    head,
    safe_len,
    safe_str,
    truncate,
)
from .introspect import MemberInfo, MemberKind, TypeMetadata, sort_members
from .metadata import default_cache
from .registry import MetadataRegistry
from .sentinels import UNSET, ifunset, isunset
from .utils import class_name, fmt_type
from .writer import DEFAULT_INDENT_SIZE, DEFAULT_MAX_DUMP_LENGTH, DumpWriter

logger = logging.getLogger(__name__)

TypeHandler = Callable[[Any], str]


# Classes --------------------------------------------------------------------------------------------------------------

@dataclass
class DumpOptions:
    """
    Ambient configuration of a dump.

    Limits:
        max_depth: Nesting levels expanded below the dumped value (default: 10)
                  - 0: even the root composite is written as a depth marker
                  - 1: the root is expanded, nested composites are markers
        max_items: Collection elements (and bytes) shown before a "... N more" marker (default: 10)
        max_str_length: Characters of a leaf rendering before truncation, -1 is unlimited (default)
        max_dump_length: Total characters written, then a single overflow notice (default: 4 MiB)

    Layout:
        indent_size: Spaces per nesting level
        label_format: Positional template of member labels, used when no annotation sets one
        label_separator: Written between a label and its value
        fully_qualified_names: Composite headers as 'Node (pkg.mod.Node)' instead of 'Node'

    Type Handler System:
        - Handlers are (value) -> str callables, taking precedence over structural rendering
        - Exact type match first, then the nearest ancestor via MRO
        - Member level dump_method annotations take precedence over handlers

    Class Methods:
        compact_options(): Shallow, short strings, short names
        debug_options(): Deep, long collections, unlimited strings
        logging_options(): Bounded output suitable for log records

    Examples:
        >>> options = DumpOptions.compact_options().merge(max_depth=2)
        >>> options = DumpOptions().add_type_handler(Decimal, lambda d: f"{d:.2f}")
    """
    max_depth: int = 10
    max_items: int = 10
    max_str_length: int = -1
    indent_size: int = DEFAULT_INDENT_SIZE
    max_dump_length: int = DEFAULT_MAX_DUMP_LENGTH
    label_format: str = "{0}"
    label_separator: str = ": "
    fully_qualified_names: bool = True
    type_handlers: Dict[Type, TypeHandler] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("max_depth", "max_items", "max_str_length", "indent_size", "max_dump_length"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an int, but found {fmt_type(value)}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, but found {self.max_depth}")
        if self.indent_size < 0:
            raise ValueError(f"indent_size must be >= 0, but found {self.indent_size}")
        for name in ("label_format", "label_separator"):
            if not isinstance(getattr(self, name), str):
                raise TypeError(f"{name} must be a str, but found {fmt_type(getattr(self, name))}")
        if not isinstance(self.type_handlers, abc.Mapping):
            raise TypeError(f"type_handlers must be a mapping, but found {fmt_type(self.type_handlers)}")
        self.type_handlers = dict(self.type_handlers)

    # Class Methods ------------------------------------

    @classmethod
    def compact_options(cls) -> "DumpOptions":
        return cls(
            max_depth=3,
            max_items=5,
            max_str_length=80,
            fully_qualified_names=False,
        )

    @classmethod
    def debug_options(cls) -> "DumpOptions":
        return cls(
            max_depth=16,
            max_items=100,
            max_str_length=-1,
        )

    @classmethod
    def logging_options(cls) -> "DumpOptions":
        """Bounded output for log records: moderate depth, truncated strings, 64 KiB total."""
        return cls(
            max_depth=4,
            max_items=10,
            max_str_length=256,
            max_dump_length=64 * 1024,
            fully_qualified_names=False,
        )

    # Methods ------------------------------------------

    def merge(self, **kwargs) -> "DumpOptions":
        """
        Copy with the given fields replaced; type handlers are copied, not shared.

        Raises:
            TypeError: If an unknown field is given.
        """
        kwargs.setdefault("type_handlers", dict(self.type_handlers))
        return dataclasses_replace(self, **kwargs)

    def add_type_handler(self, typ: type, handler: TypeHandler) -> "DumpOptions":
        """
        Register or override a handler for a specific type.

        Args:
            typ: The type to render; subclasses without a closer handler use it too.
            handler: A callable receiving the value and returning its text.

        Returns:
            Self, to allow chaining.

        Raises:
            TypeError: If typ is not a type or handler is not callable.
        """
        if not isinstance(typ, type):
            raise TypeError(f"typ must be a type, got {fmt_type(typ)}")
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {fmt_type(handler)}")
        self.type_handlers[typ] = handler
        return self

    def get_type_handler(self, obj: Any) -> TypeHandler | None:
        """
        Get the handler for the object's type, exact match first, then the nearest ancestor via MRO.
        """
        type_handlers = self.type_handlers
        if not type_handlers:
            return None

        obj_type = type(obj)
        if obj_type in type_handlers:
            return type_handlers[obj_type]

        for base in obj_type.__mro__[1:]:
            if base in type_handlers:
                return type_handlers[base]
        return None

    def remove_type_handler(self, typ: type) -> "DumpOptions":
        """
        Remove the handler for a specific type, if any.

        Returns:
            Self, to allow chaining.
        """
        if not isinstance(typ, type):
            raise TypeError(f"typ must be a type, got {fmt_type(typ)}")
        self.type_handlers.pop(typ, None)
        return self


@dataclass
class _DumpState:
    writer: DumpWriter
    options: DumpOptions
    cache: MetadataCache
    visited: set[int] = field(default_factory=set)


class TextDumper:
    """
    Object graph dumper bound to options and a metadata cache.

    A dumper is stateless between calls and safe to share across threads; every call
    keeps its own visited set and depth budget.

    Args:
        options: DumpOptions, defaults to the module configuration at construction time.
        registry: Metadata registry; a fresh cache is created for it.
        cache: Metadata cache, defaults to the process-wide cache.

    Raises:
        TypeError: On arguments of wrong types.
        ValueError: If both registry and cache are given and the cache uses another registry.
    """

    def __init__(self,
                 options: DumpOptions | None = None,
                 *,
                 registry: MetadataRegistry | None = None,
                 cache: MetadataCache | None = None,
                 ):
        if options is None:
            options = get_options()
        if not isinstance(options, DumpOptions):
            raise TypeError(f"options must be a DumpOptions instance, but found {fmt_type(options)}")
        if registry is not None and not isinstance(registry, MetadataRegistry):
            raise TypeError(f"registry must be a MetadataRegistry instance, but found {fmt_type(registry)}")
        if cache is not None and not isinstance(cache, MetadataCache):
            raise TypeError(f"cache must be a MetadataCache instance, but found {fmt_type(cache)}")

        if cache is None:
            cache = default_cache() if registry is None else MetadataCache(registry)
        elif registry is not None and cache.registry is not registry:
            raise ValueError("cache is bound to a different registry")

        self._options = options
        self._cache = cache

    @property
    def options(self) -> DumpOptions:
        return self._options

    @property
    def cache(self) -> MetadataCache:
        return self._cache

    @property
    def registry(self) -> MetadataRegistry:
        return self._cache.registry

    # Entry points -------------------------------------

    def dump(self, value: Any, sink: Any, *, annotation: Dump | None = None) -> None:
        """
        Write the rendering of value to sink.

        Args:
            value: Any value.
            sink: Object with a write(str) method, like an open text file or io.StringIO.
            annotation: Annotation applied to value as if it were a member, merged with its type annotation.

        Raises:
            TypeError: If sink is None or has no write() method, or annotation is not a Dump.
        """
        if sink is None:
            raise TypeError("sink must not be None")
        writer = DumpWriter(sink,
                            indent_size=self._options.indent_size,
                            max_length=self._options.max_dump_length)
        self._dump(value, writer, annotation)

    def dumps(self, value: Any, *, annotation: Dump | None = None) -> str:
        """Return the rendering of value as a string."""
        writer = DumpWriter(indent_size=self._options.indent_size,
                            max_length=self._options.max_dump_length)
        self._dump(value, writer, annotation)
        return writer.getvalue()

    # Traversal ----------------------------------------

    def _dump(self, value: Any, writer: DumpWriter, annotation: Dump | None) -> None:
        if annotation is not None and not isinstance(annotation, Dump):
            raise TypeError(f"annotation must be a Dump instance or None, but found {fmt_type(annotation)}")

        if value is None and annotation is not None and annotation.include_nulls is ShouldDump.SKIP:
            return

        state = _DumpState(writer=writer, options=self._options, cache=self._cache)
        self._write_value(state, value,
                          member=annotation or Dump.DEFAULT,
                          container=Dump.DEFAULT,
                          budget=self._options.max_depth)

    def _write_value(self,
                     state: _DumpState,
                     value: Any,
                     member: Dump,
                     container: Dump,
                     budget: int,
                     recurse: bool = True,
                     ) -> None:
        """Write one value; failures are absorbed into an inline error marker."""
        try:
            self._write_value_unsafe(state, value, member, container, budget, recurse)
        except Exception as exc:
            logger.debug("dump of %s failed", _type_name(value), exc_info=True)
            state.writer.write_value(fmt_error(exc))

    def _write_value_unsafe(self,
                            state: _DumpState,
                            value: Any,
                            member: Dump,
                            container: Dump,
                            budget: int,
                            recurse: bool,
                            ) -> None:
        writer = state.writer
        if value is None:
            writer.write_value(NULL)
            return

        meta = state.cache.get_or_build(type(value))
        view = combine(member, meta.annotation)

        category = meta.category
        members: list[MemberInfo] = []
        if category == "composite" or (category == "collection" and (meta.members or _is_named_tuple(value))):
            members = _instance_members(value, meta)
            if category == "composite" and not members:
                category = "leaf"

        if category != "leaf" and id(value) in state.visited:
            writer.write_value(fmt_cycle(value))
            return

        if not isunset(member.max_depth):
            budget = member.max_depth
        else:
            budget = min(budget, ifunset(meta.annotation.max_depth, default=budget))
        if category != "leaf" and budget <= 0:
            writer.write_value(fmt_max_depth(value))
            return

        # Only a dumper declared on the member itself may see a masked value
        custom = member.custom_dumper()
        if custom is None and view.mask:
            writer.write_value(view.mask_value)
            return

        if custom is None:
            custom = self._custom_dumper(state, value, meta.annotation)
        if custom is not None:
            writer.write_value(self._call_custom(custom, value))
            return

        if category == "leaf" or not recurse or view.value_format:
            writer.write_value(self._fmt_leaf(state, value, view, member, container, meta))
            return

        if category == "collection" and not members:
            self._write_collection(state, value, view, member, container, meta, budget)
            return

        self._write_composite(state, value, view, member, container, meta, members, budget)

    def _write_composite(self,
                         state: _DumpState,
                         value: Any,
                         view: Dump,
                         member: Dump,
                         container: Dump,
                         meta: TypeMetadata,
                         members: list[MemberInfo],
                         budget: int,
                         ) -> None:
        writer = state.writer
        type_ann = meta.annotation

        state.visited.add(id(value))
        try:
            if view.default_property:
                shorthand = next((m for m in members if m.name == view.default_property), None)
                if shorthand is not None:
                    self._write_default_property(state, value, shorthand, type_ann, budget)
                    return

            writer.write(fmt_type_header(value, state.options.fully_qualified_names) + ":")
            with writer.indented():
                for info in members:
                    self._write_member(state, value, info, type_ann, budget - 1)
                if meta.category == "collection" and not _is_named_tuple(value):
                    writer.new_line()
                    self._write_collection(state, value, view, member, container, meta, budget, entered=True)
        finally:
            state.visited.discard(id(value))

    def _write_default_property(self,
                                state: _DumpState,
                                owner: Any,
                                info: MemberInfo,
                                type_ann: Dump,
                                budget: int,
                                ) -> None:
        try:
            value = info.getter(owner)
        except Exception as exc:
            logger.debug("getter %s of %s failed", info.name, _type_name(owner), exc_info=True)
            state.writer.write_value(fmt_error(exc))
            return
        self._write_value(state, value, info.annotation, type_ann, budget - 1,
                          recurse=_recurses(info.annotation, type_ann))

    def _write_member(self,
                      state: _DumpState,
                      owner: Any,
                      info: MemberInfo,
                      container: Dump,
                      budget: int,
                      ) -> None:
        ann = info.annotation
        if not ann.include:
            return

        writer = state.writer
        try:
            value = info.getter(owner)
        except Exception as exc:
            if isinstance(exc, AttributeError) and info.optional:
                return
            logger.debug("getter %s of %s failed", info.name, _type_name(owner), exc_info=True)
            writer.new_line()
            writer.write_label(self._fmt_label(state, info.name, ann, container), state.options.label_separator)
            writer.write_value(fmt_error(exc))
            return

        if info.optional and _is_declaration(owner, info.name, value):
            return
        if value is None and effective(ann.include_nulls, container.include_nulls) is ShouldDump.SKIP:
            return

        writer.new_line()
        writer.write_label(self._fmt_label(state, info.name, ann, container), state.options.label_separator)
        self._write_value(state, value, ann, container, budget, recurse=_recurses(ann, container))

    def _write_collection(self,
                          state: _DumpState,
                          value: Any,
                          view: Dump,
                          member: Dump,
                          container: Dump,
                          meta: TypeMetadata,
                          budget: int,
                          entered: bool = False,
                          ) -> None:
        writer = state.writer
        count = safe_len(value)
        header = fmt_collection_header(value, count)

        if effective(view.enumerate, container.enumerate) is ShouldDump.SKIP or count == 0:
            writer.write(header)
            return

        limit = _length_limit(member, meta.annotation, container, state.options.max_items)
        if not entered:
            state.visited.add(id(value))
        try:
            try:
                items, more = head(_iter_items(value), limit)
            except Exception as exc:
                logger.debug("iteration of %s failed", _type_name(value), exc_info=True)
                writer.write(f"{header}: {fmt_error(exc)}")
                return

            writer.write(header + ":")
            is_mapping = isinstance(value, abc.Mapping)
            with writer.indented():
                for item in items:
                    writer.new_line()
                    if is_mapping:
                        key, item = item
                        writer.write_label(self._fmt_key(key), state.options.label_separator)
                    self._write_value(state, item, Dump.DEFAULT, meta.annotation, budget - 1)
                if more:
                    writer.new_line()
                    writer.write(fmt_more(count - len(items)) if count is not None else "...")
        finally:
            if not entered:
                state.visited.discard(id(value))

    # Rendering helpers --------------------------------

    def _fmt_leaf(self,
                  state: _DumpState,
                  value: Any,
                  view: Dump,
                  member: Dump,
                  container: Dump,
                  meta: TypeMetadata,
                  ) -> str:
        options = state.options
        if view.value_format:
            text = fmt_template(view.value_format, value)
        elif isinstance(value, BYTES_TYPES):
            return fmt_bytes(value, _length_limit(member, meta.annotation, container, options.max_items))
        elif meta.category == "leaf":
            text = fmt_leaf(value)
        else:
            text = safe_str(value)
        return truncate(text, _length_limit(member, meta.annotation, container, options.max_str_length))

    def _fmt_label(self, state: _DumpState, name: str, ann: Dump, container: Dump) -> str:
        template = ann.label_format or container.label_format or state.options.label_format
        try:
            return template.format(name)
        except (ValueError, IndexError, KeyError, AttributeError):
            return name

    def _fmt_key(self, key: Any) -> str:
        if isinstance(key, str):
            return key
        return fmt_leaf(key)

    def _custom_dumper(self, state: _DumpState, value: Any, type_ann: Dump) -> TypeHandler | None:
        dumper = state.options.get_type_handler(value)
        if dumper is None:
            dumper = type_ann.custom_dumper()
        return dumper

    def _call_custom(self, dumper: TypeHandler, value: Any) -> str:
        try:
            text = dumper(value)
        except Exception as exc:
            logger.debug("custom dumper of %s failed", _type_name(value), exc_info=True)
            return fmt_error(exc)
        return text if isinstance(text, str) else safe_str(text)


# Methods --------------------------------------------------------------------------------------------------------------

def configure(preset: "str | DumpOptions | None" = None, **overrides) -> DumpOptions:
    """
    Set the module level options used by dump(), dumps() and TextDumper() without options.

    Args:
        preset: "default", "compact", "debug", "logging", a DumpOptions instance,
                or None to keep the current options.
        **overrides: DumpOptions fields replacing the preset's values.

    Returns:
        A copy of the new module options.

    Raises:
        ValueError: On an unknown preset name.
        TypeError: On an unknown option or a preset of wrong type.
    """
    global _options
    with _options_lock:
        if preset is None:
            base = _options
        elif isinstance(preset, DumpOptions):
            base = preset
        elif isinstance(preset, str):
            factory = _PRESETS.get(preset)
            if factory is None:
                raise ValueError(f"unknown preset {preset!r}, expected one of {sorted(_PRESETS)}")
            base = factory()
        else:
            raise TypeError(f"preset must be a str, DumpOptions or None, but found {fmt_type(preset)}")
        _options = base.merge(**overrides)
        return _options.merge()


def get_options() -> DumpOptions:
    """Copy of the module level options."""
    with _options_lock:
        return _options.merge()


def dump(value: Any,
         sink: Any,
         *,
         options: DumpOptions | None = None,
         annotation: Dump | None = None,
         ) -> None:
    """
    Write the rendering of value to sink using the process-wide metadata cache.

    Raises:
        TypeError: If sink is None or has no write() method.
    """
    TextDumper(options).dump(value, sink, annotation=annotation)


def dumps(value: Any,
          *,
          options: DumpOptions | None = None,
          annotation: Dump | None = None,
          ) -> str:
    """Return the rendering of value using the process-wide metadata cache."""
    return TextDumper(options).dumps(value, annotation=annotation)


# Private Methods ------------------------------------------------------------------------------------------------------

_PRESETS: dict[str, Callable[[], DumpOptions]] = {
    "default": DumpOptions,
    "compact": DumpOptions.compact_options,
    "debug": DumpOptions.debug_options,
    "logging": DumpOptions.logging_options,
}

_options_lock = threading.Lock()
_options = DumpOptions()


def _instance_members(value: Any, meta: TypeMetadata) -> list[MemberInfo]:
    """Declared members of the type plus public instance attributes in insertion order."""
    members = list(meta.members)
    try:
        attrs = vars(value)
    except TypeError:
        attrs = {}

    if not members and not attrs and _is_named_tuple(value):
        return [MemberInfo(name=name, kind=MemberKind.DYNAMIC) for name in type(value)._fields]

    known = meta.member_names
    extras = [
        MemberInfo(
            name=name,
            annotation=meta.member_annotations.get(name, Dump.DEFAULT),
            kind=MemberKind.DYNAMIC,
            explicit=name in meta.member_annotations,
        )
        for name in list(attrs)
        if isinstance(name, str) and not name.startswith("_") and name not in known
    ]
    if not extras:
        return members
    if any(m.annotation.order is not None for m in extras):
        return sort_members(members + extras)
    return members + extras


def _iter_items(value: Any):
    if isinstance(value, abc.Mapping):
        return iter(value.items())
    if isinstance(value, abc.Set) and not isinstance(value, abc.MappingView):
        try:
            return iter(sorted(value))
        except TypeError:
            return iter(value)
    return iter(value)


def _length_limit(member: Dump, type_ann: Dump, container: Dump, ambient: int) -> int:
    """Explicit member limit wins, else the narrowest of the type, container and ambient limits."""
    if not isunset(member.max_length):
        return member.max_length
    limit = ambient
    for ann in (type_ann, container):
        if ann.max_length is not UNSET:
            limit = _narrower(limit, ann.max_length)
    return limit


def _narrower(a: int, b: int) -> int:
    if a < 0:
        return b
    if b < 0:
        return a
    return min(a, b)


def _is_declaration(owner: Any, name: str, value: Any) -> bool:
    """True if value is the class body Dump declaring the member, i.e. the instance never set it."""
    return isinstance(value, Dump) and getattr(type(owner), name, None) is value


def _recurses(member: Dump, container: Dump) -> bool:
    return effective(member.recurse, container.recurse) is not ShouldDump.SKIP


def _is_named_tuple(value: Any) -> bool:
    return isinstance(value, tuple) and hasattr(type(value), "_fields")


def _type_name(value: Any) -> str:
    return class_name(value, fully_qualified=True)
