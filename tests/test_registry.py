#
# Textdumper - Registry Tests
#

# Standard library -----------------------------------------------------------------------------------------------------
import logging
from decimal import Decimal
from typing import Annotated

# Third-party ----------------------------------------------------------------------------------------------------------
import pytest

# Local ----------------------------------------------------------------------------------------------------------------
from textdumper.annotations import Dump, dump
from textdumper.introspect import MemberKind
from textdumper.registry import MetadataRegistry, ShadowEntry


# Local Classes & Methods ----------------------------------------------------------------------------------------------

class Target:
    alpha: int
    beta: Annotated[int, Dump(order=5)]


class TargetShadow:
    alpha = Dump(mask=True)
    beta = Dump(mask=True)
    gamma = Dump(order=1)


@dump(order=3)
class Annotated3:
    pass


class Child(Annotated3):
    pass


class GrandChild(Child):
    pass


@dump(default_property="name")
class NamedShadow:
    name = Dump()


def describe_base(value):
    return "base"


@dump(dump_method=describe_base)
class Described:
    pass


@dump(max_depth=3)
class DescribedChild(Described):
    pass


class Url:
    def __init__(self, path):
        self._path = path


class UrlShadow:
    @property
    def path(self):
        return self._path


# Tests ----------------------------------------------------------------------------------------------------------------

class TestRegistration:
    def test_register_shadow_chains(self):
        """Registration returns the registry."""
        registry = MetadataRegistry()
        result = registry.register_shadow(Target, TargetShadow).register(Decimal, annotation=Dump(max_length=3))
        assert result is registry
        assert Target in registry
        assert Decimal in registry
        assert len(registry) == 2

    def test_last_write_wins(self, caplog):
        """Registering a target again replaces the previous entry."""
        registry = MetadataRegistry()
        registry.register(Target, annotation=Dump(order=1))
        with caplog.at_level(logging.DEBUG, logger="textdumper.registry"):
            registry.register(Target, annotation=Dump(order=2))
        assert registry.shadow_of(Target).annotation == Dump(order=2)
        assert "replaced" in caplog.text

    def test_unregister(self):
        registry = MetadataRegistry().register_shadow(Target, TargetShadow)
        registry.unregister(Target).unregister(Decimal)
        assert Target not in registry
        assert len(registry) == 0

    def test_snapshot_is_copy(self):
        registry = MetadataRegistry().register_shadow(Target, TargetShadow)
        snap = registry.snapshot()
        snap.clear()
        assert Target in registry
        assert list(registry) == [Target]

    @pytest.mark.parametrize(
        ("args", "kwargs", "exc", "match"),
        [
            pytest.param((Target(), TargetShadow), {}, TypeError, r"(?i)target must be a type", id="target-instance"),
            pytest.param((Target, TargetShadow()), {}, TypeError, r"(?i)descriptor must be a type", id="descriptor"),
            pytest.param((Target,), {"annotation": "mask"}, TypeError, r"(?i)annotation must be a Dump", id="annotation"),
            pytest.param((Target,), {}, ValueError, r"(?i)descriptor or annotation required", id="empty"),
        ],
    )
    def test_invalid_registration(self, args, kwargs, exc, match):
        with pytest.raises(exc, match=match):
            MetadataRegistry().register(*args, **kwargs)

    def test_register_shadow_requires_type(self):
        with pytest.raises(TypeError, match=r"(?i)descriptor must be a type"):
            MetadataRegistry().register_shadow(Target, None)


class TestShadowEntry:
    def test_annotation_over_descriptor(self):
        """An explicit annotation wins over the descriptor's @dump annotation."""
        entry = ShadowEntry(Target, NamedShadow, Dump(order=1))
        assert entry.type_annotation == Dump(order=1)

    def test_descriptor_annotation(self):
        assert ShadowEntry(Target, NamedShadow).type_annotation == Dump(default_property="name")

    def test_no_annotation(self):
        assert ShadowEntry(Target, TargetShadow).type_annotation is None


class TestResolveTypeAnnotation:
    def test_default(self):
        assert MetadataRegistry().resolve_type_annotation(Target) is Dump.DEFAULT

    def test_own_annotation(self):
        assert MetadataRegistry().resolve_type_annotation(Annotated3) == Dump(order=3)

    def test_inherited_through_mro(self):
        """Subclasses without their own annotation use the nearest annotated ancestor."""
        assert MetadataRegistry().resolve_type_annotation(GrandChild) == Dump(order=3)

    def test_own_over_registered(self):
        """@dump on the class itself wins over a registration for the same class."""
        registry = MetadataRegistry().register(Annotated3, annotation=Dump(order=9))
        assert registry.resolve_type_annotation(Annotated3) == Dump(order=3)

    def test_registered_nearer_than_own_of_ancestor(self):
        """A registration for a subclass is nearer than @dump on its base."""
        registry = MetadataRegistry().register(Child, annotation=Dump(mask=True))
        assert registry.resolve_type_annotation(GrandChild) == Dump(mask=True)

    def test_ancestor_dumper_kept(self):
        """A nearer annotation without a custom dumper keeps the dumper declared on an ancestor."""
        resolved = MetadataRegistry().resolve_type_annotation(DescribedChild)
        assert resolved == Dump(max_depth=3, dump_method=describe_base)

    def test_registered_dumper_on_ancestor(self):
        registry = MetadataRegistry().register(Annotated3, annotation=Dump(dump_method=describe_base))
        assert registry.resolve_type_annotation(GrandChild) == Dump(order=3, dump_method=describe_base)

    def test_descriptor_type_annotation(self):
        registry = MetadataRegistry().register_shadow(Target, NamedShadow)
        assert registry.resolve_type_annotation(Target) == Dump(default_property="name")

    def test_builtin_registration(self):
        registry = MetadataRegistry().register(Decimal, annotation=Dump(value_format="{0:.2f}"))
        assert registry.resolve_type_annotation(Decimal).value_format == "{0:.2f}"


class TestResolveMembers:
    def test_shadow_fills_unannotated_members(self):
        """Own explicit annotations win; shadow annotations fill the rest; extra shadow members are appended."""
        registry = MetadataRegistry().register_shadow(Target, TargetShadow)
        assert registry.resolve_member_annotations(Target) == [
            ("alpha", Dump(mask=True)),
            ("beta", Dump(order=5)),
            ("gamma", Dump(order=1)),
        ]

    def test_without_shadow(self):
        assert MetadataRegistry().resolve_member_annotations(Target) == [
            ("alpha", Dump()),
            ("beta", Dump(order=5)),
        ]

    def test_nearest_shadow_applies_to_subclass(self):
        class SubTarget(Target):
            pass

        registry = MetadataRegistry().register_shadow(Target, TargetShadow)
        names = [name for name, _ in registry.resolve_member_annotations(SubTarget)]
        assert names == ["alpha", "beta", "gamma"]

    def test_shadow_property_reads_instance(self):
        """Shadow properties become computed members bound to the dumped instance."""
        registry = MetadataRegistry().register_shadow(Url, UrlShadow)
        member = next(m for m in registry.resolve_members(Url) if m.name == "path")
        assert member.kind == MemberKind.PROPERTY
        assert member.getter(Url("/a/b")) == "/a/b"

    def test_builtin_type_has_only_shadow_members(self):
        registry = MetadataRegistry().register_shadow(Decimal, NamedShadow)
        members = registry.resolve_members(Decimal)
        assert [m.name for m in members] == ["name"]
        assert members[0].kind == MemberKind.SHADOW

    def test_shadow_member_annotations(self):
        registry = MetadataRegistry().register_shadow(Target, TargetShadow)
        assert registry.shadow_member_annotations(Target) == {
            "alpha": Dump(mask=True),
            "beta": Dump(mask=True),
            "gamma": Dump(order=1),
        }


class TestBuild:
    def test_composite_sorted(self):
        registry = MetadataRegistry().register_shadow(Target, TargetShadow)
        meta = registry.build(Target)
        assert meta.category == "composite"
        assert [m.name for m in meta.members] == ["gamma", "beta", "alpha"]
        assert meta.member("alpha").annotation == Dump(mask=True)
        assert meta.member("missing") is None

    @pytest.mark.parametrize(
        ("cls", "category"),
        [
            pytest.param(int, "leaf", id="int"),
            pytest.param(str, "leaf", id="str"),
            pytest.param(list, "collection", id="list"),
            pytest.param(dict, "collection", id="dict"),
            pytest.param(Target, "composite", id="user"),
        ],
    )
    def test_category(self, cls, category):
        assert MetadataRegistry().build(cls).category == category

    def test_leaf_has_no_members(self):
        registry = MetadataRegistry().register_shadow(Decimal, NamedShadow)
        assert registry.build(Decimal).members == ()

    def test_build_requires_type(self):
        with pytest.raises(TypeError, match=r"(?i)cls must be a type"):
            MetadataRegistry().build(Target())
