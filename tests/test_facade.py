import pytest

from api_doc_reader.errors import ModelConflict, UnresolvableType
from api_doc_reader.metadata.annotations import API, API_MODEL_PROPERTY, Api
from api_doc_reader.metadata.descriptor import Member, TypeDescriptor, TypeKind, TypeRef
from api_doc_reader.metadata.facade import TypeRegistry
import sample_api
from sample_api import (
    AnApi,
    Category,
    ConflictingResponse,
    DerivedApi,
    Page,
    Pet,
    SomeResponseBaseClass,
    SomeResponseInterface,
    SomeResponseWithAbstractInheritance,
    SomeResponseWithInterfaceInheritance,
)


@pytest.fixture
def registry():
    return TypeRegistry()


class TestCapture:
    def test_kinds(self, registry):
        assert registry.describe(AnApi).kind is TypeKind.CLASS
        assert registry.describe(SomeResponseBaseClass).kind is TypeKind.ABSTRACT_CLASS
        assert registry.describe(SomeResponseInterface).kind is TypeKind.INTERFACE
        assert registry.describe(Category).kind is TypeKind.ENUM

    def test_qualified_and_simple_names(self, registry):
        descriptor = registry.describe(AnApi)
        assert descriptor.name == "sample_api.AnApi"
        assert descriptor.simple_name == "AnApi"

    def test_supertype_and_interfaces(self, registry):
        sub = registry.describe(SomeResponseWithAbstractInheritance)
        assert sub.supertype == TypeRef.named("sample_api.SomeResponseBaseClass")
        assert sub.interfaces == ()

        impl = registry.describe(SomeResponseWithInterfaceInheritance)
        assert impl.supertype is None
        assert impl.interfaces == (TypeRef.named("sample_api.SomeResponseInterface"),)

    def test_property_getters_become_members(self, registry):
        members = registry.describe(SomeResponseInterface).members
        assert [m.name for m in members] == ["inherited_property"]
        assert members[0].type == TypeRef.primitive("string")

    def test_model_property_markers_are_captured(self, registry):
        members = {m.name: m for m in registry.describe(Pet).members}
        assert "age" in members
        assert members["age"].annotations[API_MODEL_PROPERTY].name == "ageInYears"
        assert members["secret"].annotations[API_MODEL_PROPERTY].hidden is True
        assert members["tags"].type == TypeRef.collection(TypeRef.primitive("string"), unique=True)
        assert members["attributes"].type.kind is TypeKind.MAP
        assert members["category"].type == TypeRef.enum("sample_api.Category", ["dog", "cat"])

    def test_generic_type_parameters(self, registry):
        descriptor = registry.describe(Page)
        assert descriptor.type_params == ("T",)
        items = next(m for m in descriptor.members if m.name == "items")
        assert items.type == TypeRef.collection(TypeRef.type_var("T"))

    def test_only_annotated_methods_are_captured(self, registry):
        descriptor = registry.describe(sample_api.MixedVisibilityApi)
        assert [m.name for m in descriptor.methods] == ["visible", "internal"]

    def test_method_parameters_skip_self(self, registry):
        method = next(m for m in registry.describe(sample_api.PetApi).methods if m.name == "get_pet")
        assert [p.name for p in method.parameters] == ["pet_id", "verbose"]
        assert method.parameters[1].has_default is True
        assert method.parameters[1].default is False
        assert method.returns == TypeRef.named("sample_api.Pet")

    def test_string_subtypes_are_resolved_against_the_module(self, registry):
        subtypes = registry.subtypes(registry.describe(SomeResponseBaseClass))
        assert subtypes == [TypeRef.named("sample_api.SomeResponseWithAbstractInheritance")]


class TestLookup:
    def test_describe_by_simple_name_after_capture(self, registry):
        registry.describe(AnApi)
        assert registry.describe("AnApi").name == "sample_api.AnApi"

    def test_unknown_name_is_unresolvable(self, registry):
        with pytest.raises(UnresolvableType):
            registry.describe("com.example.Missing")

    def test_ambiguous_simple_name(self):
        registry = TypeRegistry([
            TypeDescriptor(name="a.Thing"),
            TypeDescriptor(name="b.Thing"),
        ])
        with pytest.raises(UnresolvableType, match="Ambiguous"):
            registry.describe("Thing")

    def test_annotation_never_raises(self, registry):
        descriptor = registry.describe(AnApi)
        assert registry.annotation(descriptor, API) == Api(tags=("atag",))
        assert registry.annotation(descriptor, "Unknown") is None
        assert registry.annotation(object(), API) is None

    def test_is_hidden(self, registry):
        assert registry.is_hidden(registry.describe(sample_api.HiddenApi)) is True
        assert registry.is_hidden(registry.describe(AnApi)) is False


class TestHierarchy:
    def test_ancestors_nearest_first(self, registry):
        descriptor = registry.describe(SomeResponseWithAbstractInheritance)
        assert registry.ancestors(descriptor) == ["sample_api.SomeResponseBaseClass"]
        assert registry.is_subtype(descriptor, "sample_api.SomeResponseBaseClass")

    def test_ancestors_tolerate_cycles(self):
        registry = TypeRegistry([
            TypeDescriptor(name="x.A", supertype=TypeRef.named("x.B")),
            TypeDescriptor(name="x.B", supertype=TypeRef.named("x.A")),
        ])
        assert registry.ancestors(registry.describe("x.A")) == ["x.B"]

    def test_supertypes_list_base_before_interfaces(self, registry):
        descriptor = registry.describe(sample_api.ConflictingResponse)
        assert [s.name for s in registry.supertypes(descriptor)] == [
            "sample_api.HasIdAsString",
            "sample_api.HasIdAsNumber",
        ]

    def test_discriminator_comes_from_nearest_declaration(self, registry):
        assert registry.discriminator(registry.describe(SomeResponseBaseClass)) == "type"
        assert registry.discriminator(registry.describe(sample_api.ConcreteResponse)) == "kind"
        assert registry.discriminator(registry.describe(AnApi)) is None
        assert registry.is_polymorphic(registry.describe(sample_api.ConcreteResponse))


class TestMembers:
    def test_inherited_members_come_first(self, registry):
        members = registry.members(registry.describe(SomeResponseWithAbstractInheritance))
        assert [(m.name, m.inherited) for m in members] == [
            ("inherited_property", True),
            ("class_property", False),
        ]

    def test_own_declaration_overrides_inherited(self, registry):
        members = registry.members(registry.describe(SomeResponseWithInterfaceInheritance))
        assert [m.name for m in members] == ["inherited_property", "class_property"]
        assert all(not m.inherited for m in members)

    def test_generic_arguments_are_substituted(self, registry):
        item = TypeRef.named("sample_api.Item")
        members = {m.name: m for m in registry.members(registry.describe(Page), (item,))}
        assert members["items"].type == TypeRef.collection(item)

    def test_unrelated_conflicting_declarations(self, registry):
        with pytest.raises(ModelConflict, match="'id'"):
            registry.members(registry.describe(ConflictingResponse))

    def test_most_derived_declaration_wins(self):
        string, number = TypeRef.primitive("string"), TypeRef.primitive("integer", "int64")
        registry = TypeRegistry([
            TypeDescriptor(name="x.Root", members=(Member("id", string, "x.Root"),)),
            TypeDescriptor(
                name="x.Mid",
                supertype=TypeRef.named("x.Root"),
                members=(Member("id", number, "x.Mid"),),
            ),
            TypeDescriptor(name="x.Leaf", supertype=TypeRef.named("x.Mid"), interfaces=(TypeRef.named("x.Root"),)),
        ])
        members = registry.members(registry.describe("x.Leaf"))
        assert [(m.name, m.type, m.declared_in) for m in members] == [("id", number, "x.Mid")]


class TestMethods:
    def test_most_derived_override_wins(self, registry):
        methods = registry.methods(registry.describe(DerivedApi))
        assert [m.name for m in methods] == ["version", "ping"]
        assert methods[0].declared_in == "sample_api.DerivedApi"
        assert methods[1].declared_in == "sample_api.BaseResource"
