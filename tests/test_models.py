import pytest
from pydantic import TypeAdapter, ValidationError

from api_doc_reader.errors import ModelConflict
from api_doc_reader.models import (
    APIDescription,
    ComposedModel,
    FlatModel,
    ModelDefinition,
    Operation,
    Parameter,
    PropertySchema,
    Response,
    ResolutionWarning,
    Tag,
)


class TestParameter:
    def test_create_required_param(self):
        p = Parameter(name="id", location="path", required=True, type_schema=PropertySchema(type="integer"))
        assert p.name == "id"
        assert p.required is True
        assert p.description == ""
        assert p.constraints == {}

    def test_create_param_with_constraints(self):
        p = Parameter(
            name="status",
            location="query",
            required=False,
            type_schema=PropertySchema(type="string"),
            description="Pet status",
            default="available",
            constraints={"enum": ["available", "sold"]},
        )
        assert p.constraints["enum"] == ["available", "sold"]
        assert p.default == "available"


class TestTag:
    def test_tags_are_hashable_and_compare_by_value(self):
        assert Tag(name="atag") == Tag(name="atag")
        assert len({Tag(name="atag"), Tag(name="atag")}) == 1

    def test_tags_are_frozen(self):
        tag = Tag(name="atag")
        with pytest.raises(ValidationError):
            tag.name = "other"


class TestOperation:
    def test_create_minimal_operation(self):
        op = Operation(method="GET", path="/apath", operation_id="getOperation")
        assert op.parameters == []
        assert op.responses == {}
        assert op.hidden is False

    def test_operations_compare_by_value(self):
        first = Operation(method="GET", path="/apath", operation_id="a", responses={"200": Response()})
        second = Operation(method="GET", path="/apath", operation_id="a", responses={"200": Response()})
        assert first == second


class TestModelDefinition:
    def test_composed_model_exposes_child_properties(self):
        child = FlatModel(name="Sub", properties={"class_property": PropertySchema(type="string")})
        model = ComposedModel(name="Sub", parent="Base", child=child)
        assert list(model.properties) == ["class_property"]
        assert model.kind == "composed"

    def test_definition_union_is_discriminated_by_kind(self):
        adapter = TypeAdapter(ModelDefinition)
        model = adapter.validate_python({
            "kind": "composed",
            "name": "Sub",
            "parent": "Base",
            "child": {"name": "Sub", "properties": {}},
        })
        assert isinstance(model, ComposedModel)
        assert isinstance(adapter.validate_python({"kind": "flat", "name": "Base"}), FlatModel)


class TestAPIDescription:
    def test_fresh_description_is_empty(self):
        description = APIDescription()
        assert description.tags == {}
        assert description.paths == {}
        assert description.definitions == {}
        assert description.operations() == []

    def test_serialization_roundtrip_keeps_model_kinds(self):
        description = APIDescription(
            paths={"/apath": [Operation(method="GET", path="/apath", operation_id="get")]},
            definitions={
                "Base": FlatModel(name="Base", discriminator="type"),
                "Sub": ComposedModel(name="Sub", parent="Base", child=FlatModel(name="Sub")),
            },
        )
        restored = APIDescription(**description.model_dump())
        assert isinstance(restored.definitions["Sub"], ComposedModel)
        assert restored.definitions["Base"].discriminator == "type"
        assert len(restored.operations()) == 1


class TestResolutionWarning:
    def test_from_error(self):
        warning = ResolutionWarning.from_error(ModelConflict("id differs", "sample.Conflict"))
        assert warning.kind == "ModelConflict"
        assert warning.subject == "sample.Conflict"
        assert warning.message == "id differs"
