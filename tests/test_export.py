import json

from api_doc_reader.config import ReaderSettings
from api_doc_reader.export import schema_dict, to_swagger
from api_doc_reader.models import APIDescription, ComposedModel, FlatModel, Operation, PropertySchema
from api_doc_reader.reader import ApiReader
import sample_api


class TestSchemaDict:
    def test_reference(self):
        assert schema_dict(PropertySchema(ref="Pet")) == {"$ref": "#/definitions/Pet"}

    def test_nested_array(self):
        schema = PropertySchema(type="array", items=PropertySchema(type="string"), unique_items=True)
        assert schema_dict(schema) == {"type": "array", "items": {"type": "string"}, "uniqueItems": True}

    def test_map(self):
        schema = PropertySchema(type="object", additional_properties=PropertySchema(ref="Pet"))
        assert schema_dict(schema) == {"type": "object", "additionalProperties": {"$ref": "#/definitions/Pet"}}


class TestToSwagger:
    def test_empty_description(self):
        doc = to_swagger(APIDescription())
        assert doc == {"swagger": "2.0", "info": {"title": "API", "version": "1.0"}, "paths": {}}

    def test_settings_fill_info(self):
        doc = to_swagger(APIDescription(base_path="/v2"), ReaderSettings(title="Pet Store", version="2.1"))
        assert doc["info"] == {"title": "Pet Store", "version": "2.1"}
        assert doc["basePath"] == "/v2"

    def test_composed_models_render_as_all_of(self):
        description = ApiReader().read(sample_api.AnApiWithInheritance)
        definitions = to_swagger(description)["definitions"]

        sub = definitions["SomeResponseWithAbstractInheritance"]
        assert sub["allOf"][0] == {"$ref": "#/definitions/SomeResponseBaseClass"}
        assert sub["allOf"][1]["properties"] == {"class_property": {"type": "string"}}

        base = definitions["SomeResponseBaseClass"]
        assert base["discriminator"] == "type"
        assert base["required"] == ["type"]

    def test_discriminator_value_is_exported(self):
        model = ComposedModel(name="Cat", parent="Animal", child=FlatModel(name="Cat"), discriminator_value="cat")
        definitions = to_swagger(APIDescription(definitions={"Cat": model}))["definitions"]
        assert definitions["Cat"]["x-discriminator-value"] == "cat"

    def test_operations_and_parameters(self):
        description = ApiReader().read(sample_api.PetApi)
        paths = to_swagger(description)["paths"]

        add_pet = paths["/owners/{ownerId}/pets"]["post"]
        assert add_pet["operationId"] == "addPet"
        assert add_pet["parameters"][0] == {
            "name": "pet",
            "in": "body",
            "required": True,
            "schema": {"$ref": "#/definitions/Pet"},
        }
        assert set(add_pet["responses"]) == {"201", "400", "409"}

        replace = paths["/owners/{ownerId}/pets/{petId}"]["put"]
        status = next(p for p in replace["parameters"] if p["name"] == "status")
        assert status["enum"] == ["sold", "available"]
        assert status["default"] == "available"
        assert status["type"] == "string"

        assert paths["/owners/{ownerId}/pets/{petId}"]["get"]["deprecated"] is True
        assert "delete" not in paths["/owners/{ownerId}/pets/{petId}"]

    def test_hidden_operations_are_marked(self):
        description = ApiReader().read(sample_api.MixedVisibilityApi, read_hidden=True)
        paths = to_swagger(description)["paths"]
        assert paths["/mixed/internal"]["get"]["x-hidden"] is True
        assert "x-hidden" not in paths["/mixed/visible"]["get"]

    def test_duplicate_method_on_path_keeps_first(self, caplog):
        description = APIDescription(paths={"/a": [
            Operation(method="GET", path="/a", operation_id="first"),
            Operation(method="GET", path="/a", operation_id="second"),
        ]})
        doc = to_swagger(description)
        assert doc["paths"]["/a"]["get"]["operationId"] == "first"
        assert "declared more than once" in caplog.text

    def test_document_is_json_serializable(self):
        description = ApiReader().read(sample_api.PetApi, sample_api.AnApiWithInheritance, sample_api.PagedApi)
        text = json.dumps(to_swagger(description))
        assert '"PageItem"' in text
