"""Render an APIDescription as a Swagger 2.0 shaped document."""

import logging

from api_doc_reader.config import ReaderSettings
from api_doc_reader.models import (
    APIDescription,
    ComposedModel,
    FlatModel,
    Operation,
    Parameter,
    PropertySchema,
)

logger = logging.getLogger(__name__)

DEFINITIONS_PREFIX = "#/definitions/"


def to_swagger(description: APIDescription, settings: ReaderSettings | None = None) -> dict:
    """Build a plain dict ready for JSON or YAML serialization."""
    settings = settings or ReaderSettings()
    doc: dict = {
        "swagger": "2.0",
        "info": {"title": settings.title, "version": settings.version},
    }
    if description.base_path:
        doc["basePath"] = description.base_path
    if description.tags:
        doc["tags"] = [_tag(t.name, t.description) for t in description.tags.values()]

    paths: dict = {}
    for path, operations in description.paths.items():
        item = paths.setdefault(path, {})
        for op in operations:
            key = op.method.lower()
            if key in item:
                logger.warning("%s %s is declared more than once; keeping %s", op.method, path, item[key]["operationId"])
                continue
            item[key] = _operation(op)
    doc["paths"] = paths

    if description.definitions:
        doc["definitions"] = {name: _model(model) for name, model in description.definitions.items()}
    return doc


def _tag(name: str, description: str) -> dict:
    return {"name": name, "description": description} if description else {"name": name}


def _operation(op: Operation) -> dict:
    result: dict = {"operationId": op.operation_id}
    if op.tags:
        result["tags"] = list(op.tags)
    if op.summary:
        result["summary"] = op.summary
    if op.description:
        result["description"] = op.description
    if op.consumes:
        result["consumes"] = list(op.consumes)
    if op.produces:
        result["produces"] = list(op.produces)
    if op.parameters:
        result["parameters"] = [_parameter(p) for p in op.parameters]
    result["responses"] = {
        code: _response(resp.description, resp.response_schema) for code, resp in op.responses.items()
    }
    if op.deprecated:
        result["deprecated"] = True
    if op.hidden:
        result["x-hidden"] = True
    return result


def _response(description: str, schema: PropertySchema | None) -> dict:
    result: dict = {"description": description}
    if schema is not None:
        result["schema"] = schema_dict(schema)
    return result


def _parameter(param: Parameter) -> dict:
    result: dict = {"name": param.name, "in": param.location, "required": param.required}
    if param.description:
        result["description"] = param.description
    if param.location == "body":
        result["schema"] = schema_dict(param.type_schema)
        return result
    result.update(schema_dict(param.type_schema))
    if param.default is not None:
        result["default"] = param.default
    result.update(param.constraints)
    return result


def schema_dict(schema: PropertySchema) -> dict:
    if schema.ref:
        return {"$ref": DEFINITIONS_PREFIX + schema.ref}
    result: dict = {}
    if schema.type:
        result["type"] = schema.type
    if schema.format:
        result["format"] = schema.format
    if schema.items is not None:
        result["items"] = schema_dict(schema.items)
    if schema.additional_properties is not None:
        result["additionalProperties"] = schema_dict(schema.additional_properties)
    if schema.unique_items:
        result["uniqueItems"] = True
    if schema.enum is not None:
        result["enum"] = list(schema.enum)
    if schema.description:
        result["description"] = schema.description
    if schema.read_only:
        result["readOnly"] = True
    if schema.example:
        result["example"] = schema.example
    return result


def _flat(model: FlatModel) -> dict:
    result: dict = {"type": "object"}
    if model.description:
        result["description"] = model.description
    if model.discriminator:
        result["discriminator"] = model.discriminator
    if model.required:
        result["required"] = list(model.required)
    result["properties"] = {name: schema_dict(s) for name, s in model.properties.items()}
    return result


def _model(model: FlatModel | ComposedModel) -> dict:
    if isinstance(model, ComposedModel):
        refs = [{"$ref": DEFINITIONS_PREFIX + name} for name in [model.parent] + list(model.interfaces)]
        result: dict = {"allOf": refs + [_flat(model.child)]}
        if model.discriminator_value:
            result["x-discriminator-value"] = model.discriminator_value
        if model.description:
            result["description"] = model.description
        return result
    return _flat(model)
