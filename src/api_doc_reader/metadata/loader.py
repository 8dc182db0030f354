"""Type descriptor documents (YAML or JSON).

Loads descriptors produced by an external discovery step into the same
immutable TypeDescriptors the Python introspection produces.

Example::

    types:
      - name: com.example.AnApi
        annotations:
          Api: {tags: [atag]}
          Path: /apath
        methods:
          - name: getOperation
            annotations: {GET: true}
            returns: com.example.SomeResponse
"""

import logging
import re
from pathlib import Path

import yaml

from api_doc_reader.metadata.annotations import (
    API,
    API_MODEL,
    API_MODEL_PROPERTY,
    API_OPERATION,
    API_PARAM,
    API_RESPONSES,
    BEAN_PARAM,
    BINDING,
    CONTEXT,
    JSON_SUB_TYPES,
    JSON_TYPE_INFO,
    Api,
    ApiModel,
    ApiModelProperty,
    ApiOperation,
    ApiParam,
    ApiResponse,
    BeanParam,
    Context,
    JsonSubTypes,
    JsonTypeInfo,
    ParamBinding,
)
from api_doc_reader.metadata.descriptor import (
    Member,
    MethodDescriptor,
    ParameterDescriptor,
    TypeDescriptor,
    TypeKind,
    TypeRef,
    frozen_mapping,
)

logger = logging.getLogger(__name__)

PRIMITIVE_TYPES: dict[str, tuple[str, str]] = {
    "string": ("string", ""),
    "integer": ("integer", "int32"),
    "int": ("integer", "int32"),
    "long": ("integer", "int64"),
    "number": ("number", ""),
    "float": ("number", "float"),
    "double": ("number", "double"),
    "boolean": ("boolean", ""),
    "bool": ("boolean", ""),
    "byte": ("string", "byte"),
    "binary": ("string", "binary"),
    "date": ("string", "date"),
    "date-time": ("string", "date-time"),
    "uuid": ("string", "uuid"),
}

_BINDINGS = {
    "PathParam": "path",
    "QueryParam": "query",
    "HeaderParam": "header",
    "CookieParam": "cookie",
    "FormParam": "formData",
}

_TUPLE_FIELDS = ("tags", "produces", "consumes", "allowable_values")

_GENERIC = re.compile(r"^([\w.$-]+)\[(.*)\]$")


class DescriptorError(ValueError):
    """The descriptor document itself cannot be read."""


def load_descriptors(file_path: Path) -> list[TypeDescriptor]:
    """Load every type descriptor from a YAML or JSON document."""
    text = file_path.read_text(encoding="utf-8")
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DescriptorError(f"{file_path}: {e}") from e
    if not isinstance(doc, dict) or not isinstance(doc.get("types"), list):
        raise DescriptorError(f"{file_path}: expected a mapping with a 'types' list")
    return parse_descriptors(doc["types"])


def parse_descriptors(entries: list[dict]) -> list[TypeDescriptor]:
    return [_parse_type(entry) for entry in entries]


def _parse_type(entry: dict) -> TypeDescriptor:
    name = entry["name"]
    params = tuple(entry.get("type_params", []))
    kind = TypeKind(entry.get("kind", "class"))
    return TypeDescriptor(
        name=name,
        kind=kind,
        simple_name=entry.get("simple_name", ""),
        members=tuple(_parse_member(m, name, params) for m in entry.get("members", [])),
        supertype=parse_type(entry["supertype"], params) if entry.get("supertype") else None,
        interfaces=tuple(parse_type(i, params) for i in entry.get("interfaces", [])),
        annotations=frozen_mapping(_parse_annotations(entry.get("annotations", {}), params)),
        methods=tuple(_parse_method(m, name, params) for m in entry.get("methods", [])),
        type_params=params,
        enum_values=tuple(entry.get("enum", [])),
    )


def _parse_member(entry: dict, owner: str, params: tuple) -> Member:
    return Member(
        name=entry["name"],
        type=parse_type(entry.get("type", "object"), params),
        declared_in=owner,
        annotations=frozen_mapping(_parse_annotations(entry.get("annotations", {}), params)),
    )


def _parse_method(entry: dict, owner: str, params: tuple) -> MethodDescriptor:
    parameters = []
    for p in entry.get("parameters", []):
        parameters.append(ParameterDescriptor(
            name=p["name"],
            type=parse_type(p.get("type", "string"), params),
            annotations=frozen_mapping(_parse_annotations(p.get("annotations", {}), params)),
            has_default="default" in p,
            default=p.get("default"),
        ))
    return MethodDescriptor(
        name=entry["name"],
        declared_in=owner,
        parameters=tuple(parameters),
        returns=parse_type(entry.get("returns", "void"), params),
        annotations=frozen_mapping(_parse_annotations(entry.get("annotations", {}), params)),
    )


def parse_type(text: str, type_params: tuple = ()) -> TypeRef:
    """Parse the descriptor type grammar into a TypeRef.

    ``string``, ``long``, ``list[T]``, ``set[T]``, ``array[T]``, ``T[]``,
    ``map[T]``, ``Name[Arg, ...]``, ``object``, ``void`` and type
    parameter names.
    """
    text = text.strip()
    if text.endswith("[]"):
        return TypeRef.array(parse_type(text[:-2], type_params))
    if text in ("void", ""):
        return TypeRef.void()
    if text in ("object", "any"):
        return TypeRef.any()
    if text in type_params:
        return TypeRef.type_var(text)
    if text in PRIMITIVE_TYPES:
        return TypeRef.primitive(*PRIMITIVE_TYPES[text])

    match = _GENERIC.match(text)
    if not match:
        return TypeRef.named(text)
    head, inner = match.group(1), match.group(2)
    args = [parse_type(a, type_params) for a in _split_args(inner)]
    if head == "list":
        return TypeRef.collection(args[0])
    if head == "set":
        return TypeRef.collection(args[0], unique=True)
    if head == "array":
        return TypeRef.array(args[0])
    if head == "map":
        return TypeRef.map(args[-1])
    return TypeRef.named(head, tuple(args))


def _split_args(inner: str) -> list[str]:
    parts, depth, current = [], 0, ""
    for ch in inner:
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append(current)
            current = ""
        else:
            current += ch
    parts.append(current)
    return [p.strip() for p in parts if p.strip()]


def _parse_annotations(raw: dict, params: tuple) -> dict:
    result = {}
    for name, value in raw.items():
        try:
            result.update(_convert(name, value, params))
        except (TypeError, ValueError, KeyError) as e:
            # Kept raw: consumers treat unexpected value shapes as malformed.
            logger.warning("Annotation %s has an unexpected value %r: %s", name, value, e)
            result[name] = value
    return result


def _convert(name: str, value, params: tuple) -> dict:
    if name in _BINDINGS:
        return {BINDING: ParamBinding(_BINDINGS[name], value if isinstance(value, str) else "")}
    if name == "Body":
        return {BINDING: ParamBinding("body")}
    if name == BEAN_PARAM:
        return {BEAN_PARAM: BeanParam()}
    if name == CONTEXT:
        return {CONTEXT: Context()}
    if name == API:
        return {API: Api(**_tuples(value or {}))}
    if name == API_OPERATION:
        fields = _tuples(value or {})
        if fields.get("response"):
            fields["response"] = parse_type(fields["response"], params)
        return {API_OPERATION: ApiOperation(**fields)}
    if name == API_RESPONSES:
        responses = []
        for entry in value:
            fields = dict(entry)
            if fields.get("response"):
                fields["response"] = parse_type(fields["response"], params)
            responses.append(ApiResponse(**fields))
        return {API_RESPONSES: tuple(responses)}
    if name == API_PARAM:
        return {API_PARAM: ApiParam(**_tuples(value or {}))}
    if name == API_MODEL:
        return {API_MODEL: ApiModel(**(value or {}))}
    if name == API_MODEL_PROPERTY:
        return {API_MODEL_PROPERTY: ApiModelProperty(**_tuples(value or {}))}
    if name == JSON_TYPE_INFO:
        return {JSON_TYPE_INFO: JsonTypeInfo(**(value or {}))}
    if name == JSON_SUB_TYPES:
        return {JSON_SUB_TYPES: JsonSubTypes(tuple(parse_type(t, params) for t in value))}
    if name in ("Produces", "Consumes"):
        return {name: tuple([value] if isinstance(value, str) else value)}
    return {name: value}


def _tuples(fields: dict) -> dict:
    fields = dict(fields)
    for key in _TUPLE_FIELDS:
        if isinstance(fields.get(key), str):
            fields[key] = (fields[key],)
        elif key in fields:
            fields[key] = tuple(fields[key])
    return fields
