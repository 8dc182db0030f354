"""Documentation and routing annotations.

Decorators attach structured values to classes, methods and property getters
under ``__api_annotations__``; parameter and field markers are carried as
``typing.Annotated`` metadata. Both are read back by name through the
metadata facade, so resolution never touches the decorators themselves.
"""

from dataclasses import dataclass, field
from typing import Any, Callable

ANNOTATIONS_ATTR = "__api_annotations__"

# Annotation names
API = "Api"
PATH = "Path"
PRODUCES = "Produces"
CONSUMES = "Consumes"
API_MODEL = "ApiModel"
API_MODEL_PROPERTY = "ApiModelProperty"
API_OPERATION = "ApiOperation"
API_RESPONSES = "ApiResponses"
API_PARAM = "ApiParam"
JSON_TYPE_INFO = "JsonTypeInfo"
JSON_SUB_TYPES = "JsonSubTypes"
JSON_TYPE_NAME = "JsonTypeName"
DEPRECATED = "Deprecated"
BINDING = "Binding"
BEAN_PARAM = "BeanParam"
CONTEXT = "Context"

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")


def _as_tuple(value) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value else ()
    return tuple(value)


@dataclass(frozen=True)
class Api:
    value: str = ""
    tags: tuple[str, ...] = ()
    description: str = ""
    hidden: bool = False
    produces: tuple[str, ...] = ()
    consumes: tuple[str, ...] = ()


@dataclass(frozen=True)
class ApiOperation:
    value: str = ""
    notes: str = ""
    nickname: str = ""
    tags: tuple[str, ...] = ()
    hidden: bool = False
    response: Any = None
    response_container: str = ""  # List / Set / Map
    code: int = 200
    produces: tuple[str, ...] = ()
    consumes: tuple[str, ...] = ()


@dataclass(frozen=True)
class ApiResponse:
    code: int
    message: str = ""
    response: Any = None
    container: str = ""


@dataclass(frozen=True)
class ApiModel:
    value: str = ""
    description: str = ""


@dataclass(frozen=True)
class ApiModelProperty:
    value: str = ""
    name: str = ""
    required: bool = False
    hidden: bool = False
    read_only: bool = False
    example: str = ""
    allowable_values: tuple = ()


@dataclass(frozen=True)
class ApiParam:
    value: str = ""
    required: bool | None = None
    hidden: bool = False
    default: Any = None
    allowable_values: tuple = ()


@dataclass(frozen=True)
class JsonTypeInfo:
    property: str = "type"


@dataclass(frozen=True)
class JsonSubTypes:
    types: tuple = ()


@dataclass(frozen=True)
class ParamBinding:
    """Explicit binding of a method parameter to a request location."""

    location: str
    name: str = ""


def PathParam(name: str = "") -> ParamBinding:
    return ParamBinding("path", name)


def QueryParam(name: str = "") -> ParamBinding:
    return ParamBinding("query", name)


def HeaderParam(name: str = "") -> ParamBinding:
    return ParamBinding("header", name)


def CookieParam(name: str = "") -> ParamBinding:
    return ParamBinding("cookie", name)


def FormParam(name: str = "") -> ParamBinding:
    return ParamBinding("formData", name)


def Body() -> ParamBinding:
    return ParamBinding("body")


@dataclass(frozen=True)
class BeanParam:
    """Expand the parameter's class into one parameter per bound member."""


@dataclass(frozen=True)
class Context:
    """Framework-injected parameter, never part of the request."""


# Maps Annotated metadata instances to the annotation names they are read back under.
MARKER_NAMES: dict[type, str] = {
    ParamBinding: BINDING,
    ApiParam: API_PARAM,
    ApiModelProperty: API_MODEL_PROPERTY,
    BeanParam: BEAN_PARAM,
    Context: CONTEXT,
}


def own_annotations(target) -> dict[str, Any]:
    """Annotations attached directly to ``target``, never inherited ones."""
    return dict(vars(target).get(ANNOTATIONS_ATTR, {})) if hasattr(target, "__dict__") else {}


def _annotate(target, name: str, value):
    values = own_annotations(target)
    values[name] = value
    setattr(target, ANNOTATIONS_ATTR, values)
    return target


def _decorator(name: str, value) -> Callable:
    def decorator(target):
        return _annotate(target, name, value)
    return decorator


# -- type level ---------------------------------------------------------------

def api(value: str = "", tags=(), description: str = "", hidden: bool = False, produces=(), consumes=()):
    """Mark a class as an API root."""
    return _decorator(API, Api(
        value=value,
        tags=_as_tuple(tags),
        description=description,
        hidden=hidden,
        produces=_as_tuple(produces),
        consumes=_as_tuple(consumes),
    ))


def path(template: str):
    return _decorator(PATH, template)


def produces(*media_types: str):
    return _decorator(PRODUCES, tuple(media_types))


def consumes(*media_types: str):
    return _decorator(CONSUMES, tuple(media_types))


def api_model(value: str = "", description: str = ""):
    return _decorator(API_MODEL, ApiModel(value=value, description=description))


def json_type_info(property: str = "type"):
    """Mark a class as the root of a tagged union discriminated by ``property``."""
    return _decorator(JSON_TYPE_INFO, JsonTypeInfo(property=property))


def json_sub_types(*types):
    """Register subtypes of a polymorphic base; strings are resolved lazily."""
    return _decorator(JSON_SUB_TYPES, JsonSubTypes(types=tuple(types)))


def json_type_name(name: str):
    return _decorator(JSON_TYPE_NAME, name)


# -- method level -------------------------------------------------------------

def route(method: str, template: str | None = None):
    method = method.upper()
    if method not in HTTP_METHODS:
        raise ValueError(f"Unsupported HTTP method: {method}")

    def decorator(func):
        _annotate(func, method, True)
        if template is not None:
            _annotate(func, PATH, template)
        return func
    return decorator


def get(template: str | None = None):
    return route("GET", template)


def post(template: str | None = None):
    return route("POST", template)


def put(template: str | None = None):
    return route("PUT", template)


def delete(template: str | None = None):
    return route("DELETE", template)


def patch(template: str | None = None):
    return route("PATCH", template)


def head(template: str | None = None):
    return route("HEAD", template)


def options(template: str | None = None):
    return route("OPTIONS", template)


def api_operation(
    value: str = "",
    notes: str = "",
    nickname: str = "",
    tags=(),
    hidden: bool = False,
    response=None,
    response_container: str = "",
    code: int = 200,
    produces=(),
    consumes=(),
):
    return _decorator(API_OPERATION, ApiOperation(
        value=value,
        notes=notes,
        nickname=nickname,
        tags=_as_tuple(tags),
        hidden=hidden,
        response=response,
        response_container=response_container,
        code=code,
        produces=_as_tuple(produces),
        consumes=_as_tuple(consumes),
    ))


def api_response(code: int, message: str = "", response=None, container: str = ""):
    """Declare a response; stackable, entries keep top-to-bottom order."""
    def decorator(func):
        existing = own_annotations(func).get(API_RESPONSES, ())
        entry = ApiResponse(code=code, message=message, response=response, container=container)
        return _annotate(func, API_RESPONSES, (entry,) + tuple(existing))
    return decorator


def deprecated(func):
    return _annotate(func, DEPRECATED, True)


# -- member level -------------------------------------------------------------

def api_model_property(
    value: str = "",
    name: str = "",
    required: bool = False,
    hidden: bool = False,
    read_only: bool = False,
    example: str = "",
    allowable_values=(),
):
    """Annotate a property getter; apply it below ``@property``."""
    return _decorator(API_MODEL_PROPERTY, ApiModelProperty(
        value=value,
        name=name,
        required=required,
        hidden=hidden,
        read_only=read_only,
        example=example,
        allowable_values=tuple(allowable_values),
    ))
