"""Operation resolution: one routed method to zero or one Operation."""

import enum
import logging
import re
from dataclasses import dataclass, field

from api_doc_reader.errors import MalformedMetadata, ResolutionError
from api_doc_reader.extensions import ExtensionChain, ParameterContext
from api_doc_reader.metadata.annotations import (
    API_OPERATION,
    API_PARAM,
    API_RESPONSES,
    BINDING,
    CONSUMES,
    DEPRECATED,
    HTTP_METHODS,
    PATH,
    PRODUCES,
    ApiOperation,
    ApiParam,
    ApiResponse,
    ParamBinding,
)
from api_doc_reader.metadata.descriptor import (
    MethodDescriptor,
    ParameterDescriptor,
    TypeDescriptor,
    TypeKind,
    TypeRef,
)
from api_doc_reader.metadata.facade import TypeRegistry
from api_doc_reader.models import Operation, Parameter, PropertySchema, Response, ResolutionWarning
from api_doc_reader.resolver.model import ModelResolver

logger = logging.getLogger(__name__)

SUCCESS_DESCRIPTION = "successful operation"

_PATH_VARIABLE = re.compile(r"\{\s*(\w[\w.-]*)\s*(?::[^{}]*(?:\{[^{}]*\}[^{}]*)*)?\}")
_QUERY_KINDS = frozenset({TypeKind.PRIMITIVE, TypeKind.ENUM})


class Outcome(enum.Enum):
    EXCLUDED = "excluded"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class Resolution:
    """Result of resolving one routed method."""

    outcome: Outcome
    method: str
    operation: Operation | None = None
    reason: str = ""
    error: ResolutionError | None = None
    refs: list[TypeRef] = field(default_factory=list)
    direct: list[TypeRef] = field(default_factory=list)


@dataclass(frozen=True)
class OperationContext:
    """Working context merged from the root type and the caller's bias inputs."""

    owner: TypeDescriptor | None
    path: str = ""
    tags: tuple[str, ...] = ()
    consumes: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()
    parameters: tuple[Parameter, ...] = ()
    refs: tuple[TypeRef, ...] = ()
    direct: tuple[TypeRef, ...] = ()
    read_hidden: bool = False


def join_paths(*parts: str) -> str:
    """Join path templates into one normalised path with simplified variables."""
    joined = "/".join(p.strip("/") for p in parts if p and p.strip("/"))
    joined = _PATH_VARIABLE.sub(lambda m: "{" + m.group(1) + "}", joined)
    return "/" + re.sub(r"/{2,}", "/", joined)


def path_variables(path: str) -> frozenset[str]:
    return frozenset(m.group(1) for m in _PATH_VARIABLE.finditer(path))


def http_method(method: MethodDescriptor, warnings: list[ResolutionWarning] | None = None) -> str | None:
    """The routed verb of ``method``; the first declared verb wins when several are present."""
    verbs = [name for name in method.annotations if name in HTTP_METHODS]
    if len(verbs) > 1 and warnings is not None:
        error = MalformedMetadata(f"{method.declared_in}.{method.name} declares {verbs}; using {verbs[0]}", method.name)
        logger.warning("%s", error)
        warnings.append(ResolutionWarning.from_error(error))
    return verbs[0] if verbs else None


class OperationResolver:
    """Builds Operations from routed methods."""

    def __init__(self, registry: TypeRegistry, models: ModelResolver, extensions: ExtensionChain | None = None):
        self.registry = registry
        self.models = models
        self.extensions = extensions or ExtensionChain.default()
        self.warnings: list[ResolutionWarning] = []

    def resolve(self, method: MethodDescriptor, context: OperationContext) -> Resolution:
        hidden = self._is_hidden(method)
        if hidden and not context.read_hidden:
            return Resolution(Outcome.EXCLUDED, method.name, reason="hidden")
        verb = http_method(method, self.warnings)
        if verb is None:
            return Resolution(Outcome.EXCLUDED, method.name, reason="no HTTP method")

        try:
            return self._build(method, verb, hidden, context)
        except ResolutionError as e:
            logger.warning("Dropping %s.%s: %s", method.declared_in, method.name, e)
            return Resolution(Outcome.FAILED, method.name, reason=str(e), error=e)

    def _is_hidden(self, method: MethodDescriptor) -> bool:
        if self.registry.is_hidden(method):
            return True
        return self.registry.is_hidden(self.registry.describe(method.declared_in))

    def _build(self, method: MethodDescriptor, verb: str, hidden: bool, context: OperationContext) -> Resolution:
        info = method.annotations.get(API_OPERATION)
        if not isinstance(info, ApiOperation):
            info = ApiOperation()
        full_path = join_paths(context.path, method.annotations.get(PATH) or "")
        refs: list[TypeRef] = list(context.refs)
        direct: list[TypeRef] = list(context.direct)

        consumes = _media(method, CONSUMES, info.consumes, context.consumes)
        parameters = list(context.parameters)
        parameters.extend(self._parameters(method, full_path, consumes, refs, direct))

        responses = self._responses(method, info, refs, direct)
        for ref in direct:
            self.models.validate(ref)
        for ref in refs:
            self.models.validate(ref)

        operation = Operation(
            method=verb,
            path=full_path,
            operation_id=info.nickname or method.name,
            summary=info.value,
            description=info.notes,
            parameters=parameters,
            responses=responses,
            tags=list(info.tags or context.tags),
            consumes=consumes,
            produces=_media(method, PRODUCES, info.produces, context.produces),
            deprecated=bool(method.annotations.get(DEPRECATED)),
            hidden=hidden,
        )
        return Resolution(Outcome.RESOLVED, method.name, operation=operation, refs=refs, direct=direct)

    # -- parameters -----------------------------------------------------------

    def parameters_for(self, method: MethodDescriptor, full_path: str) -> tuple[list[Parameter], list[TypeRef], list[TypeRef]]:
        """Validated parameters of a sub-resource locator with the types they reference.

        Nothing is committed here; the operations reached through the locator
        carry the references and commit them with their own.
        """
        refs: list[TypeRef] = []
        direct: list[TypeRef] = []
        parameters = self._parameters(method, full_path, [], refs, direct)
        for ref in direct + refs:
            self.models.validate(ref)
        return parameters, refs, direct

    def _parameters(self, method, full_path, consumes, refs, direct) -> list[Parameter]:
        variables = path_variables(full_path)
        context = ParameterContext(
            method=method,
            path=full_path,
            path_variables=variables,
            registry=self.registry,
            schema_for=lambda ref: self.models.schema_for(ref, refs),
            consumes=consumes,
        )
        result: list[Parameter] = []
        has_body = False
        for param in method.parameters:
            resolved = self.extensions.resolve_parameters(param, context)
            if resolved is None:
                resolved = self._default_parameter(param, variables, refs)
            for parameter in resolved:
                if parameter.location == "body":
                    if has_body:
                        error = MalformedMetadata(
                            f"{method.declared_in}.{method.name} has more than one body parameter; "
                            f"{parameter.name!r} ignored",
                            method.name,
                        )
                        logger.warning("%s", error)
                        self.warnings.append(ResolutionWarning.from_error(error))
                        continue
                    has_body = True
                    direct.append(param.type)
                result.append(parameter)
        return result

    def _default_parameter(self, param: ParameterDescriptor, variables: frozenset[str], refs) -> list[Parameter]:
        meta = param.annotations.get(API_PARAM)
        if not isinstance(meta, ApiParam):
            meta = ApiParam()
        if meta.hidden:
            return []
        binding = param.annotations.get(BINDING)
        if isinstance(binding, ParamBinding):
            location, name = binding.location, binding.name or param.name
        elif param.name in variables:
            location, name = "path", param.name
        elif _is_simple(param.type):
            location, name = "query", param.name
        else:
            location, name = "body", param.name

        if meta.required is not None:
            required = meta.required
        else:
            required = location in ("path", "body") or not param.has_default

        default = meta.default if meta.default is not None else param.default
        if not isinstance(default, (str, int, float, bool)):
            default = None
        schema = self.models.schema_for(param.type, refs) or PropertySchema(type="object")
        constraints = {"enum": list(meta.allowable_values)} if meta.allowable_values else {}
        return [Parameter(
            name=name,
            location=location,
            required=required,
            type_schema=schema,
            description=meta.value,
            default=default,
            constraints=constraints,
        )]

    # -- responses ------------------------------------------------------------

    def _responses(self, method, info: ApiOperation, refs, direct) -> dict[str, Response]:
        success = self._response_type(info.response, info.response_container) if info.response else method.returns
        responses: dict[str, Response] = {}
        responses[str(info.code)] = self._response(SUCCESS_DESCRIPTION, success, refs, direct)

        for entry in method.annotations.get(API_RESPONSES) or ():
            if not isinstance(entry, ApiResponse):
                continue
            code = str(entry.code)
            if entry.response is not None:
                ref = self._response_type(entry.response, entry.container)
                responses[code] = self._response(entry.message, ref, refs, direct)
            elif code in responses:
                responses[code] = responses[code].model_copy(update={"description": entry.message or responses[code].description})
            else:
                responses[code] = Response(description=entry.message)
        return responses

    def _response(self, description: str, ref: TypeRef, refs, direct) -> Response:
        schema = self.models.schema_for(ref, refs)
        if schema is not None and ref.leaf().is_named:
            direct.append(ref)
        return Response(description=description, response_schema=schema)

    def _response_type(self, response, container: str) -> TypeRef:
        ref = response if isinstance(response, TypeRef) else self.registry.ref(response)
        container = (container or "").lower()
        if container in ("list", "array"):
            return TypeRef.collection(ref)
        if container == "set":
            return TypeRef.collection(ref, unique=True)
        if container == "map":
            return TypeRef.map(ref)
        return ref


def _is_simple(ref: TypeRef) -> bool:
    if ref.kind in (TypeKind.COLLECTION, TypeKind.ARRAY) and ref.element is not None:
        return ref.element.kind in _QUERY_KINDS
    return ref.kind in _QUERY_KINDS


def _media(method: MethodDescriptor, name: str, from_operation: tuple, inherited: tuple) -> list[str]:
    own = method.annotations.get(name)
    if own:
        return list(own)
    if from_operation:
        return list(from_operation)
    return list(inherited)
