"""Ordered, pluggable resolvers consulted during parameter and property resolution.

A chain is immutable and handed to the reader explicitly; tests build their
own chain instead of swapping shared state.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from api_doc_reader.errors import ExtensionFailure
from api_doc_reader.metadata.annotations import (
    API_MODEL_PROPERTY,
    BEAN_PARAM,
    BINDING,
    CONTEXT,
    ParamBinding,
)
from api_doc_reader.metadata.descriptor import Member, ParameterDescriptor, TypeDescriptor
from api_doc_reader.models import Parameter, PropertySchema

logger = logging.getLogger(__name__)


@dataclass
class ParameterContext:
    """What an extension may inspect while resolving one method parameter."""

    method: object  # MethodDescriptor
    path: str
    path_variables: frozenset[str]
    registry: object  # TypeRegistry
    schema_for: Callable  # TypeRef -> PropertySchema
    consumes: list[str] = field(default_factory=list)


@dataclass
class PropertyContext:
    """What an extension may inspect while resolving one model member."""

    owner: TypeDescriptor
    registry: object
    schema_for: Callable


class Extension:
    """Base class for extensions; every hook defaults to "no opinion" (``None``).

    ``resolve_parameters`` returning a list, even an empty one, is terminal for
    that parameter. ``resolve_property`` returning a schema is terminal for that
    member.
    """

    def resolve_parameters(self, parameter: ParameterDescriptor, context: ParameterContext) -> list[Parameter] | None:
        return None

    def resolve_property(self, member: Member, context: PropertyContext) -> PropertySchema | None:
        return None


class ContextParameterExtension(Extension):
    """Drops framework-injected parameters."""

    def resolve_parameters(self, parameter, context):
        if CONTEXT in parameter.annotations:
            return []
        return None


class BeanParamExtension(Extension):
    """Expands a bean parameter into one parameter per bound member."""

    def resolve_parameters(self, parameter, context):
        if BEAN_PARAM not in parameter.annotations or not parameter.type.is_named:
            return None
        bean = context.registry.describe(parameter.type)
        result = []
        for member in context.registry.members(bean, parameter.type.args):
            binding = member.annotations.get(BINDING)
            if not isinstance(binding, ParamBinding):
                continue
            prop = member.annotations.get(API_MODEL_PROPERTY)
            if getattr(prop, "hidden", False):
                continue
            location = binding.location
            result.append(Parameter(
                name=binding.name or member.name,
                location=location,
                required=location == "path" or getattr(prop, "required", False),
                type_schema=context.schema_for(member.type),
                description=getattr(prop, "value", "") or "",
            ))
        return result


class ExtensionChain:
    """Immutable ordered list of extensions."""

    def __init__(self, extensions: Iterable[Extension] = ()):
        self._extensions = tuple(extensions)

    @classmethod
    def default(cls) -> "ExtensionChain":
        return cls([ContextParameterExtension(), BeanParamExtension()])

    @property
    def extensions(self) -> tuple[Extension, ...]:
        return self._extensions

    def with_extensions(self, *extensions: Extension, replace: bool = False) -> "ExtensionChain":
        """A new chain with ``extensions`` in front of (or instead of) the current ones."""
        if replace:
            return ExtensionChain(extensions)
        return ExtensionChain(extensions + self._extensions)

    def __len__(self) -> int:
        return len(self._extensions)

    def resolve_parameters(self, parameter: ParameterDescriptor, context: ParameterContext) -> list[Parameter] | None:
        for extension in self._extensions:
            result = self._call(extension, "resolve_parameters", parameter, context, parameter.name)
            if result is not None:
                if not isinstance(result, (list, tuple)) or not all(isinstance(p, Parameter) for p in result):
                    raise ExtensionFailure(
                        f"{type(extension).__name__}.resolve_parameters returned {result!r} for {parameter.name!r}, "
                        "expected a list of Parameter",
                        parameter.name,
                    )
                logger.debug("%s resolved parameter %s", type(extension).__name__, parameter.name)
                return list(result)
        return None

    def resolve_property(self, member: Member, context: PropertyContext) -> PropertySchema | None:
        for extension in self._extensions:
            result = self._call(extension, "resolve_property", member, context, member.name)
            if result is not None:
                if not isinstance(result, PropertySchema):
                    raise ExtensionFailure(
                        f"{type(extension).__name__}.resolve_property returned {result!r} for {member.name!r}, "
                        "expected a PropertySchema",
                        member.name,
                    )
                return result
        return None

    @staticmethod
    def _call(extension: Extension, hook: str, target, context, subject: str):
        try:
            return getattr(extension, hook)(target, context)
        except Exception as e:
            raise ExtensionFailure(f"{type(extension).__name__}.{hook} failed for {subject!r}: {e}", subject) from e
