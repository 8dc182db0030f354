"""Immutable type descriptors handed to the resolver.

Descriptors are captured once, either from Python classes
(:mod:`api_doc_reader.metadata.introspect`) or from descriptor documents
(:mod:`api_doc_reader.metadata.loader`), and never change afterwards.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

_EMPTY: Mapping[str, Any] = MappingProxyType({})


class TypeKind(str, Enum):
    CLASS = "class"
    INTERFACE = "interface"
    ABSTRACT_CLASS = "abstract-class"
    ENUM = "enum"
    PRIMITIVE = "primitive"
    COLLECTION = "collection"
    ARRAY = "array"
    MAP = "map"
    TYPE_VAR = "type-var"
    ANY = "any"
    VOID = "void"


NAMED_KINDS = frozenset({TypeKind.CLASS, TypeKind.INTERFACE, TypeKind.ABSTRACT_CLASS})
WRAPPER_KINDS = frozenset({TypeKind.COLLECTION, TypeKind.ARRAY, TypeKind.MAP})


@dataclass(frozen=True)
class TypeRef:
    """A type as it appears in a member, parameter or return slot.

    Named references always carry ``TypeKind.CLASS``; the descriptor they
    point at knows whether it is an interface or an abstract class.
    """

    kind: TypeKind
    name: str = ""
    element: "TypeRef | None" = None
    args: tuple["TypeRef", ...] = ()
    schema_type: str = ""
    schema_format: str = ""
    values: tuple = ()
    unique: bool = False

    @property
    def is_named(self) -> bool:
        return self.kind in NAMED_KINDS

    @property
    def key(self) -> str:
        if self.kind in WRAPPER_KINDS:
            return f"{self.kind.value}[{self.element.key if self.element else ''}]"
        if self.args:
            return f"{self.name}[{','.join(a.key for a in self.args)}]"
        return self.name or self.kind.value

    def leaf(self) -> "TypeRef":
        """Innermost element of nested collection, array and map wrappers."""
        ref = self
        while ref.kind in WRAPPER_KINDS and ref.element is not None:
            ref = ref.element
        return ref

    @classmethod
    def named(cls, name: str, args: tuple = ()) -> "TypeRef":
        return cls(TypeKind.CLASS, name=name, args=tuple(args))

    @classmethod
    def primitive(cls, schema_type: str, schema_format: str = "") -> "TypeRef":
        return cls(TypeKind.PRIMITIVE, name=schema_type, schema_type=schema_type, schema_format=schema_format)

    @classmethod
    def collection(cls, element: "TypeRef", unique: bool = False) -> "TypeRef":
        return cls(TypeKind.COLLECTION, element=element, unique=unique)

    @classmethod
    def array(cls, element: "TypeRef") -> "TypeRef":
        return cls(TypeKind.ARRAY, element=element)

    @classmethod
    def map(cls, element: "TypeRef") -> "TypeRef":
        return cls(TypeKind.MAP, element=element)

    @classmethod
    def enum(cls, name: str, values) -> "TypeRef":
        return cls(TypeKind.ENUM, name=name, values=tuple(values))

    @classmethod
    def type_var(cls, name: str) -> "TypeRef":
        return cls(TypeKind.TYPE_VAR, name=name)

    @classmethod
    def any(cls) -> "TypeRef":
        return cls(TypeKind.ANY)

    @classmethod
    def void(cls) -> "TypeRef":
        return cls(TypeKind.VOID)


def substitute(ref: TypeRef, bindings: Mapping[str, TypeRef]) -> TypeRef:
    """Replace type variables in ``ref`` with their bound arguments."""
    if not bindings:
        return ref
    if ref.kind is TypeKind.TYPE_VAR:
        return bindings.get(ref.name, TypeRef.any())
    if ref.element is not None:
        return replace(ref, element=substitute(ref.element, bindings))
    if ref.args:
        return replace(ref, args=tuple(substitute(a, bindings) for a in ref.args))
    return ref


@dataclass(frozen=True)
class Member:
    """A field- or accessor-like property of a type."""

    name: str
    type: TypeRef
    declared_in: str
    annotations: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    inherited: bool = False


@dataclass(frozen=True)
class ParameterDescriptor:
    name: str
    type: TypeRef
    annotations: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    has_default: bool = False
    default: Any = None


@dataclass(frozen=True)
class MethodDescriptor:
    name: str
    declared_in: str
    parameters: tuple[ParameterDescriptor, ...] = ()
    returns: TypeRef = field(default_factory=TypeRef.void)
    annotations: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)


@dataclass(frozen=True)
class TypeDescriptor:
    """Identity, shape and own metadata of a reachable type."""

    name: str
    kind: TypeKind = TypeKind.CLASS
    simple_name: str = ""
    members: tuple[Member, ...] = ()
    supertype: TypeRef | None = None
    interfaces: tuple[TypeRef, ...] = ()
    annotations: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    methods: tuple[MethodDescriptor, ...] = ()
    type_params: tuple[str, ...] = ()
    enum_values: tuple = ()

    def __post_init__(self):
        if not self.simple_name:
            object.__setattr__(self, "simple_name", self.name.rsplit(".", 1)[-1])

    @property
    def supertype_refs(self) -> tuple[TypeRef, ...]:
        """The supertype followed by the interfaces, in declaration order."""
        head = (self.supertype,) if self.supertype is not None else ()
        return head + self.interfaces


def frozen_mapping(values: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(values)) if values else _EMPTY
