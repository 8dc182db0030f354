"""Capture TypeDescriptors from decorated Python classes."""

import abc
import datetime
import decimal
import enum
import inspect
import logging
import sys
import typing
import uuid
from collections import abc as cabc
from types import UnionType
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin, get_type_hints

from api_doc_reader.errors import MalformedMetadata
from api_doc_reader.metadata.annotations import (
    JSON_SUB_TYPES,
    MARKER_NAMES,
    JsonSubTypes,
    own_annotations,
)
from api_doc_reader.metadata.descriptor import (
    MethodDescriptor,
    Member,
    ParameterDescriptor,
    TypeDescriptor,
    TypeKind,
    TypeRef,
    frozen_mapping,
)

logger = logging.getLogger(__name__)

_PRIMITIVES: dict[type, tuple[str, str]] = {
    str: ("string", ""),
    int: ("integer", "int64"),
    float: ("number", "double"),
    bool: ("boolean", ""),
    bytes: ("string", "byte"),
    decimal.Decimal: ("number", ""),
    datetime.datetime: ("string", "date-time"),
    datetime.date: ("string", "date"),
    datetime.time: ("string", "time"),
    uuid.UUID: ("string", "uuid"),
}

_COLLECTION_ORIGINS = (list, cabc.Sequence, cabc.MutableSequence, cabc.Iterable, cabc.Collection)
_SET_ORIGINS = (set, frozenset, cabc.Set, cabc.MutableSet)
_MAP_ORIGINS = (dict, cabc.Mapping, cabc.MutableMapping)

# Bases that never contribute members or polymorphism.
_IGNORED_BASE_MODULES = frozenset({
    "builtins", "abc", "enum", "typing", "typing_extensions", "collections.abc", "pydantic.main",
})


def qualified_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def split_annotated(hint) -> tuple[Any, dict[str, Any]]:
    """Unwrap ``Annotated`` and collect its recognised markers by annotation name."""
    markers: dict[str, Any] = {}
    while get_origin(hint) is Annotated:
        hint, *extras = get_args(hint)
        for extra in extras:
            name = MARKER_NAMES.get(type(extra))
            if name is not None:
                markers.setdefault(name, extra)
    return hint, markers


def ref_for_hint(hint, remember) -> TypeRef:
    """Convert a Python type hint into a TypeRef.

    ``remember`` is called with every user class met on the way so the
    registry can capture it lazily by qualified name.
    """
    hint, _ = split_annotated(hint)
    if hint is None or hint is type(None):
        return TypeRef.void()
    if hint is Any or hint is object:
        return TypeRef.any()
    if isinstance(hint, typing.TypeVar):
        return TypeRef.type_var(hint.__name__)
    if isinstance(hint, str) or isinstance(hint, typing.ForwardRef):
        logger.debug("Unresolved forward reference %r treated as object", hint)
        return TypeRef.any()
    if hint in _PRIMITIVES:
        return TypeRef.primitive(*_PRIMITIVES[hint])
    if isinstance(hint, type) and issubclass(hint, enum.Enum):
        return TypeRef.enum(qualified_name(hint), [m.value for m in hint])

    origin = get_origin(hint)
    args = get_args(hint)

    if origin is Union or origin is UnionType:
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1:
            return ref_for_hint(non_none[0], remember)
        return TypeRef.any()

    if origin is tuple or hint is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return TypeRef.array(ref_for_hint(args[0], remember))
        if len(set(args)) == 1:
            return TypeRef.array(ref_for_hint(args[0], remember))
        return TypeRef.array(TypeRef.any())

    if origin in _SET_ORIGINS or hint in (set, frozenset):
        element = ref_for_hint(args[0], remember) if args else TypeRef.any()
        return TypeRef.collection(element, unique=True)

    if origin in _MAP_ORIGINS or hint is dict:
        element = ref_for_hint(args[1], remember) if len(args) > 1 else TypeRef.any()
        return TypeRef.map(element)

    if origin in _COLLECTION_ORIGINS or hint is list:
        element = ref_for_hint(args[0], remember) if args else TypeRef.any()
        return TypeRef.collection(element)

    if isinstance(origin, type):
        # Parameterised user generic such as Page[Item]
        remember(origin)
        return TypeRef.named(qualified_name(origin), tuple(ref_for_hint(a, remember) for a in args))

    if isinstance(hint, type):
        remember(hint)
        return TypeRef.named(qualified_name(hint))

    logger.debug("Unsupported type hint %r treated as object", hint)
    return TypeRef.any()


def _kind_of(cls: type) -> TypeKind:
    if issubclass(cls, enum.Enum):
        return TypeKind.ENUM
    if getattr(cls, "_is_protocol", False):
        return TypeKind.INTERFACE
    if inspect.isabstract(cls) or abc.ABC in cls.__bases__:
        return TypeKind.ABSTRACT_CLASS
    return TypeKind.CLASS


def _is_ignored_base(base) -> bool:
    origin = get_origin(base) or base
    if not isinstance(origin, type):
        return True
    return origin.__module__ in _IGNORED_BASE_MODULES


def _hints(target) -> dict[str, Any]:
    try:
        return get_type_hints(target, include_extras=True)
    except (NameError, TypeError) as exc:
        raise MalformedMetadata(f"Cannot evaluate type hints: {exc}", getattr(target, "__qualname__", repr(target))) from exc


def _resolve_subtype(entry, owner: type, remember) -> TypeRef:
    if isinstance(entry, type):
        return ref_for_hint(entry, remember)
    module = sys.modules.get(owner.__module__)
    target = module
    for part in str(entry).split("."):
        target = getattr(target, part, None)
        if target is None:
            break
    if isinstance(target, type):
        return ref_for_hint(target, remember)
    # Leave unknown names for the registry to resolve or reject.
    return TypeRef.named(str(entry))


def _members(cls: type, name: str, remember) -> tuple[Member, ...]:
    own = inspect.get_annotations(cls)
    hints = _hints(cls) if own else {}
    members: list[Member] = []
    for attr in own:
        if attr.startswith("_"):
            continue
        hint = hints.get(attr, Any)
        if get_origin(hint) is ClassVar or hint is ClassVar:
            continue
        inner, markers = split_annotated(hint)
        members.append(Member(attr, ref_for_hint(inner, remember), name, frozen_mapping(markers)))

    for attr, value in vars(cls).items():
        if attr.startswith("_") or not isinstance(value, property) or value.fget is None or attr in own:
            continue
        returns = _hints(value.fget).get("return")
        if returns is None:
            continue
        inner, markers = split_annotated(returns)
        markers.update(own_annotations(value.fget))
        members.append(Member(attr, ref_for_hint(inner, remember), name, frozen_mapping(markers)))
    return tuple(members)


def _method(func, owner: str, remember) -> MethodDescriptor:
    hints = _hints(func)
    params: list[ParameterDescriptor] = []
    for param in inspect.signature(func).parameters.values():
        if param.name in ("self", "cls") or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        inner, markers = split_annotated(hints.get(param.name, Any))
        has_default = param.default is not inspect.Parameter.empty
        params.append(ParameterDescriptor(
            name=param.name,
            type=ref_for_hint(inner, remember),
            annotations=frozen_mapping(markers),
            has_default=has_default,
            default=param.default if has_default else None,
        ))
    returns = ref_for_hint(hints["return"], remember) if "return" in hints else TypeRef.void()
    return MethodDescriptor(
        name=func.__name__,
        declared_in=owner,
        parameters=tuple(params),
        returns=returns,
        annotations=frozen_mapping(own_annotations(func)),
    )


def _methods(cls: type, name: str, remember) -> tuple[MethodDescriptor, ...]:
    methods = []
    for value in vars(cls).values():
        if isinstance(value, (staticmethod, classmethod)):
            value = value.__func__
        if inspect.isfunction(value) and own_annotations(value):
            methods.append(_method(value, name, remember))
    return tuple(methods)


def capture(cls: type, remember) -> TypeDescriptor:
    """Capture the declared shape and metadata of ``cls``."""
    name = qualified_name(cls)
    kind = _kind_of(cls)

    supertype = None
    interfaces: list[TypeRef] = []
    for base in vars(cls).get("__orig_bases__", cls.__bases__):
        if _is_ignored_base(base):
            continue
        ref = ref_for_hint(base, remember)
        base_cls = get_origin(base) or base
        if supertype is None and not getattr(base_cls, "_is_protocol", False):
            supertype = ref
        else:
            interfaces.append(ref)

    annotations = own_annotations(cls)
    sub_types = annotations.get(JSON_SUB_TYPES)
    if isinstance(sub_types, JsonSubTypes):
        annotations[JSON_SUB_TYPES] = JsonSubTypes(tuple(_resolve_subtype(t, cls, remember) for t in sub_types.types))

    enum_values = tuple(m.value for m in cls) if kind is TypeKind.ENUM else ()
    return TypeDescriptor(
        name=name,
        kind=kind,
        simple_name=cls.__name__,
        members=() if kind is TypeKind.ENUM else _members(cls, name, remember),
        supertype=supertype,
        interfaces=tuple(interfaces),
        annotations=frozen_mapping(annotations),
        methods=_methods(cls, name, remember),
        type_params=tuple(p.__name__ for p in getattr(cls, "__parameters__", ())),
        enum_values=enum_values,
    )
