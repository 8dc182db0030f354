"""Metadata facade over captured type descriptors.

The registry is the only place that knows how a descriptor was obtained.
Everything downstream asks it for members, methods and annotations by name.
"""

import logging
from typing import Any, Iterable

from api_doc_reader.errors import ModelConflict, UnresolvableType
from api_doc_reader.metadata.annotations import (
    API,
    API_MODEL_PROPERTY,
    API_OPERATION,
    API_PARAM,
    JSON_SUB_TYPES,
    JSON_TYPE_INFO,
    JsonSubTypes,
    JsonTypeInfo,
)
from api_doc_reader.metadata.descriptor import (
    Member,
    MethodDescriptor,
    TypeDescriptor,
    TypeRef,
    substitute,
)
from api_doc_reader.metadata.introspect import capture, qualified_name, ref_for_hint

logger = logging.getLogger(__name__)

_HIDDEN_CARRIERS = (API, API_OPERATION, API_MODEL_PROPERTY, API_PARAM)


class TypeRegistry:
    """Describes types by qualified name, capturing Python classes lazily."""

    def __init__(self, descriptors: Iterable[TypeDescriptor] = ()):
        self._descriptors: dict[str, TypeDescriptor] = {}
        self._classes: dict[str, type] = {}
        self._members: dict[str, list[Member]] = {}
        self._ancestors: dict[str, list[str]] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    # -- registration ---------------------------------------------------------

    def register(self, descriptor: TypeDescriptor) -> TypeDescriptor:
        self._descriptors[descriptor.name] = descriptor
        return descriptor

    def remember(self, cls: type) -> None:
        self._classes.setdefault(qualified_name(cls), cls)

    def ref(self, hint) -> TypeRef:
        """TypeRef for a Python type hint, remembering the classes it mentions."""
        return ref_for_hint(hint, self.remember)

    # -- lookup ---------------------------------------------------------------

    def describe(self, target) -> TypeDescriptor:
        """Descriptor for a class, TypeRef, descriptor or (qualified or simple) name."""
        if isinstance(target, TypeDescriptor):
            return self._descriptors.setdefault(target.name, target)
        if isinstance(target, type):
            self.remember(target)
            target = qualified_name(target)
        if isinstance(target, TypeRef):
            target = target.name
        name = self._canonical(target)
        if name not in self._descriptors:
            self._descriptors[name] = capture(self._classes[name], self.remember)
            logger.debug("Captured %s", name)
        return self._descriptors[name]

    def _canonical(self, name: str) -> str:
        if name in self._descriptors or name in self._classes:
            return name
        known = set(self._descriptors) | set(self._classes)
        matches = sorted(n for n in known if n.rsplit(".", 1)[-1] == name)
        if len(matches) == 1:
            return matches[0]
        if matches:
            raise UnresolvableType(f"Ambiguous type name {name!r}: {', '.join(matches)}", name)
        raise UnresolvableType(f"Unknown type {name!r}", name)

    # -- annotations ----------------------------------------------------------

    @staticmethod
    def annotation(target, name: str) -> Any | None:
        """Value of annotation ``name`` on a descriptor, method, member or parameter.

        Unknown names and targets without annotations give ``None``.
        """
        annotations = getattr(target, "annotations", None) or {}
        return annotations.get(name)

    def is_hidden(self, target) -> bool:
        for name in _HIDDEN_CARRIERS:
            value = self.annotation(target, name)
            if getattr(value, "hidden", False) is True:
                return True
        return False

    # -- hierarchy ------------------------------------------------------------

    def supertypes(self, descriptor: TypeDescriptor) -> list[TypeDescriptor]:
        """Direct supertype followed by interfaces."""
        return [self.describe(ref) for ref in descriptor.supertype_refs]

    def ancestors(self, descriptor: TypeDescriptor) -> list[str]:
        """Qualified names of every transitive supertype, nearest first, cycle-safe."""
        if descriptor.name in self._ancestors:
            return self._ancestors[descriptor.name]
        seen: list[str] = []
        pending = list(descriptor.supertype_refs)
        while pending:
            current = self.describe(pending.pop(0))
            if current.name in seen or current.name == descriptor.name:
                continue
            seen.append(current.name)
            pending.extend(current.supertype_refs)
        self._ancestors[descriptor.name] = seen
        return seen

    def is_subtype(self, descriptor: TypeDescriptor, other: str) -> bool:
        return other in self.ancestors(descriptor)

    def subtypes(self, descriptor: TypeDescriptor) -> list[TypeRef]:
        registry = self.annotation(descriptor, JSON_SUB_TYPES)
        if not isinstance(registry, JsonSubTypes):
            return []
        refs = []
        for entry in registry.types:
            if isinstance(entry, TypeRef):
                refs.append(entry)
            elif isinstance(entry, type):
                refs.append(self.ref(entry))
            else:
                refs.append(TypeRef.named(str(entry)))
        return refs

    def type_info(self, descriptor: TypeDescriptor) -> list[tuple[str, JsonTypeInfo]]:
        """Discriminator declarations on the type and its ancestors, nearest first."""
        found = []
        for name in [descriptor.name] + self.ancestors(descriptor):
            value = self.annotation(self.describe(name), JSON_TYPE_INFO)
            if value is not None:
                found.append((name, value))
        return found

    def is_polymorphic(self, descriptor: TypeDescriptor) -> bool:
        return bool(self.type_info(descriptor))

    def discriminator(self, descriptor: TypeDescriptor) -> str | None:
        """Nearest declared discriminator property name, if any."""
        for _, info in self.type_info(descriptor):
            if isinstance(info, JsonTypeInfo) and info.property:
                return info.property
        return None

    # -- members and methods --------------------------------------------------

    def members(self, descriptor: TypeDescriptor, args: tuple[TypeRef, ...] = ()) -> list[Member]:
        """Declared and inherited members, inherited first, most-derived declaration winning.

        Raises ModelConflict when unrelated supertypes declare the same member
        with different types and nothing more derived overrides it.
        """
        key = descriptor.name + "[" + ",".join(a.key for a in args) + "]"
        if key not in self._members:
            self._members[key] = self._collect_members(descriptor, args, set())
        return list(self._members[key])

    def _collect_members(self, descriptor: TypeDescriptor, args, visiting: set[str]) -> list[Member]:
        bindings = dict(zip(descriptor.type_params, args))
        visiting = visiting | {descriptor.name}

        declarations: dict[str, list[Member]] = {}
        for ref in descriptor.supertype_refs:
            parent = self.describe(ref)
            if parent.name in visiting:
                logger.debug("Cyclic supertype %s of %s ignored", parent.name, descriptor.name)
                continue
            parent_args = tuple(substitute(a, bindings) for a in ref.args)
            for member in self._collect_members(parent, parent_args, visiting):
                declarations.setdefault(member.name, []).append(member)

        own = {m.name for m in descriptor.members}
        merged: dict[str, Member] = {}
        for name, candidates in declarations.items():
            if name not in own:
                inherited = self._most_derived(descriptor, name, candidates)
                merged[name] = Member(inherited.name, inherited.type, inherited.declared_in, inherited.annotations, True)
            else:
                merged[name] = None  # own declaration below takes the inherited position
        for member in descriptor.members:
            merged[member.name] = Member(
                member.name,
                substitute(member.type, bindings),
                member.declared_in,
                member.annotations,
            )
        return list(merged.values())

    def _most_derived(self, descriptor: TypeDescriptor, name: str, candidates: list[Member]) -> Member:
        winners = []
        for member in candidates:
            owner = self.describe(member.declared_in)
            overridden = any(
                other.declared_in != member.declared_in and self.is_subtype(self.describe(other.declared_in), owner.name)
                for other in candidates
            )
            if not overridden:
                winners.append(member)
        first = winners[0]
        for other in winners[1:]:
            if other.declared_in != first.declared_in and other.type != first.type:
                raise ModelConflict(
                    f"Member {name!r} of {descriptor.name} is declared as {first.type.key} in "
                    f"{first.declared_in} and as {other.type.key} in {other.declared_in}",
                    descriptor.name,
                )
        return first

    def methods(self, descriptor: TypeDescriptor) -> list[MethodDescriptor]:
        """Declared and inherited methods, most-derived override winning by name."""
        found: dict[str, MethodDescriptor] = {}
        chain = [descriptor.name] + self.ancestors(descriptor)
        for name in reversed(chain):
            for method in self.describe(name).methods:
                found[method.name] = method
        ordered = {m.name: found[m.name] for m in descriptor.methods}
        for name, method in found.items():
            ordered.setdefault(name, method)
        return list(ordered.values())
