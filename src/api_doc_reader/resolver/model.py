"""Model resolution: type references to schemas and named definitions.

Resolution runs in two phases. While operations are built, ``schema_for``
hands out inline schemas and ``ref`` schemas for named types, recording the
named types it met. After every root has been read, ``resolve_pending``
builds the definitions. Deferring definitions keeps the flat-versus-composed
decision independent of the order in which operations were read.

Composition rule: a type is composed against a supertype or interface S
exactly when S is polymorphic (S or an ancestor carries
``JsonTypeInfo``) and S was directly referenced by at least one operation of
the same reader, as a return type, declared response or body parameter,
possibly inside a collection. Intermediate classes that do not qualify are
looked through, so each supertype branch composes against its nearest
qualifying ancestor. Otherwise inherited members are merged into a flat model.
"""

import logging

from api_doc_reader.errors import MalformedMetadata, ResolutionError
from api_doc_reader.extensions import ExtensionChain, PropertyContext
from api_doc_reader.metadata.annotations import (
    API_MODEL,
    API_MODEL_PROPERTY,
    JSON_TYPE_INFO,
    JSON_TYPE_NAME,
    ApiModel,
    ApiModelProperty,
    JsonTypeInfo,
)
from api_doc_reader.metadata.descriptor import (
    Member,
    TypeDescriptor,
    TypeKind,
    TypeRef,
    substitute,
)
from api_doc_reader.metadata.facade import TypeRegistry
from api_doc_reader.models import (
    ComposedModel,
    FlatModel,
    ModelDefinition,
    PropertySchema,
    ResolutionWarning,
)

logger = logging.getLogger(__name__)

_LABELS = {
    TypeKind.COLLECTION: "List",
    TypeKind.ARRAY: "Array",
    TypeKind.MAP: "Map",
}


class ModelResolver:
    """Builds and memoises model definitions for one reader."""

    def __init__(
        self,
        registry: TypeRegistry,
        extensions: ExtensionChain | None = None,
        definitions: dict[str, ModelDefinition] | None = None,
    ):
        self.registry = registry
        self.extensions = extensions or ExtensionChain()
        self.definitions: dict[str, ModelDefinition] = definitions if definitions is not None else {}
        self.direct: set[str] = set()
        self.warnings: list[ResolutionWarning] = []
        self._pending: list[TypeRef] = []
        self._names: dict[str, str] = {}
        self._owners: dict[str, str] = {}
        self._parents: dict[str, list[tuple[TypeDescriptor, TypeRef]]] = {}
        self._checked: dict[str, ResolutionError | None] = {}
        self._collisions: set[tuple[str, str]] = set()

    # -- schemas --------------------------------------------------------------

    def schema_for(self, ref: TypeRef, refs: list[TypeRef] | None = None) -> PropertySchema | None:
        """Schema for ``ref``; ``None`` for void.

        Named types become ``ref`` schemas and are appended to ``refs`` when
        given, or queued for resolution otherwise.
        """
        kind = ref.kind
        if kind is TypeKind.VOID:
            return None
        if kind is TypeKind.PRIMITIVE:
            return PropertySchema(type=ref.schema_type, format=ref.schema_format or None)
        if kind is TypeKind.ENUM:
            return _enum_schema(ref.values)
        if kind in (TypeKind.COLLECTION, TypeKind.ARRAY):
            items = self.schema_for(ref.element, refs) if ref.element else None
            return PropertySchema(
                type="array",
                items=items or PropertySchema(type="object"),
                unique_items=True if ref.unique else None,
            )
        if kind is TypeKind.MAP:
            values = self.schema_for(ref.element, refs) if ref.element else None
            return PropertySchema(type="object", additional_properties=values or PropertySchema(type="object"))
        if ref.is_named:
            descriptor = self.registry.describe(ref)
            if descriptor.kind is TypeKind.ENUM:
                return _enum_schema(descriptor.enum_values)
            name = self.model_name(ref)
            (refs if refs is not None else self._pending).append(ref)
            return PropertySchema(ref=name)
        return PropertySchema(type="object")

    def model_name(self, ref: TypeRef) -> str:
        if ref.key in self._names:
            return self._names[ref.key]
        descriptor = self.registry.describe(ref)
        model = self.registry.annotation(descriptor, API_MODEL)
        name = model.value if isinstance(model, ApiModel) and model.value else descriptor.simple_name
        name += "".join(self._label(arg) for arg in ref.args)
        self._names[ref.key] = name
        return name

    def _label(self, ref: TypeRef) -> str:
        if ref.is_named:
            return self.model_name(ref)
        if ref.kind in _LABELS:
            return _LABELS[ref.kind] + (self._label(ref.element) if ref.element else "Object")
        if ref.kind is TypeKind.PRIMITIVE:
            return ref.schema_type.capitalize()
        if ref.kind is TypeKind.ENUM:
            return ref.name.rsplit(".", 1)[-1]
        return "Object"

    # -- operation-time checks ------------------------------------------------

    def validate(self, ref: TypeRef) -> None:
        """Raise the first resolution error anywhere in the types reachable from ``ref``.

        Property extensions are consulted here too, so a failing extension fails
        the operation that reaches the model instead of the model alone.
        """
        self._check(ref, set())

    def _check(self, ref: TypeRef, visiting: set[str]) -> None:
        for leaf in _named_leaves(ref):
            key = leaf.key
            if key in self._checked:
                if self._checked[key] is not None:
                    raise self._checked[key]
                continue
            if key in visiting:
                continue
            visiting.add(key)
            try:
                descriptor = self.registry.describe(leaf)
                bindings = dict(zip(descriptor.type_params, leaf.args))
                context = PropertyContext(owner=descriptor, registry=self.registry, schema_for=self._unqueued_schema)
                for member in self.registry.members(descriptor, leaf.args):
                    if not self.registry.is_hidden(member):
                        self.extensions.resolve_property(member, context)
                    self._check(member.type, visiting)
                for parent in descriptor.supertype_refs:
                    self._check(substitute(parent, bindings), visiting)
                for sub in self.registry.subtypes(descriptor):
                    self._check(sub, visiting)
            except ResolutionError as e:
                self._checked[key] = e
                raise
            self._checked[key] = None

    def _unqueued_schema(self, ref: TypeRef, refs: list[TypeRef] | None = None) -> PropertySchema | None:
        return self.schema_for(ref, [] if refs is None else refs)

    def commit(self, refs: list[TypeRef], direct: list[TypeRef]) -> None:
        """Queue the named types of a successfully built operation."""
        for ref in direct:
            for leaf in _named_leaves(ref, include_args=False):
                self.direct.add(self.registry.describe(leaf).name)
        self._pending.extend(refs)

    # -- definitions ----------------------------------------------------------

    def resolve_pending(self) -> None:
        while self._pending:
            ref = self._pending.pop(0)
            try:
                self.resolve(ref)
            except ResolutionError as e:
                self._warn(e)

    def resolve(self, ref: TypeRef) -> str:
        """Resolve ``ref`` into a definition, returning the model name."""
        name = self.model_name(ref)
        owner = self._owners.setdefault(name, ref.key)
        if owner != ref.key:
            if (name, ref.key) not in self._collisions:
                self._collisions.add((name, ref.key))
                self._warn(MalformedMetadata(f"Model name {name!r} of {ref.key} is already used by {owner}", ref.key))
            return name
        if name in self.definitions:
            logger.debug("Model %s already defined", name)
            return name

        descriptor = self.registry.describe(ref)
        members = [m for m in self.registry.members(descriptor, ref.args) if not self.registry.is_hidden(m)]
        model = self.registry.annotation(descriptor, API_MODEL)
        description = model.description if isinstance(model, ApiModel) else ""
        parents = self.composed_parents(descriptor, ref)

        if parents:
            definition = self._composed(name, descriptor, members, parents, description)
        else:
            definition = self._flat(name, descriptor, members, description)
        self.definitions[name] = definition
        logger.debug("Resolved %s as %s model", name, definition.kind)

        for sub in self.registry.subtypes(descriptor):
            self._pending.append(sub)
        return name

    def composed_parents(self, descriptor: TypeDescriptor, ref: TypeRef) -> list[tuple[TypeDescriptor, TypeRef]]:
        """Ancestors this type is composed against; decided once per type reference.

        Each supertype branch contributes its nearest directly referenced
        polymorphic ancestor, so members of a composed base are never repeated
        in a subtype whose intermediate classes are not models of their own.
        """
        if ref.key not in self._parents:
            bindings = dict(zip(descriptor.type_params, ref.args))
            parents: list[tuple[TypeDescriptor, TypeRef]] = []
            for parent_ref in descriptor.supertype_refs:
                found = self._composition_target(substitute(parent_ref, bindings), {descriptor.name})
                if found and all(found[0].name != p.name for p, _ in parents):
                    parents.append(found)
            self._parents[ref.key] = parents
        return self._parents[ref.key]

    def _composition_target(self, ref: TypeRef, visiting: set[str]) -> tuple[TypeDescriptor, TypeRef] | None:
        parent = self.registry.describe(ref)
        if parent.name in visiting:
            return None
        if parent.name in self.direct and self.registry.is_polymorphic(parent):
            return parent, ref
        bindings = dict(zip(parent.type_params, ref.args))
        for grand_ref in parent.supertype_refs:
            found = self._composition_target(substitute(grand_ref, bindings), visiting | {parent.name})
            if found:
                return found
        return None

    def _composed(self, name, descriptor, members, parents, description) -> ComposedModel:
        provided: set[str] = set()
        parent_names = []
        for parent, parent_ref in parents:
            provided.update(m.name for m in self.registry.members(parent, parent_ref.args))
            discriminator = self._discriminator(parent)
            if discriminator:
                provided.add(discriminator)
            parent_names.append(self.schema_for(parent_ref).ref)

        own = self.registry.annotation(descriptor, JSON_TYPE_INFO)
        inherited = self._discriminator(parents[0][0])
        if isinstance(own, JsonTypeInfo) and inherited and own.property != inherited:
            self._warn(MalformedMetadata(
                f"{descriptor.name} declares discriminator {own.property!r} but its parent uses {inherited!r}",
                descriptor.name,
            ))

        properties, required = self._properties(descriptor, [m for m in members if m.name not in provided])
        return ComposedModel(
            name=name,
            parent=parent_names[0],
            interfaces=parent_names[1:],
            child=FlatModel(name=name, properties=properties, required=required),
            discriminator_value=self.registry.annotation(descriptor, JSON_TYPE_NAME) or None,
            description=description,
        )

    def _flat(self, name, descriptor, members, description) -> FlatModel:
        properties, required = self._properties(descriptor, members)
        discriminator = self._discriminator(descriptor)
        if discriminator and discriminator not in properties:
            properties[discriminator] = PropertySchema(type="string")
            required.append(discriminator)
        return FlatModel(
            name=name,
            properties=properties,
            required=required,
            discriminator=discriminator,
            description=description,
        )

    def _discriminator(self, descriptor: TypeDescriptor) -> str | None:
        """Nearest discriminator property; conflicting declarations are warned about."""
        declared = []
        for owner, info in self.registry.type_info(descriptor):
            if isinstance(info, JsonTypeInfo) and info.property:
                declared.append((owner, info.property))
            else:
                self._warn(MalformedMetadata(f"Unusable JsonTypeInfo {info!r} on {owner}", owner))
        if not declared:
            return None
        names = {prop for _, prop in declared}
        if len(names) > 1:
            self._warn(MalformedMetadata(
                f"Conflicting discriminators {sorted(names)} in the hierarchy of {descriptor.name}; "
                f"using {declared[0][1]!r}",
                descriptor.name,
            ))
        return declared[0][1]

    def _properties(self, descriptor: TypeDescriptor, members: list[Member]) -> tuple[dict[str, PropertySchema], list[str]]:
        properties: dict[str, PropertySchema] = {}
        required: list[str] = []
        context = PropertyContext(owner=descriptor, registry=self.registry, schema_for=self.schema_for)
        for member in members:
            schema = self.extensions.resolve_property(member, context)
            if schema is None:
                schema = self.schema_for(member.type)
            if schema is None:
                continue
            name = member.name
            prop = member.annotations.get(API_MODEL_PROPERTY)
            if isinstance(prop, ApiModelProperty):
                name = prop.name or name
                updates = {}
                if prop.value:
                    updates["description"] = prop.value
                if prop.read_only:
                    updates["read_only"] = True
                if prop.example:
                    updates["example"] = prop.example
                if prop.allowable_values:
                    updates["enum"] = list(prop.allowable_values)
                schema = schema.model_copy(update=updates)
                if prop.required:
                    required.append(name)
            properties[name] = schema
        return properties, required

    def _warn(self, error: ResolutionError) -> None:
        warning = ResolutionWarning.from_error(error)
        logger.warning("%s: %s", warning.kind, warning.message)
        self.warnings.append(warning)


def _enum_schema(values) -> PropertySchema:
    values = list(values)
    if values and all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return PropertySchema(type="integer", enum=values)
    return PropertySchema(type="string", enum=[str(v) for v in values])


def _named_leaves(ref: TypeRef, include_args: bool = True) -> list[TypeRef]:
    leaf = ref.leaf()
    if not leaf.is_named:
        return []
    found = [leaf]
    if include_args:
        for arg in leaf.args:
            found.extend(_named_leaves(arg))
    return found
