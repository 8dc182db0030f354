"""API reader: root types in, one aggregated APIDescription out.

Per root type the reader either discards it (no ``Api`` annotation, or hidden
without the include-hidden override) or processes it: the type-level tags,
path and media types are merged into a working context, every declared and
inherited routed method is resolved, and sub-resource locators are followed.
A root's operations are committed only once the whole root has been read, so a
failing root never leaves partial contributions behind. Model definitions are
built after every root has been read.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping

from api_doc_reader.config import ReaderSettings
from api_doc_reader.errors import ResolutionError
from api_doc_reader.extensions import ExtensionChain
from api_doc_reader.metadata.annotations import API, CONSUMES, PATH, PRODUCES, Api
from api_doc_reader.metadata.descriptor import MethodDescriptor
from api_doc_reader.metadata.facade import TypeRegistry
from api_doc_reader.models import APIDescription, Operation, Parameter, ResolutionWarning, Tag
from api_doc_reader.resolver.model import ModelResolver
from api_doc_reader.resolver.operation import (
    OperationContext,
    OperationResolver,
    Outcome,
    Resolution,
    http_method,
    join_paths,
)

logger = logging.getLogger(__name__)


@dataclass
class _Contribution:
    tags: dict[str, Tag] = field(default_factory=dict)
    resolutions: list[Resolution] = field(default_factory=list)


class ApiReader:
    """Reads annotated root types into an APIDescription.

    The reader owns ``description`` for its lifetime; a description passed in
    is extended in place, never overwritten.
    """

    def __init__(
        self,
        description: APIDescription | None = None,
        extensions: ExtensionChain | None = None,
        registry: TypeRegistry | None = None,
        settings: ReaderSettings | None = None,
    ):
        self.settings = settings or ReaderSettings()
        self.description = description if description is not None else APIDescription(base_path=self.settings.base_path)
        self.registry = registry or TypeRegistry()
        self.extensions = extensions if extensions is not None else ExtensionChain.default()
        self.models = ModelResolver(self.registry, self.extensions, dict(self.description.definitions))
        self.operations = OperationResolver(self.registry, self.models, self.extensions)
        self.warnings: list[ResolutionWarning] = []
        self.outcomes: list[Resolution] = []

    def read(
        self,
        *types,
        parent_path: str = "",
        read_hidden: bool | None = None,
        consumes: Iterable[str] | None = None,
        produces: Iterable[str] | None = None,
        tags: Mapping[str, Tag] | Iterable[Tag | str] | None = None,
        parameters: Iterable[Parameter] | None = None,
    ) -> APIDescription:
        """Read root types (classes, descriptors or registered names).

        Keyword arguments bias the working context before any type is read;
        when omitted they fall back to the reader settings.
        """
        self.warnings = []
        self.outcomes = []
        self.operations.warnings = []
        self.models.warnings = []

        if read_hidden is None:
            read_hidden = self.settings.read_hidden
        base = OperationContext(
            owner=None,
            path=parent_path,
            consumes=tuple(consumes if consumes is not None else self.settings.consumes),
            produces=tuple(produces if produces is not None else self.settings.produces),
            parameters=tuple(parameters if parameters is not None else self.settings.parameters),
            read_hidden=read_hidden,
        )
        seeded = {t.name: t for t in self.settings.tags}
        seeded.update(_tag_map(tags))

        staged = _Contribution()
        for target in types:
            try:
                contribution = self._read_root(target, base, seeded)
            except ResolutionError as e:
                self._warn(e)
                continue
            if contribution is None:
                continue
            for resolution in contribution.resolutions:
                self.models.commit(resolution.refs, resolution.direct)
            staged.tags.update(contribution.tags)
            staged.resolutions.extend(contribution.resolutions)

        self.models.resolve_pending()
        self.warnings = self.operations.warnings + self.models.warnings + self.warnings
        self._commit(staged)
        return self.description

    # -- roots ----------------------------------------------------------------

    def _read_root(self, target, base: OperationContext, seeded: dict[str, Tag]) -> _Contribution | None:
        descriptor = self.registry.describe(target)
        api = self.registry.annotation(descriptor, API)
        if not isinstance(api, Api):
            logger.debug("Skipping %s: no Api annotation", descriptor.name)
            return None
        if api.hidden and not base.read_hidden:
            logger.debug("Skipping hidden %s", descriptor.name)
            return None

        tag_names = list(dict.fromkeys(list(seeded) + list(api.tags)))
        context = replace(
            base,
            owner=descriptor,
            path=join_paths(base.path, self.registry.annotation(descriptor, PATH) or ""),
            tags=tuple(tag_names),
            consumes=tuple(self.registry.annotation(descriptor, CONSUMES) or api.consumes or base.consumes),
            produces=tuple(self.registry.annotation(descriptor, PRODUCES) or api.produces or base.produces),
        )
        contribution = _Contribution()
        for name in tag_names:
            contribution.tags[name] = seeded.get(name) or Tag(name=name)
        self._read_methods(descriptor, context, contribution, {descriptor.name}, seeded)
        return contribution

    def _read_methods(self, descriptor, context, contribution, visiting: set[str], seeded) -> None:
        for method in self.registry.methods(descriptor):
            try:
                sub_resource = self._is_sub_resource(method)
            except ResolutionError as e:
                self._warn(e)
                continue
            if sub_resource:
                try:
                    self._read_sub_resource(method, context, contribution, visiting, seeded)
                except ResolutionError as e:
                    self._warn(e)
                continue
            resolution = self.operations.resolve(method, context)
            self.outcomes.append(resolution)
            if resolution.outcome is Outcome.RESOLVED:
                contribution.resolutions.append(resolution)
                for name in resolution.operation.tags:
                    contribution.tags.setdefault(name, seeded.get(name) or Tag(name=name))
            elif resolution.outcome is Outcome.FAILED:
                self._warn(resolution.error)
            else:
                logger.debug("Excluded %s.%s: %s", method.declared_in, method.name, resolution.reason)

    # -- sub-resources --------------------------------------------------------

    def _is_sub_resource(self, method: MethodDescriptor) -> bool:
        if PATH not in method.annotations or http_method(method) is not None:
            return False
        if not method.returns.is_named:
            return False
        return bool(self.registry.methods(self.registry.describe(method.returns)))

    def _read_sub_resource(self, method, context: OperationContext, contribution, visiting: set[str], seeded) -> None:
        if self.registry.is_hidden(method) and not context.read_hidden:
            logger.debug("Skipping hidden sub-resource locator %s", method.name)
            return
        sub = self.registry.describe(method.returns)
        if sub.name in visiting:
            logger.debug("Cyclic sub-resource %s reached from %s", sub.name, method.name)
            return
        api = self.registry.annotation(sub, API)
        if isinstance(api, Api) and api.hidden and not context.read_hidden:
            logger.debug("Skipping hidden sub-resource %s", sub.name)
            return

        path = join_paths(context.path, method.annotations[PATH])
        parameters, refs, direct = self.operations.parameters_for(method, path)
        tags = tuple(dict.fromkeys(context.tags + (api.tags if isinstance(api, Api) else ())))
        sub_context = replace(
            context,
            owner=sub,
            path=path,
            tags=tags,
            parameters=context.parameters + tuple(parameters),
            refs=context.refs + tuple(refs),
            direct=context.direct + tuple(direct),
        )
        for name in tags:
            contribution.tags.setdefault(name, seeded.get(name) or Tag(name=name))
        self._read_methods(sub, sub_context, contribution, visiting | {sub.name}, seeded)

    # -- output ---------------------------------------------------------------

    def _commit(self, staged: _Contribution) -> None:
        for name, tag in staged.tags.items():
            self.description.tags.setdefault(name, tag)
        for resolution in staged.resolutions:
            operation: Operation = resolution.operation
            existing = self.description.paths.setdefault(operation.path, [])
            if operation not in existing:
                existing.append(operation)
        for name, definition in self.models.definitions.items():
            self.description.definitions.setdefault(name, definition)

    def _warn(self, error: ResolutionError) -> None:
        warning = ResolutionWarning.from_error(error)
        logger.warning("%s: %s", warning.kind, warning.message)
        self.warnings.append(warning)


def _tag_map(tags) -> dict[str, Tag]:
    if not tags:
        return {}
    if isinstance(tags, Mapping):
        return {name: tag if isinstance(tag, Tag) else Tag(name=name) for name, tag in tags.items()}
    return {t.name: t for t in (tag if isinstance(tag, Tag) else Tag(name=tag) for tag in tags)}
