"""
Serializer: local entity + dependency wrapper → CDF objects.

The host's ``EntityNormalizer`` produces attribute payloads;
``populate_attributes`` handlers may add or rewrite attributes. The
serializer then stamps every object with its content hash and fills the
dependency map (uuid → hash) from the hashes computed in the same run,
so a dependency's hash as recorded on the dependent object always
matches the dependency object that travels with it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cdfsync.cdf.models import ENTITY_TYPE_ATTRIBUTE, CDFObject
from cdfsync.core.events import HandlerChain, HookContext
from cdfsync.core.timestamps import to_iso8601, utc_now

from .stack import DependencyStack, EntityWrapper

if TYPE_CHECKING:
    from cdfsync.core.protocols import DependencyCalculator, EntityNormalizer


@dataclass
class PopulateAttributesContext(HookContext):
    entity: Any
    wrapper: EntityWrapper
    cdf: CDFObject


@dataclass
class SerializerHooks:
    populate_attributes: HandlerChain[PopulateAttributesContext] = field(
        default_factory=lambda: HandlerChain("populate_cdf_attributes")
    )


class CdfSerializer:
    """Builds CDF objects for export."""

    def __init__(
        self,
        normalizer: EntityNormalizer,
        calculator: DependencyCalculator,
        origin: str,
        hooks: SerializerHooks | None = None,
    ) -> None:
        self.normalizer = normalizer
        self.calculator = calculator
        self.origin = origin
        self.hooks = hooks or SerializerHooks()

    def calculate(self, entity: Any, *, calculate_dependencies: bool = True) -> tuple[EntityWrapper, DependencyStack]:
        """Wrap ``entity`` and, unless disabled, compute its dependency closure."""
        wrapper = EntityWrapper(entity, calculate_dependencies=calculate_dependencies)
        stack = DependencyStack()
        if calculate_dependencies:
            self.calculator.calculate_dependencies(wrapper, stack)
        return wrapper, stack

    def get_entity_cdf(
        self,
        entity: Any,
        *,
        include_dependencies: bool = True,
        calculate_dependencies: bool = True,
    ) -> tuple[list[CDFObject], dict[str, EntityWrapper]]:
        """
        CDF objects for ``entity`` and, optionally, its whole dependency closure.

        Returns:
            ``(objects, wrappers)``: the root's objects come first and
            ``wrappers`` maps every serialized UUID to its wrapper, root first.
        """
        wrapper, stack = self.calculate(entity, calculate_dependencies=calculate_dependencies)
        wrappers = {wrapper.uuid: wrapper}
        if include_dependencies:
            for dependency in stack.get_dependencies_by_uuid(wrapper.dependencies).values():
                wrappers.setdefault(dependency.uuid, dependency)
        return self.serialize_entities(*wrappers.values()), wrappers

    def serialize_entities(self, *wrappers: EntityWrapper) -> list[CDFObject]:
        primaries: list[tuple[EntityWrapper, CDFObject]] = []
        objects: list[CDFObject] = []
        hashes: dict[str, str] = {}

        for wrapper in wrappers:
            produced = self.normalizer.normalize(wrapper.entity, self.origin)
            for cdf in produced:
                self._populate(wrapper, cdf)
                hashes[cdf.uuid] = cdf.refresh_hash()
                objects.append(cdf)
            if produced:
                primaries.append((wrapper, produced[0]))

        for wrapper, cdf in primaries:
            cdf.dependencies = {uuid: hashes.get(uuid, known) for uuid, known in wrapper.dependencies.items()}
            cdf.module_dependencies = list(wrapper.module_dependencies)
            wrapper.hash = cdf.hash
        return objects

    def _populate(self, wrapper: EntityWrapper, cdf: CDFObject) -> None:
        now = to_iso8601(utc_now())
        if not cdf.origin:
            cdf.origin = self.origin
        if not cdf.created:
            cdf.created = now
        if not cdf.modified:
            cdf.modified = now
        if cdf.entity_type is None:
            cdf.add_attribute(ENTITY_TYPE_ATTRIBUTE, "string", wrapper.entity_type)
        self.hooks.populate_attributes.dispatch(PopulateAttributesContext(entity=wrapper.entity, wrapper=wrapper, cdf=cdf))
