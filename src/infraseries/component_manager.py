"""Manages components"""

import itertools
from collections import defaultdict
from typing import Any, Callable, Iterable, Type
from uuid import UUID

from loguru import logger

from infraseries.component import Component
from infraseries.exceptions import ISAlreadyAttached, ISNotStored, ISOperationNotAllowed
from infraseries.models import make_summary


class ComponentManager:
    """Manages components"""

    def __init__(self) -> None:
        self._components: dict[Type, dict[str, list[Component]]] = {}
        self._components_by_uuid: dict[UUID, Component] = {}

    def add(self, *args: Component) -> None:
        """Add one or more components.

        Raises
        ------
        ISAlreadyAttached
            Raised if a component is already attached.
        """
        for component in args:
            self.raise_if_attached(component)
        if len({x.uuid for x in args}) != len(args):
            msg = "The same component was passed more than once"
            raise ISAlreadyAttached(msg)
        for component in args:
            self._add(component)

    def get(self, component_type: Type[Component], name: str) -> Any:
        """Return the component with the passed type and name.

        Raises
        ------
        ISNotStored
            Raised if no component matches the inputs.
        ISOperationNotAllowed
            Raised if more than one component match the inputs.

        See Also
        --------
        list_by_name
        """
        if component_type not in self._components or name not in self._components[component_type]:
            msg = f"{make_summary(component_type.__name__, name)} is not stored"
            raise ISNotStored(msg)

        components = self._components[component_type][name]
        if len(components) > 1:
            msg = (
                f"There is more than one {component_type} with {name=}. Please use "
                "list_by_name instead."
            )
            raise ISOperationNotAllowed(msg)
        return components[0]

    def get_by_uuid(self, uuid: UUID) -> Any:
        """Return the component with the input UUID.

        Raises
        ------
        ISNotStored
            Raised if the UUID is not stored.
        """
        component = self._components_by_uuid.get(uuid)
        if component is None:
            msg = f"No component with {uuid=} is stored"
            raise ISNotStored(msg)
        return component

    def get_num_components(self) -> int:
        """Return the number of stored components."""
        return len(self._components_by_uuid)

    def get_num_components_by_type(self) -> dict[Type, int]:
        """Return the number of stored components by type."""
        counts: dict[Type, int] = defaultdict(int)
        for component_type, components_by_name in self._components.items():
            for components in components_by_name.values():
                counts[component_type] += len(components)
        return counts

    def get_types(self) -> Iterable[Type[Component]]:
        """Return an iterable of all stored types."""
        return self._components.keys()

    def iter(
        self, *component_types: Type[Component], filter_func: Callable | None = None
    ) -> Iterable[Any]:
        """Return the components with the passed type and optionally match filter_func.

        If component_type is an abstract type, all matching subtypes will be returned.
        """
        for component_type in component_types:
            yield from self._iter(component_type, filter_func)

    def _iter(
        self, component_type: Type[Component], filter_func: Callable | None
    ) -> Iterable[Any]:
        for subclass in component_type.__subclasses__():
            # Recurse.
            yield from self._iter(subclass, filter_func)

        if component_type in self._components:
            for component in itertools.chain(*self._components[component_type].values()):
                if filter_func is None or filter_func(component):
                    yield component

    def iter_all(self) -> Iterable[Any]:
        """Return an iterator over all components."""
        return self._components_by_uuid.values()

    def list_by_name(self, component_type: Type[Component], name: str) -> list[Any]:
        """Return all components that match component_type and name.

        The component_type can be an abstract type.
        """
        return list(self.iter(component_type, filter_func=lambda x: x.name == name))

    def remove(self, component: Component) -> None:
        """Remove the component.

        Notes
        -----
        Users should not call this directly. It should be called through the system
        so that time series is handled.
        """
        self.raise_if_not_attached(component)
        component_type = type(component)
        components = self._components[component_type][component.name]
        components.remove(component)
        if not components:
            self._components[component_type].pop(component.name)
        if not self._components[component_type]:
            self._components.pop(component_type)
        self._components_by_uuid.pop(component.uuid)
        logger.debug("Removed component {}", component.summary)

    def raise_if_attached(self, component: Component) -> None:
        """Raise an exception if this component is already attached."""
        if component.uuid in self._components_by_uuid:
            msg = f"{component.summary} with UUID={component.uuid} is already attached"
            raise ISAlreadyAttached(msg)

    def raise_if_not_attached(self, component: Component) -> None:
        """Raise an exception if this component is not attached."""
        if component.uuid not in self._components_by_uuid:
            msg = f"{component.summary} is not attached to the system"
            raise ISNotStored(msg)

    def _add(self, component: Component) -> None:
        cls = type(component)
        self._components.setdefault(cls, {}).setdefault(component.name, []).append(component)
        self._components_by_uuid[component.uuid] = component
        logger.debug("Added {} to the system", component.summary)
