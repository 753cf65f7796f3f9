"""Defines base models for components."""

from typing import Any, Optional, Type

from numpy.typing import NDArray
from pydantic import Field, PrivateAttr
from rich import print as _pprint
from typing_extensions import Annotated

from infraseries.models import InfraSeriesBaseModelWithIdentifiers
from infraseries.serialization import serialize_value
from infraseries.time_series_container import TimeSeriesContainer
from infraseries.time_series_models import TimeSeriesData, TimeSeriesSelection


class Component(InfraSeriesBaseModelWithIdentifiers):
    """Base class for all models representing entities that get attached to a System."""

    name: Annotated[str, Field(frozen=True)]

    def get_time_series_container(self) -> Optional[TimeSeriesContainer]:
        """Return the container of time series metadata. None means that the component does
        not support time series."""
        return None

    def model_dump_custom(self, *args, **kwargs) -> dict[str, Any]:
        """Custom serialization for this package"""
        data = serialize_value(self, *args, **kwargs)
        container = self.get_time_series_container()
        if container is not None:
            data["time_series"] = container.serialize()
        return data

    def pprint(self):
        return _pprint(self)


class ComponentWithTimeSeries(Component):
    """Base class for components that can store time series."""

    _time_series_container: TimeSeriesContainer = PrivateAttr(
        default_factory=TimeSeriesContainer
    )

    def get_time_series_container(self) -> TimeSeriesContainer:
        return self._time_series_container

    def has_time_series(
        self, time_series_type: Optional[Type] = None, label: Optional[str] = None
    ) -> bool:
        """Return True if the component has time series matching the type and label."""
        return self._time_series_container.has_time_series(time_series_type, label)

    def get_time_series(
        self,
        time_series_type: Type,
        label: str,
        selection: Optional[TimeSeriesSelection] = None,
    ) -> TimeSeriesData:
        """Return the time series from the storage bound to the component.

        Examples
        --------
        >>> gen.get_time_series(SingleTimeSeries, "active_power")
        """
        return self._time_series_container.read_time_series(time_series_type, label, selection)

    def get_time_series_array(
        self,
        time_series_type: Type,
        label: str,
        selection: Optional[TimeSeriesSelection] = None,
    ) -> NDArray:
        """Return the values of the time series scaled by its scaling_factor_multiplier
        relative to this component."""
        return self.get_time_series(time_series_type, label, selection).get_scaled_array(self)
