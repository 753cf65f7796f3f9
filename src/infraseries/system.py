"""Defines a System"""

import json
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Type
from uuid import UUID, uuid4

from loguru import logger
from numpy.typing import NDArray
from rich import print as _pprint
from rich.table import Table

from infraseries.component import Component
from infraseries.component_manager import ComponentManager
from infraseries.exceptions import (
    ISConflictingArguments,
    ISDuplicateKey,
    ISFileExists,
    ISNotStored,
    ISOperationNotAllowed,
    ISOwnershipConflict,
)
from infraseries.h5_time_series_storage import HDF5TimeSeriesStorage
from infraseries.serialization import TYPE_METADATA, CachedTypeHelper, SerializedTypeMetadata
from infraseries.time_series_container import TimeSeriesContainer
from infraseries.time_series_models import (
    TimeSeriesData,
    TimeSeriesMetadata,
    TimeSeriesSelection,
)
from infraseries.time_series_storage import (
    CompressionSettings,
    TimeSeriesStorage,
    make_time_series_storage,
    serialize_storage,
)

TIME_SERIES_KWARGS = {
    "time_series_in_memory": False,
    "time_series_read_only": False,
    "time_series_directory": None,
    "time_series_file": None,
    "compression": None,
}


def _process_time_series_kwarg(key: str, **kwargs: Any) -> Any:
    return kwargs.get(key, TIME_SERIES_KWARGS[key])


class System:
    """Implements behavior for systems"""

    def __init__(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        time_series_storage: Optional[TimeSeriesStorage] = None,
        uuid: Optional[UUID] = None,
        **kwargs: Any,
    ) -> None:
        """Constructs a System.

        Parameters
        ----------
        name : str | None
            Optional system name
        description : str | None
            Optional system description
        time_series_storage : None | TimeSeriesStorage
            Users should not pass this. De-serialization (from_json) will pass a constructed
            storage.
        kwargs : Any
            Configures time series behaviors:
              - time_series_in_memory: Store arrays in memory, defaults to false.
              - time_series_read_only: Disables add/remove of time series, defaults to false.
              - time_series_directory: Location of the temporary time series file, defaults to
                the system's tmp directory.
              - time_series_file: HDF5 file to use instead of a temporary file.
              - compression: CompressionSettings for stored arrays.

        Examples
        --------
        >>> system = System(name="my_system")
        >>> system2 = System(name="my_system", time_series_directory="/tmp/scratch")
        """
        unknown = set(kwargs).difference(TIME_SERIES_KWARGS)
        if unknown:
            msg = f"Unsupported keyword arguments: {sorted(unknown)}"
            raise ISConflictingArguments(msg)

        self._uuid = uuid or uuid4()
        self._name = name
        self._description = description
        self._component_mgr = ComponentManager()
        self._time_series_storage = time_series_storage or make_time_series_storage(
            in_memory=_process_time_series_kwarg("time_series_in_memory", **kwargs),
            filename=_process_time_series_kwarg("time_series_file", **kwargs),
            directory=_process_time_series_kwarg("time_series_directory", **kwargs),
            compression=_process_time_series_kwarg("compression", **kwargs),
            read_only=_process_time_series_kwarg("time_series_read_only", **kwargs),
        )

    def __enter__(self) -> "System":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the time series storage."""
        self._time_series_storage.close()

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def description(self) -> Optional[str]:
        return self._description

    @property
    def uuid(self) -> UUID:
        return self._uuid

    @property
    def time_series_storage(self) -> TimeSeriesStorage:
        """Return the storage that holds the time series arrays of all components."""
        return self._time_series_storage

    def to_json(self, filename: Path | str, overwrite: bool = False, indent=None) -> None:
        """Write the contents of a system to a JSON file. Time series will be written to an
        HDF5 file at the same level as filename.

        Parameters
        ----------
        filename : Path | str
           Filename to write. If the parent directory does not exist, it will be created.
        overwrite : bool
            Set to True to overwrite the files if they already exist.
        indent : int | None
            Indentation level in the JSON file. Defaults to no indentation.

        Raises
        ------
        ISFileExists
            Raised if a file exists and overwrite is False.

        Examples
        --------
        >>> system.to_json("systems/system1.json")
        INFO: Serialized time series storage to systems/system1_time_series.h5
        INFO: Wrote system data to systems/system1.json
        """
        filename = Path(filename)
        time_series_file = self._make_time_series_file(filename)
        for path in (filename, time_series_file):
            if path.exists() and not overwrite:
                msg = f"{path} already exists. Choose a different path or set overwrite=True."
                raise ISFileExists(msg)

        filename.parent.mkdir(parents=True, exist_ok=True)
        serialize_storage(self._time_series_storage, time_series_file)

        data = {
            "name": self.name,
            "description": self.description,
            "uuid": str(self.uuid),
            "components": [x.model_dump_custom() for x in self._component_mgr.iter_all()],
            "time_series": {
                # The parent directory is stripped. De-serialization finds the file next to
                # the JSON file.
                "file": time_series_file.name,
            },
        }
        with open(filename, "w", encoding="utf-8") as f_out:
            json.dump(data, f_out, indent=indent)
        logger.info("Wrote system data to {}", filename)

    @classmethod
    def from_json(cls, filename: Path | str, **kwargs: Any) -> "System":
        """Deserialize a System from a JSON file. Refer to System constructor for kwargs.

        With time_series_read_only=True, the serialized HDF5 file is opened in place.
        Otherwise a copy of it is opened so that the serialized file is never changed.

        Examples
        --------
        >>> system = System.from_json("systems/system1.json", time_series_read_only=True)
        """
        filename = Path(filename)
        with open(filename, encoding="utf-8") as f_in:
            data = json.load(f_in)

        time_series_file = filename.parent / data["time_series"]["file"]
        compression = _process_time_series_kwarg("compression", **kwargs)
        if _process_time_series_kwarg("time_series_read_only", **kwargs):
            storage: TimeSeriesStorage = make_time_series_storage(
                filename=time_series_file, compression=compression, read_only=True
            )
        else:
            storage = HDF5TimeSeriesStorage.open_copy(
                time_series_file,
                directory=_process_time_series_kwarg("time_series_directory", **kwargs),
                compression=compression,
            )

        system = cls(
            name=data.get("name"),
            description=data.get("description"),
            time_series_storage=storage,
            uuid=UUID(data["uuid"]),
        )
        try:
            system._deserialize_components(data["components"])
        except Exception:
            system.close()
            raise
        logger.info("Deserialized system {} from {}", system.name, filename)
        return system

    def _deserialize_components(self, records: list[dict[str, Any]]) -> None:
        cached_types = CachedTypeHelper()
        for record in records:
            values = {k: v for k, v in record.items() if k not in (TYPE_METADATA, "time_series")}
            component_type = cached_types.get_type(SerializedTypeMetadata(**record[TYPE_METADATA]))
            component = component_type(**values)
            container = component.get_time_series_container()
            if container is not None:
                ts_records = TimeSeriesContainer.deserialize(
                    record.get("time_series", []), cached_types=cached_types
                )
                for metadata in ts_records.iter_metadata():
                    if not self._time_series_storage.has_time_series(metadata.time_series_uuid):
                        msg = f"{metadata.summary} of {component.summary} is not in the storage"
                        raise ISNotStored(msg)
                    container.add_time_series(metadata)
            self.add_component(component)

    def add_component(self, component: Component) -> None:
        """Add one component to the system.

        Raises
        ------
        ISAlreadyAttached
            Raised if the component is already attached to the system.
        ISOwnershipConflict
            Raised if the component's time series are already bound to a storage.
        """
        self.add_components(component)

    def add_components(self, *components: Component) -> None:
        """Add one or more components to the system.

        Raises
        ------
        ISAlreadyAttached
            Raised if a component is already attached to the system.
        ISOwnershipConflict
            Raised if a component's time series are already bound to a storage, such as when
            the component is attached to another system.
        """
        for component in components:
            self._component_mgr.raise_if_attached(component)
            container = component.get_time_series_container()
            if container is not None and container.time_series_storage is not None:
                msg = f"{component.summary} is already bound to a time series storage"
                raise ISOwnershipConflict(msg)

        self._component_mgr.add(*components)
        for component in components:
            container = component.get_time_series_container()
            if container is not None:
                container.set_time_series_storage(self._time_series_storage)

    def get_component(self, component_type: Type[Component], name: str) -> Any:
        """Return the component with the passed type and name.

        Raises
        ------
        ISNotStored
            Raised if no component matches the inputs.
        ISOperationNotAllowed
            Raised if more than one component match the inputs.
        """
        return self._component_mgr.get(component_type, name)

    def get_component_by_uuid(self, uuid: UUID) -> Any:
        """Return the component with the input UUID.

        Raises
        ------
        ISNotStored
            Raised if the UUID is not stored.
        """
        return self._component_mgr.get_by_uuid(uuid)

    def get_components(self, *component_types: Type[Component], filter_func=None) -> Iterable[Any]:
        """Return the components with the passed type(s) and optionally match filter_func.

        Examples
        --------
        >>> for component in system.get_components(Generator):
            print(component.summary)
        """
        return self._component_mgr.iter(*component_types, filter_func=filter_func)

    def get_component_types(self) -> Iterable[Type[Component]]:
        """Return an iterable of all component types stored in the system.

        Examples
        --------
        >>> for component_type in system.get_component_types():
            print(component_type)
        """
        return self._component_mgr.get_types()

    def list_components_by_name(self, component_type: Type[Component], name: str) -> list[Any]:
        """Return all components that match component_type and name. The component_type can
        be an abstract type.

        Examples
        --------
        >>> system.list_components_by_name(Generator, "gen1")
        """
        return self._component_mgr.list_by_name(component_type, name)

    def get_num_components(self) -> int:
        """Return the number of components in the system."""
        return self._component_mgr.get_num_components()

    def get_num_components_by_type(self) -> dict[Type[Component], int]:
        """Return the number of components in the system by type."""
        return self._component_mgr.get_num_components_by_type()

    def iter_all_components(self) -> Iterable[Any]:
        """Return an iterator over all components."""
        return self._component_mgr.iter_all()

    def remove_component(self, component: Component) -> Any:
        """Remove the component and all of its time series from the system and return it.

        Raises
        ------
        ISNotStored
            Raised if the component is not attached to the system.
        ISReadOnly
            Raised if the component has time series and the storage is read-only.
        """
        self._component_mgr.raise_if_not_attached(component)
        container = component.get_time_series_container()
        if container is not None:
            if len(container) > 0:
                self._time_series_storage.check_read_only()
            for metadata in container.iter_metadata():
                self._time_series_storage.remove_time_series(
                    metadata.time_series_uuid, component.uuid, metadata.label
                )
            container.clear_time_series()
            container.set_time_series_storage(None)
        self._component_mgr.remove(component)
        logger.info("Removed component {}", component.summary)
        return component

    def add_time_series(
        self,
        time_series: TimeSeriesData,
        *components: Component,
        skip_if_present: bool = False,
    ) -> None:
        """Store a time series array for one or more components.

        The array is stored once. Each additional component adds a reference to it.

        Parameters
        ----------
        time_series : TimeSeriesData
            Time series data to store.
        components : Component
            Add the time series to all of these components.
        skip_if_present : bool
            Skip, with a warning, components that already have a time series with the same type
            and label.

        Raises
        ------
        ISDuplicateKey
            Raised if a component already has a time series with the same type and label and
            skip_if_present is False. No component is changed.
        ISReadOnly
            Raised if the storage is read-only.

        Examples
        --------
        >>> gen1 = system.get_component(Generator, "gen1")
        >>> gen2 = system.get_component(Generator, "gen2")
        >>> ts = SingleTimeSeries.from_array(
            data=[0.86, 0.78, 0.81, 0.85, 0.79],
            label="active_power",
            initial_timestamp=datetime(year=2030, month=1, day=1),
            resolution=timedelta(hours=1),
        )
        >>> system.add_time_series(ts, gen1, gen2)
        """
        self._time_series_storage.check_read_only()
        if not components:
            msg = "add_time_series requires at least one component"
            raise ISConflictingArguments(msg)

        metadata = time_series.get_time_series_metadata_type().from_data(time_series)
        containers = [self._get_time_series_container(x) for x in components]
        if not skip_if_present:
            for component, container in zip(components, containers):
                if not container.check_time_series_addition(metadata):
                    msg = f"{component.summary} already has time series {metadata.summary}"
                    raise ISDuplicateKey(msg)

        array = time_series.get_array()
        for component, container in zip(components, containers):
            if not container.check_time_series_addition(metadata):
                logger.warning(
                    "Skipping time series {} for {} because it is already stored",
                    metadata.summary,
                    component.summary,
                )
                continue
            self._time_series_storage.serialize_time_series(metadata, component.uuid, array)
            container.add_time_series(metadata)
        logger.debug("Added time series {} to {} components", metadata.summary, len(components))

    def get_time_series(
        self,
        time_series_type: Type,
        component: Component,
        label: str,
        selection: Optional[TimeSeriesSelection] = None,
    ) -> Any:
        """Return a time series array. Only the entries matching selection are read from
        storage.

        Raises
        ------
        ISNotStored
            Raised if no time series matches the inputs.
        ISConflictingArguments
            Raised if the selection does not match the time series.

        Examples
        --------
        >>> gen1 = system.get_component(Generator, "gen1")
        >>> ts_full = system.get_time_series(SingleTimeSeries, gen1, "active_power")
        >>> ts_slice = system.get_time_series(
            SingleTimeSeries,
            gen1,
            "active_power",
            selection=TimeSeriesSelection(start_time=datetime(2030, 1, 1, 5), head=5),
        )
        """
        metadata = self.get_time_series_metadata(time_series_type, component, label)
        return self._time_series_storage.deserialize_time_series(metadata, selection=selection)

    def get_time_series_array(
        self,
        time_series_type: Type,
        component: Component,
        label: str,
        selection: Optional[TimeSeriesSelection] = None,
    ) -> NDArray:
        """Return the values of a time series scaled relative to the component by its
        scaling_factor_multiplier.

        Examples
        --------
        >>> gen1 = system.get_component(Generator, "gen1")
        >>> system.get_time_series_array(SingleTimeSeries, gen1, "max_active_power")
        """
        time_series = self.get_time_series(time_series_type, component, label, selection)
        return time_series.get_scaled_array(component)

    def get_time_series_metadata(
        self, time_series_type: Type, component: Component, label: str
    ) -> TimeSeriesMetadata:
        """Return the metadata of a time series without reading its array."""
        return self._get_time_series_container(component).get_time_series(
            time_series_type, label
        )

    def has_time_series(
        self,
        component: Component,
        time_series_type: Optional[Type] = None,
        label: Optional[str] = None,
    ) -> bool:
        """Return True if the component has time series matching the inputs."""
        container = component.get_time_series_container()
        return container is not None and container.has_time_series(time_series_type, label)

    def remove_time_series(self, time_series_type: Type, component: Component, label: str) -> None:
        """Remove a time series from a component. The array is deleted from storage when no
        other component references it.

        Raises
        ------
        ISNotStored
            Raised if no time series matches the inputs.
        ISReadOnly
            Raised if the storage is read-only.
        """
        self._time_series_storage.check_read_only()
        container = self._get_time_series_container(component)
        metadata = container.get_time_series(time_series_type, label)
        self._time_series_storage.remove_time_series(
            metadata.time_series_uuid, component.uuid, label
        )
        container.remove_time_series(time_series_type, label)
        logger.info("Removed time series {} from {}", metadata.summary, component.summary)

    def clear_time_series(self) -> None:
        """Remove all time series from all components."""
        self._time_series_storage.check_read_only()
        for component in self._component_mgr.iter_all():
            container = component.get_time_series_container()
            if container is not None:
                container.clear_time_series()
        self._time_series_storage.clear_time_series()

    def get_time_series_initial_times(
        self, time_series_type: Optional[Type] = None
    ) -> list[datetime]:
        """Return the sorted union of the initial times of all time series of the type."""
        initial_times: set[datetime] = set()
        for component in self._component_mgr.iter_all():
            container = component.get_time_series_container()
            if container is None:
                continue
            if time_series_type is None:
                container.collect_initial_times(initial_times)
            else:
                for label in container.get_time_series_labels(time_series_type):
                    initial_times.update(
                        container.get_time_series_initial_times(time_series_type, label)
                    )
        return sorted(initial_times)

    def get_time_series_labels(self, time_series_type: Type, component: Component) -> list[str]:
        """Return the labels of the time series of the type attached to the component."""
        return self._get_time_series_container(component).get_time_series_labels(
            time_series_type
        )

    def get_num_time_series(self) -> int:
        """Return the number of time series attached to components. A shared array is counted
        once per component."""
        return sum(
            len(container)
            for x in self._component_mgr.iter_all()
            if (container := x.get_time_series_container()) is not None
        )

    def _get_time_series_container(self, component: Component) -> TimeSeriesContainer:
        self._component_mgr.raise_if_not_attached(component)
        container = component.get_time_series_container()
        if container is None:
            msg = f"{component.summary} does not support time series"
            raise ISOperationNotAllowed(msg)
        return container

    @staticmethod
    def _make_time_series_file(filename: Path) -> Path:
        return filename.parent / (filename.stem + "_time_series.h5")

    def info(self) -> None:
        """Print summary tables of the components and time series."""
        info = SystemInfo(system=self)
        info.render()


class SystemInfo:
    """Class to store system component info"""

    def __init__(self, system: System) -> None:
        self.system = system

    def extract_system_counts(self) -> tuple[dict[str, int], dict[tuple[str, str], int]]:
        component_type_count = {
            x.__name__: count for x, count in self.system.get_num_components_by_type().items()
        }
        time_series_type_count: dict[tuple[str, str], int] = defaultdict(int)
        for component in self.system.iter_all_components():
            component_type = type(component).__name__
            container = component.get_time_series_container()
            if container is None:
                continue
            for metadata in container.iter_metadata():
                time_series_type_count[(component_type, metadata.type)] += 1
        return component_type_count, time_series_type_count

    def render(self) -> None:
        """Render Summary information from the system."""
        component_type_count, time_series_type_count = self.extract_system_counts()

        system_table = Table(
            title="System",
            show_header=True,
            title_justify="left",
            title_style="bold",
        )
        system_table.add_column("Property")
        system_table.add_column("Value", justify="right")
        system_table.add_row("System name", self.system.name)
        system_table.add_row("Components attached", f"{self.system.get_num_components()}")
        system_table.add_row("Time Series attached", f"{self.system.get_num_time_series()}")
        system_table.add_row(
            "Time Series arrays stored",
            f"{self.system.time_series_storage.get_num_time_series()}",
        )
        system_table.add_row("Description", self.system.description)
        _pprint(system_table)

        component_table = Table(
            title="Component Information",
            show_header=True,
            title_justify="left",
            title_style="bold",
        )
        component_table.add_column("Type", min_width=20)
        component_table.add_column("Count", justify="right")
        for component_type, component_count in sorted(component_type_count.items()):
            component_table.add_row(f"{component_type}", f"{component_count}")
        if component_table.rows:
            _pprint(component_table)

        time_series_table = Table(
            title="Time Series Summary",
            show_header=True,
            title_justify="left",
            title_style="bold",
        )
        time_series_table.add_column("Component Type", min_width=20)
        time_series_table.add_column("Time Series Type", justify="right")
        time_series_table.add_column("Count", justify="right")
        for (component_type, time_series_type), count in sorted(time_series_type_count.items()):
            time_series_table.add_row(f"{component_type}", f"{time_series_type}", f"{count}")
        if time_series_table.rows:
            _pprint(time_series_table)
