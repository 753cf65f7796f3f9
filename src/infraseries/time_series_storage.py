"""Defines the base class for time series storage and the helpers shared by all backends."""

import abc
import enum
from functools import singledispatchmethod
from pathlib import Path
from typing import Any, Optional
from uuid import UUID

from loguru import logger
from numpy.typing import NDArray
from pydantic import Field
from typing_extensions import Annotated

from infraseries.exceptions import (
    ISConflictingArguments,
    ISReadOnly,
    ISUnsupportedBackend,
)
from infraseries.models import InfraSeriesBaseModel
from infraseries.time_series_models import (
    COMPONENT_NAME_DELIMITER,
    Deterministic,
    DeterministicMetadata,
    SingleTimeSeries,
    SingleTimeSeriesMetadata,
    TimeSeriesData,
    TimeSeriesMetadata,
    TimeSeriesSelection,
)


class TimeSeriesStorageType(str, enum.Enum):
    """Defines the possible storage types for time series."""

    MEMORY = "memory"
    HDF5 = "hdf5"


class CompressionType(str, enum.Enum):
    """Defines the compression filters supported by the HDF5 backend."""

    BLOSC = "BLOSC"
    DEFLATE = "DEFLATE"


class CompressionSettings(InfraSeriesBaseModel):
    """Compression settings for stored arrays."""

    enabled: bool = False
    type: CompressionType = CompressionType.DEFLATE
    level: Annotated[int, Field(ge=0, le=9, description="0 is the fastest and 9 the smallest")] = 3
    shuffle: bool = True


def make_component_name(component_uuid: UUID, label: str) -> str:
    """Return the name that identifies one owner of a stored array."""
    if COMPONENT_NAME_DELIMITER in label:
        msg = f"A time series label cannot contain {COMPONENT_NAME_DELIMITER!r}: {label}"
        raise ISConflictingArguments(msg)
    return f"{component_uuid}{COMPONENT_NAME_DELIMITER}{label}"


def deserialize_component_name(name: str) -> tuple[UUID, str]:
    """Split a name made by make_component_name into the component UUID and the label."""
    uuid, delimiter, label = name.partition(COMPONENT_NAME_DELIMITER)
    if not delimiter:
        msg = f"{name} is not a valid component name"
        raise ISConflictingArguments(msg)
    return UUID(uuid), label


class TimeSeriesStorage(abc.ABC):
    """Base class for time series storage.

    Arrays are stored once per time series UUID. Every owner of an array is recorded by the
    name returned by make_component_name. The reference count of an array is the number of
    its owners and the array is deleted when the last owner is removed.
    """

    def __init__(self, read_only: bool = False) -> None:
        self._read_only = read_only

    def __enter__(self) -> "TimeSeriesStorage":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def is_read_only(self) -> bool:
        """Return True if the storage does not allow changes."""
        return self._read_only

    def check_read_only(self) -> None:
        """Raise ISReadOnly if the storage does not allow changes."""
        if self._read_only:
            msg = f"Cannot modify read-only time series storage: {self}"
            raise ISReadOnly(msg)

    @staticmethod
    @abc.abstractmethod
    def get_storage_type() -> TimeSeriesStorageType:
        """Return the type of the storage backend."""

    @abc.abstractmethod
    def serialize_time_series(
        self, metadata: TimeSeriesMetadata, owner_uuid: UUID, array: NDArray
    ) -> None:
        """Store an array for an owner. If the array is already stored, add a reference.

        Raises
        ------
        ISReadOnly
            Raised if the storage is read-only.
        """

    @abc.abstractmethod
    def add_time_series_reference(
        self, owner_uuid: UUID, label: str, time_series_uuid: UUID
    ) -> None:
        """Add an owner to a stored array.

        Raises
        ------
        ISNotStored
            Raised if no array is stored with time_series_uuid.
        """

    @abc.abstractmethod
    def remove_time_series(self, time_series_uuid: UUID, owner_uuid: UUID, label: str) -> None:
        """Remove an owner from a stored array. Delete the array if it has no more owners.

        Raises
        ------
        ISNotStored
            Raised if the array is not stored or the owner is not one of its owners.
        """

    @abc.abstractmethod
    def get_array(self, metadata: TimeSeriesMetadata, index: int, length: int) -> NDArray:
        """Return length entries along the first axis of a stored array, starting at index."""

    @abc.abstractmethod
    def clear_time_series(self) -> None:
        """Remove all stored arrays."""

    @abc.abstractmethod
    def get_num_time_series(self) -> int:
        """Return the number of stored arrays."""

    @abc.abstractmethod
    def get_reference_count(self, time_series_uuid: UUID) -> int:
        """Return the number of owners of a stored array. Return 0 if it is not stored."""

    @abc.abstractmethod
    def serialize(self, filename: Path | str) -> None:
        """Write all stored arrays to an HDF5 file."""

    def close(self) -> None:
        """Release any resources held by the storage."""

    def has_time_series(self, time_series_uuid: UUID) -> bool:
        """Return True if an array is stored with time_series_uuid."""
        return self.get_reference_count(time_series_uuid) > 0

    def deserialize_time_series(
        self, metadata: TimeSeriesMetadata, selection: Optional[TimeSeriesSelection] = None
    ) -> TimeSeriesData:
        """Return the time series described by metadata. Only the selected entries are read.

        Raises
        ------
        ISNotStored
            Raised if the array is not stored.
        ISConflictingArguments
            Raised if the selection does not match the stored array.
        """
        index, length = metadata.get_range(selection)
        array = self.get_array(metadata, index, length)
        logger.debug("Read {} entries of {} at index {}", length, metadata.summary, index)
        return self._make_time_series(metadata, array, index)

    @singledispatchmethod
    def _make_time_series(
        self, metadata: TimeSeriesMetadata, array: NDArray, index: int
    ) -> TimeSeriesData:
        msg = f"Bug: need to implement deserialize_time_series for {type(metadata)}"
        raise NotImplementedError(msg)

    @_make_time_series.register(SingleTimeSeriesMetadata)
    def _(self, metadata: SingleTimeSeriesMetadata, array: NDArray, index: int) -> TimeSeriesData:
        return SingleTimeSeries.from_metadata(metadata, array, index=index)

    @_make_time_series.register(DeterministicMetadata)
    def _(self, metadata: DeterministicMetadata, array: NDArray, index: int) -> TimeSeriesData:
        return Deterministic.from_metadata(metadata, array, window_offset=index)


def make_time_series_storage(
    in_memory: bool = False,
    filename: Optional[Path | str] = None,
    directory: Optional[Path | str] = None,
    compression: Optional[CompressionSettings] = None,
    read_only: bool = False,
) -> TimeSeriesStorage:
    """Construct a time series storage backend.

    Parameters
    ----------
    in_memory : bool
        Store arrays in memory instead of in an HDF5 file.
    filename : Path | str | None
        HDF5 file to use. An existing file is opened for appending, or read-only if read_only
        is True. If None, a temporary file is created in directory.
    directory : Path | str | None
        Directory for the temporary file. Defaults to the system temp directory.
    compression : CompressionSettings | None
        Compression for new arrays. Arrays stored in memory are compressed when serialized.
    read_only : bool
        Reject all changes to the storage.
    """
    from infraseries.h5_time_series_storage import HDF5TimeSeriesStorage
    from infraseries.in_memory_time_series_storage import InMemoryTimeSeriesStorage

    if in_memory:
        storage: TimeSeriesStorage = InMemoryTimeSeriesStorage(
            compression=compression, read_only=read_only
        )
    elif read_only:
        if filename is None:
            msg = "A filename is required for read-only time series storage"
            raise ISConflictingArguments(msg)
        storage = HDF5TimeSeriesStorage(filename, file_mode="r", compression=compression)
    else:
        file_mode = "r+" if filename is not None and Path(filename).exists() else "w-"
        storage = HDF5TimeSeriesStorage(
            filename, directory=directory, file_mode=file_mode, compression=compression
        )
    logger.debug("Created time series storage {}", storage)
    return storage


def serialize_storage(storage: Any, filename: Path | str) -> None:
    """Write the arrays in storage to an HDF5 file.

    Raises
    ------
    ISUnsupportedBackend
        Raised if storage is not one of the known backends.
    """
    from infraseries.h5_time_series_storage import HDF5TimeSeriesStorage
    from infraseries.in_memory_time_series_storage import InMemoryTimeSeriesStorage

    match storage:
        case InMemoryTimeSeriesStorage():
            storage.serialize(filename)
        case HDF5TimeSeriesStorage():
            storage.serialize(filename)
        case _:
            msg = f"Unsupported time series storage: {type(storage)}"
            raise ISUnsupportedBackend(msg)
    logger.info("Serialized time series storage to {}", filename)
