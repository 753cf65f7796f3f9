"""Defines the container that tracks the time series metadata of one component."""

from datetime import datetime
from typing import Any, Iterable, Optional, Type

from loguru import logger

from infraseries.exceptions import ISDuplicateKey, ISNotStored, ISOwnershipConflict
from infraseries.serialization import (
    TYPE_METADATA,
    CachedTypeHelper,
    SerializedTypeMetadata,
    serialize_value,
)
from infraseries.time_series_models import (
    TimeSeriesData,
    TimeSeriesKey,
    TimeSeriesMetadata,
    TimeSeriesSelection,
    get_metadata_type,
)
from infraseries.time_series_storage import TimeSeriesStorage


class TimeSeriesContainer:
    """Stores the time series metadata attached to one component, keyed by type and label.

    The arrays live in a shared TimeSeriesStorage. Type arguments can be time series data
    types, such as SingleTimeSeries, or metadata types, such as SingleTimeSeriesMetadata.
    """

    def __init__(self, time_series_storage: Optional[TimeSeriesStorage] = None) -> None:
        self._metadata: dict[TimeSeriesKey, TimeSeriesMetadata] = {}
        self._time_series_storage = time_series_storage

    def __len__(self) -> int:
        return len(self._metadata)

    @property
    def time_series_storage(self) -> Optional[TimeSeriesStorage]:
        """Return the storage that holds the arrays, if one is set."""
        return self._time_series_storage

    def set_time_series_storage(self, storage: Optional[TimeSeriesStorage]) -> None:
        """Bind the container to a storage or unbind it by passing None.

        Raises
        ------
        ISOwnershipConflict
            Raised if the container is already bound to a storage. Unbind it first.
        """
        if storage is not None and self._time_series_storage is not None:
            msg = "The time series container is already bound to a storage"
            raise ISOwnershipConflict(msg)
        self._time_series_storage = storage

    def add_time_series(self, metadata: TimeSeriesMetadata, skip_if_present: bool = False) -> bool:
        """Add metadata. Return False if it was skipped.

        Raises
        ------
        ISDuplicateKey
            Raised if metadata with the same type and label is stored and skip_if_present is
            False.
        """
        key = _make_key(type(metadata), metadata.label)
        if key in self._metadata:
            if skip_if_present:
                logger.warning("Skipping time series {} because it is already stored", key)
                return False
            msg = f"Time series {key} is already stored"
            raise ISDuplicateKey(msg)
        self._metadata[key] = metadata
        return True

    def check_time_series_addition(self, metadata: TimeSeriesMetadata) -> bool:
        """Return True if metadata can be added, False if an entry with the same key exists."""
        return _make_key(type(metadata), metadata.label) not in self._metadata

    def remove_time_series(self, time_series_type: Type, label: str) -> TimeSeriesMetadata:
        """Remove and return the metadata.

        Raises
        ------
        ISNotStored
            Raised if the metadata is not stored.
        """
        key = _make_key(time_series_type, label)
        metadata = self._metadata.pop(key, None)
        if metadata is None:
            msg = f"Time series {key} is not stored"
            raise ISNotStored(msg)
        return metadata

    def clear_time_series(self) -> list[TimeSeriesMetadata]:
        """Remove and return all metadata."""
        removed = list(self._metadata.values())
        self._metadata.clear()
        return removed

    def get_time_series(self, time_series_type: Type, label: str) -> TimeSeriesMetadata:
        """Return the metadata for the type and label.

        Raises
        ------
        ISNotStored
            Raised if the metadata is not stored.
        """
        key = _make_key(time_series_type, label)
        metadata = self._metadata.get(key)
        if metadata is None:
            msg = f"Time series {key} is not stored"
            raise ISNotStored(msg)
        return metadata

    def read_time_series(
        self,
        time_series_type: Type,
        label: str,
        selection: Optional[TimeSeriesSelection] = None,
    ) -> TimeSeriesData:
        """Read the time series from the bound storage.

        Raises
        ------
        ISNotStored
            Raised if the metadata is not stored or the container is not bound to a storage.
        """
        metadata = self.get_time_series(time_series_type, label)
        if self._time_series_storage is None:
            msg = f"Time series {metadata.summary} is not bound to a storage"
            raise ISNotStored(msg)
        return self._time_series_storage.deserialize_time_series(metadata, selection=selection)

    def has_time_series(
        self, time_series_type: Optional[Type] = None, label: Optional[str] = None
    ) -> bool:
        """Return True if any metadata matches the type and label."""
        return any(True for _ in self._iter_matches(time_series_type, label))

    def get_time_series_initial_times(
        self, time_series_type: Optional[Type] = None, label: Optional[str] = None
    ) -> list[datetime]:
        """Return the initial times of the first matching time series.

        With no arguments, use the first stored time series. With a type, use the first time
        series of that type or a subtype. With a type and label, use that exact entry. Return
        an empty list if nothing matches.
        """
        metadata = next(self._iter_matches(time_series_type, label), None)
        return [] if metadata is None else metadata.get_initial_times()

    def collect_initial_times(self, initial_times: set[datetime]) -> None:
        """Add the initial times of all time series to initial_times."""
        for metadata in self._metadata.values():
            initial_times.update(metadata.get_initial_times())

    def get_time_series_labels(self, time_series_type: Optional[Type] = None) -> list[str]:
        """Return the unique labels of all time series of the type in insertion order."""
        return list(dict.fromkeys(x.label for x in self._iter_matches(time_series_type, None)))

    def iter_metadata(self) -> Iterable[TimeSeriesMetadata]:
        """Return an iterator over all metadata."""
        return iter(list(self._metadata.values()))

    def serialize(self) -> list[dict[str, Any]]:
        """Serialize all metadata. Each record is tagged with its type."""
        return [serialize_value(x) for x in self._metadata.values()]

    @classmethod
    def deserialize(
        cls,
        records: Iterable[dict[str, Any]],
        time_series_storage: Optional[TimeSeriesStorage] = None,
        cached_types: Optional[CachedTypeHelper] = None,
    ) -> "TimeSeriesContainer":
        """Construct a container from records made by serialize."""
        cached_types = cached_types or CachedTypeHelper()
        container = cls(time_series_storage=time_series_storage)
        for record in records:
            values = {k: v for k, v in record.items() if k != TYPE_METADATA}
            metadata_type = cached_types.get_type(
                SerializedTypeMetadata(**record[TYPE_METADATA])
            )
            container.add_time_series(metadata_type(**values))
        return container

    def _iter_matches(
        self, time_series_type: Optional[Type], label: Optional[str]
    ) -> Iterable[TimeSeriesMetadata]:
        metadata_type = None if time_series_type is None else get_metadata_type(time_series_type)
        for key, metadata in self._metadata.items():
            if metadata_type is not None and not issubclass(key.time_series_type, metadata_type):
                continue
            if label is not None and key.label != label:
                continue
            yield metadata


def _make_key(time_series_type: Type, label: str) -> TimeSeriesKey:
    return TimeSeriesKey(time_series_type=get_metadata_type(time_series_type), label=label)
