"""In-memory time series storage"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from uuid import UUID

import numpy as np
from loguru import logger
from numpy.typing import NDArray

from infraseries.exceptions import ISNotStored
from infraseries.h5_time_series_storage import HDF5TimeSeriesStorage
from infraseries.time_series_models import TimeSeriesMetadata
from infraseries.time_series_storage import (
    CompressionSettings,
    TimeSeriesStorage,
    TimeSeriesStorageType,
    make_component_name,
)


@dataclass
class _StoredArray:
    array: NDArray
    time_series_type: str
    owners: set[str] = field(default_factory=set)


class InMemoryTimeSeriesStorage(TimeSeriesStorage):
    """Stores time series in memory."""

    def __init__(
        self, compression: Optional[CompressionSettings] = None, read_only: bool = False
    ) -> None:
        super().__init__(read_only=read_only)
        # Time series UUID, not metadata UUID
        self._arrays: dict[UUID, _StoredArray] = {}
        self._compression = compression

    def __repr__(self) -> str:
        return f"{type(self).__name__}(num_time_series={len(self._arrays)})"

    @staticmethod
    def get_storage_type() -> TimeSeriesStorageType:
        return TimeSeriesStorageType.MEMORY

    def serialize_time_series(
        self, metadata: TimeSeriesMetadata, owner_uuid: UUID, array: NDArray
    ) -> None:
        self.check_read_only()
        name = make_component_name(owner_uuid, metadata.label)
        stored = self._arrays.get(metadata.time_series_uuid)
        if stored is None:
            self._arrays[metadata.time_series_uuid] = _StoredArray(
                array=np.array(array, dtype=np.float64),
                time_series_type=metadata.type,
                owners={name},
            )
            logger.debug("Added {} to store", metadata.summary)
        else:
            stored.owners.add(name)
            logger.debug("{} was already stored. Added reference {}", metadata.summary, name)

    def add_time_series_reference(
        self, owner_uuid: UUID, label: str, time_series_uuid: UUID
    ) -> None:
        self.check_read_only()
        name = make_component_name(owner_uuid, label)
        self._get_stored_array(time_series_uuid).owners.add(name)

    def remove_time_series(self, time_series_uuid: UUID, owner_uuid: UUID, label: str) -> None:
        self.check_read_only()
        stored = self._get_stored_array(time_series_uuid)
        name = make_component_name(owner_uuid, label)
        if name not in stored.owners:
            msg = f"{name} is not an owner of time series {time_series_uuid}"
            raise ISNotStored(msg)

        stored.owners.remove(name)
        if not stored.owners:
            self._arrays.pop(time_series_uuid)
            logger.debug("Deleted time series {}", time_series_uuid)

    def get_array(self, metadata: TimeSeriesMetadata, index: int, length: int) -> NDArray:
        stored = self._get_stored_array(metadata.time_series_uuid)
        return stored.array[index : index + length].copy()

    def clear_time_series(self) -> None:
        self.check_read_only()
        self._arrays.clear()

    def get_num_time_series(self) -> int:
        return len(self._arrays)

    def get_reference_count(self, time_series_uuid: UUID) -> int:
        stored = self._arrays.get(time_series_uuid)
        return 0 if stored is None else len(stored.owners)

    def serialize(self, filename: Path | str) -> None:
        """Write all arrays and their owners to a new HDF5 file. An existing file is
        overwritten."""
        with HDF5TimeSeriesStorage(
            filename, file_mode="w", compression=self._compression
        ) as storage:
            for uuid, stored in self._arrays.items():
                storage.write_array(uuid, stored.time_series_type, stored.array, stored.owners)
        logger.info("Wrote {} time series to {}", len(self._arrays), filename)

    def _get_stored_array(self, time_series_uuid: UUID) -> _StoredArray:
        stored = self._arrays.get(time_series_uuid)
        if stored is None:
            msg = f"No time series with {time_series_uuid} is stored"
            raise ISNotStored(msg)
        return stored
