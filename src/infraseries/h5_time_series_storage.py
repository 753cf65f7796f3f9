"""Stores time series arrays in an HDF5 file."""

import shutil
import tempfile
from pathlib import Path
from typing import Any, Literal, Optional
from uuid import UUID

import h5py
import hdf5plugin
import numpy as np
from loguru import logger
from numpy.typing import NDArray

from infraseries.exceptions import (
    ISDataFormatError,
    ISFileExists,
    ISNotStored,
    ISOperationNotAllowed,
)
from infraseries.time_series_models import TimeSeriesMetadata
from infraseries.time_series_storage import (
    CompressionSettings,
    CompressionType,
    TimeSeriesStorage,
    TimeSeriesStorageType,
    make_component_name,
)

TIME_SERIES_DATA_FORMAT_VERSION = "1.0.0"
TIME_SERIES_VERSION_KEY = "data_format_version"
STAGING_PREFIX = "_staging_"

# create, overwrite, append, read-only
FileMode = Literal["w-", "w", "r+", "r"]


class HDF5TimeSeriesStorage(TimeSeriesStorage):
    """Stores time series in an h5 file.

    The file stays open for the lifetime of the instance. Call close() or use the instance as
    a context manager to release it.

    Layout::

        /time_series                    attrs: data_format_version, compression_*
        /time_series/<uuid>             attrs: type, compression, shuffle
        /time_series/<uuid>/data        1-D (SingleTimeSeries) or 2-D (Deterministic)
        /time_series/<uuid>/components  names of the owners of the array
    """

    HDF5_TS_ROOT_PATH = "time_series"

    def __init__(
        self,
        filename: Optional[Path | str] = None,
        directory: Optional[Path | str] = None,
        file_mode: FileMode = "w-",
        compression: Optional[CompressionSettings] = None,
    ) -> None:
        """Open or create the HDF5 file.

        Parameters
        ----------
        filename : Path | str | None
            Path to the file. If None, create a temporary file in directory. It is deleted
            when the storage is closed.
        directory : Path | str | None
            Directory for the temporary file.
        file_mode : str
            "w-" creates a new file and fails if it exists, "w" truncates, "r+" opens an
            existing file for writing, "r" opens an existing file read-only.
        compression : CompressionSettings | None
            Compression for new arrays. If None, use the settings stored in an existing file
            or the default settings for a new file.

        Raises
        ------
        ISFileExists
            Raised if file_mode is "w-" and the file exists.
        ISNotStored
            Raised if file_mode is "r" or "r+" and the file does not exist.
        """
        super().__init__(read_only=file_mode == "r")
        self._is_temp_file = filename is None
        if filename is None:
            with tempfile.NamedTemporaryFile(dir=directory, suffix=".h5", delete=False) as f:
                filename = f.name
            file_mode = "w"
        self._filename = Path(filename)

        if file_mode == "w-" and self._filename.exists():
            msg = f"{self._filename} already exists"
            raise ISFileExists(msg)
        if file_mode in ("r", "r+") and not self._filename.exists():
            msg = f"{self._filename} does not exist"
            raise ISNotStored(msg)

        try:
            self._file = h5py.File(self._filename, mode=file_mode)
        except Exception:
            self._remove_temp_file()
            raise
        try:
            self._compression = self._check_root(compression)
        except Exception:
            self._file.close()
            self._remove_temp_file()
            raise
        logger.debug("Opened {} with mode={}", self._filename, file_mode)

    @classmethod
    def open_copy(
        cls,
        filename: Path | str,
        directory: Optional[Path | str] = None,
        compression: Optional[CompressionSettings] = None,
    ) -> "HDF5TimeSeriesStorage":
        """Copy filename to a temporary file in directory and open the copy for writing. The
        copy is deleted when the storage is closed."""
        with tempfile.NamedTemporaryFile(dir=directory, suffix=".h5", delete=False) as f:
            dst = Path(f.name)
        try:
            shutil.copyfile(filename, dst)
            storage = cls(dst, file_mode="r+", compression=compression)
        except Exception:
            dst.unlink(missing_ok=True)
            raise
        storage._is_temp_file = True
        logger.debug("Opened a copy of {} at {}", filename, dst)
        return storage

    def __repr__(self) -> str:
        return f"{type(self).__name__}(filename={self._filename}, read_only={self.is_read_only})"

    @staticmethod
    def get_storage_type() -> TimeSeriesStorageType:
        return TimeSeriesStorageType.HDF5

    @property
    def compression(self) -> CompressionSettings:
        return self._compression

    @property
    def filename(self) -> Path:
        return self._filename

    def close(self) -> None:
        if not self._file:
            return
        if self._file.mode != "r":
            self._file.flush()
        self._file.close()
        logger.debug("Closed {}", self._filename)
        self._remove_temp_file()

    def _remove_temp_file(self) -> None:
        if self._is_temp_file:
            self._filename.unlink(missing_ok=True)

    def _check_root(self, compression: Optional[CompressionSettings]) -> CompressionSettings:
        """Check that the root group exists and return the compression settings to use."""
        if self.HDF5_TS_ROOT_PATH in self._file:
            root = self._file[self.HDF5_TS_ROOT_PATH]
            if compression is None:
                compression = CompressionSettings(
                    enabled=bool(root.attrs.get("compression_enabled", False)),
                    type=CompressionType(root.attrs.get("compression_type", "DEFLATE")),
                    level=int(root.attrs.get("compression_level", 3)),
                    shuffle=bool(root.attrs.get("compression_shuffle", True)),
                )
            return compression

        if self.is_read_only:
            msg = f"{self._filename} does not contain the group {self.HDF5_TS_ROOT_PATH}"
            raise ISDataFormatError(msg)

        compression = compression or CompressionSettings()
        root = self._file.create_group(self.HDF5_TS_ROOT_PATH)
        root.attrs[TIME_SERIES_VERSION_KEY] = TIME_SERIES_DATA_FORMAT_VERSION
        root.attrs["compression_enabled"] = compression.enabled
        root.attrs["compression_type"] = compression.type.value
        root.attrs["compression_level"] = compression.level
        root.attrs["compression_shuffle"] = compression.shuffle
        return compression

    @property
    def _root(self) -> h5py.Group:
        return self._file[self.HDF5_TS_ROOT_PATH]

    def _get_group(self, time_series_uuid: UUID) -> h5py.Group:
        uuid = str(time_series_uuid)
        if uuid not in self._root:
            msg = f"Time series with {uuid=} not found"
            raise ISNotStored(msg)
        return self._root[uuid]

    def _get_compression_kwargs(self) -> dict[str, Any]:
        if not self._compression.enabled:
            return {}
        match self._compression.type:
            case CompressionType.DEFLATE:
                return {
                    "compression": "gzip",
                    "compression_opts": self._compression.level,
                    "shuffle": self._compression.shuffle,
                }
            case CompressionType.BLOSC:
                shuffle = (
                    hdf5plugin.Blosc.SHUFFLE
                    if self._compression.shuffle
                    else hdf5plugin.Blosc.NOSHUFFLE
                )
                return dict(hdf5plugin.Blosc(clevel=self._compression.level, shuffle=shuffle))

    def write_array(
        self, time_series_uuid: UUID, time_series_type: str, array: NDArray, owners: set[str]
    ) -> None:
        """Write a new array with its owners.

        The array is written to a staging group that is moved into place only after all
        writes succeed.
        """
        self.check_read_only()
        uuid = str(time_series_uuid)
        staging = f"{STAGING_PREFIX}{uuid}"
        root = self._root
        group = root.create_group(staging)
        try:
            group.create_dataset("data", data=array, **self._get_compression_kwargs())
            _write_owners(group, owners)
            group.attrs["type"] = time_series_type
            group.attrs["compression"] = (
                self._compression.type.value if self._compression.enabled else "none"
            )
            group.attrs["shuffle"] = self._compression.enabled and self._compression.shuffle
            root.move(staging, uuid)
        except Exception:
            if staging in root:
                del root[staging]
            raise
        logger.debug("Stored time series {} with shape {}", uuid, np.shape(array))

    def serialize_time_series(
        self, metadata: TimeSeriesMetadata, owner_uuid: UUID, array: NDArray
    ) -> None:
        self.check_read_only()
        name = make_component_name(owner_uuid, metadata.label)
        if str(metadata.time_series_uuid) in self._root:
            self._add_owner(self._root[str(metadata.time_series_uuid)], name)
            return
        self.write_array(metadata.time_series_uuid, metadata.type, array, {name})

    def add_time_series_reference(
        self, owner_uuid: UUID, label: str, time_series_uuid: UUID
    ) -> None:
        self.check_read_only()
        group = self._get_group(time_series_uuid)
        self._add_owner(group, make_component_name(owner_uuid, label))

    def _add_owner(self, group: h5py.Group, name: str) -> None:
        owners = _read_owners(group)
        if name not in owners:
            owners.add(name)
            _write_owners(group, owners)
        logger.debug("Added reference {} to time series {}", name, group.name)

    def remove_time_series(self, time_series_uuid: UUID, owner_uuid: UUID, label: str) -> None:
        self.check_read_only()
        group = self._get_group(time_series_uuid)
        name = make_component_name(owner_uuid, label)
        owners = _read_owners(group)
        if name not in owners:
            msg = f"{name} is not an owner of time series {time_series_uuid}"
            raise ISNotStored(msg)

        owners.remove(name)
        if owners:
            _write_owners(group, owners)
            logger.debug("Removed reference {} from time series {}", name, time_series_uuid)
        else:
            del self._root[str(time_series_uuid)]
            logger.debug("Deleted time series {}", time_series_uuid)

    def get_array(self, metadata: TimeSeriesMetadata, index: int, length: int) -> NDArray:
        group = self._get_group(metadata.time_series_uuid)
        return group["data"][index : index + length]

    def get_owners(self, time_series_uuid: UUID) -> set[str]:
        """Return the names of the owners of a stored array."""
        return _read_owners(self._get_group(time_series_uuid))

    def clear_time_series(self) -> None:
        self.check_read_only()
        for name in list(self._root):
            del self._root[name]
        logger.info("Removed all time series from {}", self._filename)

    def get_num_time_series(self) -> int:
        return sum(1 for x in self._root if not x.startswith(STAGING_PREFIX))

    def get_reference_count(self, time_series_uuid: UUID) -> int:
        uuid = str(time_series_uuid)
        if uuid not in self._root:
            return 0
        return len(_read_owners(self._root[uuid]))

    def serialize(self, filename: Path | str) -> None:
        """Copy the HDF5 file to filename.

        Raises
        ------
        ISOperationNotAllowed
            Raised if filename is the file backing a writable storage.
        """
        dst = Path(filename)
        if dst.exists() and dst.resolve() == self._filename.resolve():
            if self.is_read_only:
                logger.info("Time series storage is already stored in {}", dst)
                return
            msg = f"Cannot serialize time series storage onto its own file: {dst}"
            raise ISOperationNotAllowed(msg)

        if not self.is_read_only:
            self._file.flush()
        shutil.copyfile(self._filename, dst)
        logger.info("Copied time series storage from {} to {}", self._filename, dst)


def _read_owners(group: h5py.Group) -> set[str]:
    return set(group["components"].asstr()[()])


def _write_owners(group: h5py.Group, owners: set[str]) -> None:
    if "components" in group:
        del group["components"]
    group.create_dataset("components", data=sorted(owners), dtype=h5py.string_dtype())
