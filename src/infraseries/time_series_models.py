"""Defines models for time series arrays and their metadata."""

import abc
import functools
import importlib
import numbers
from datetime import datetime, timedelta
from pathlib import Path
from typing import (
    Any,
    Callable,
    Iterator,
    Literal,
    Mapping,
    Optional,
    Sequence,
    Type,
    TypeAlias,
)
from uuid import UUID

import numpy as np
import pandas as pd
from loguru import logger
from numpy.typing import NDArray
from pydantic import Field, field_serializer, field_validator, model_validator
from typing_extensions import Annotated

from infraseries.exceptions import ISConflictingArguments, ISDataFormatError, ISNotStored
from infraseries.models import (
    InfraSeriesBaseModel,
    InfraSeriesBaseModelWithIdentifiers,
    make_model_config,
)
from infraseries.normalization import NormalizationFactor, normalize_data
from infraseries.time_series_parser import RawTimeSeries, read_raw_time_series
from infraseries.utils.time_utils import (
    check_resolution,
    from_iso_8601,
    get_resolution,
    get_time_series_initial_times,
    to_iso_8601,
)

# Reserved for storage keys. Refer to time_series_storage.make_component_name.
COMPONENT_NAME_DELIMITER = "__"

ISArray: TypeAlias = Sequence | NDArray


def serialize_function(func: Callable | None) -> str | None:
    """Return a string reference to a module-level function."""
    if func is None:
        return None
    if "<" in func.__qualname__:
        msg = f"Only module-level functions can be serialized: {func.__qualname__}"
        raise ValueError(msg)
    return f"{func.__module__}:{func.__qualname__}"


def deserialize_function(value: Any) -> Callable | None:
    """Import the function referenced by a string made with serialize_function."""
    if value is None or callable(value):
        return value
    module_name, _, qualname = value.partition(":")
    module = importlib.import_module(module_name)
    return functools.reduce(getattr, qualname.split("."), module)


class TimeSeriesSelection(InfraSeriesBaseModel):
    """Selects a subset of a stored time series.

    start_time and end_time are inclusive. head and tail are applied after the time range.
    window_index only applies to forecasts and cannot be combined with other options.
    """

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    head: Optional[Annotated[int, Field(ge=0)]] = None
    tail: Optional[Annotated[int, Field(ge=0)]] = None
    window_index: Optional[Annotated[int, Field(ge=0)]] = None

    @model_validator(mode="after")
    def check_options(self) -> "TimeSeriesSelection":
        """Check for conflicting options."""
        if self.head is not None and self.tail is not None:
            msg = "head and tail cannot both be set"
            raise ISConflictingArguments(msg)
        if self.window_index is not None and any(
            x is not None for x in (self.start_time, self.end_time, self.head, self.tail)
        ):
            msg = "window_index cannot be combined with other selection options"
            raise ISConflictingArguments(msg)
        return self


def get_selection_range(
    initial_timestamp: datetime,
    step: timedelta,
    count: int,
    selection: TimeSeriesSelection | None,
) -> tuple[int, int]:
    """Return the (index, length) of the entries matching selection.

    Entry i has the timestamp initial_timestamp + i * step.

    Raises
    ------
    ISConflictingArguments
        Raised if the selection does not match any entries.
    """
    if selection is None:
        return (0, count)

    if selection.window_index is not None:
        if selection.window_index >= count:
            msg = f"window_index={selection.window_index} is out of range: {count=}"
            raise ISConflictingArguments(msg)
        return (selection.window_index, 1)

    start, stop = 0, count
    if selection.start_time is not None:
        if step:
            # Ceiling division: the first entry at or after start_time.
            start = max(0, -((initial_timestamp - selection.start_time) // step))
        elif selection.start_time > initial_timestamp:
            start = count
    if selection.end_time is not None:
        if step:
            stop = min(count, (selection.end_time - initial_timestamp) // step + 1)
        elif selection.end_time < initial_timestamp:
            stop = 0

    length = max(stop - start, 0)
    if selection.head is not None:
        length = min(selection.head, length)
    elif selection.tail is not None:
        start += max(length - selection.tail, 0)
        length = min(selection.tail, length)

    if length == 0:
        msg = f"{selection=} does not match any data starting at {initial_timestamp}"
        raise ISConflictingArguments(msg)
    return (start, length)


class TimeSeriesData(InfraSeriesBaseModelWithIdentifiers, abc.ABC):
    """Base class for all time series models"""

    label: str
    scaling_factor_multiplier: Optional[Callable] = None

    @field_validator("label")
    @classmethod
    def check_label(cls, label: str) -> str:
        if COMPONENT_NAME_DELIMITER in label:
            msg = f"A time series label cannot contain {COMPONENT_NAME_DELIMITER!r}: {label}"
            raise ValueError(msg)
        return label

    @field_validator("scaling_factor_multiplier", mode="before")
    @classmethod
    def check_scaling_factor_multiplier(cls, value: Any) -> Callable | None:
        return deserialize_function(value)

    @property
    def summary(self) -> str:
        """Return the label of the time series array with its type."""
        return f"{self.__class__.__name__}.{self.label}"

    @staticmethod
    def get_time_series_metadata_type() -> Type["TimeSeriesMetadata"]:
        """Return the metadata type associated with this time series type."""
        return TimeSeriesMetadata

    @abc.abstractmethod
    def get_array(self) -> NDArray:
        """Return the numeric payload that gets stored."""

    def get_scaled_array(self, owner: Any) -> NDArray:
        """Return the values multiplied by scaling_factor_multiplier(owner). Return the stored
        values if there is no multiplier.

        Examples
        --------
        >>> ts = SingleTimeSeries.from_array(
        ...     [0.5, 1.0], "max_active_power", datetime(2020, 1, 1), timedelta(hours=1),
        ...     scaling_factor_multiplier=get_rating,
        ... )
        >>> ts.get_scaled_array(gen)  # gen.rating == 2.0
        array([1., 2.])
        """
        array = self.get_array()
        if self.scaling_factor_multiplier is None:
            return array
        return array * self.scaling_factor_multiplier(owner)


class SingleTimeSeries(TimeSeriesData):
    """Defines a time array with a single dimension of floats indexed by timestamps."""

    data: pd.Series
    resolution: timedelta

    @model_validator(mode="before")
    @classmethod
    def check_data(cls, values: Any) -> Any:
        """Standardize the data and derive the resolution from its timestamps."""
        if not isinstance(values, dict):
            return values

        data = values.get("data")
        if not isinstance(data, pd.Series):
            msg = (
                "SingleTimeSeries data must be a pandas Series indexed by timestamps. "
                "Use from_array or from_time_array to construct from a sequence."
            )
            raise ISDataFormatError(msg)
        if data.empty:
            msg = "SingleTimeSeries must contain at least one value"
            raise ISDataFormatError(msg)
        data = pd.Series(
            data.to_numpy(dtype=np.float64),
            index=pd.DatetimeIndex(data.index),
            name=data.name,
        )

        resolution = values.get("resolution")
        if len(data) > 1:
            derived = get_resolution(data.index)
            if resolution is not None and resolution != derived:
                msg = f"resolution={resolution} does not match the timestamps: {derived}"
                raise ISDataFormatError(msg)
            resolution = derived
        elif resolution is None:
            msg = "resolution must be provided for a SingleTimeSeries with one value"
            raise ISDataFormatError(msg)
        else:
            check_resolution(resolution)

        return {**values, "data": data, "resolution": resolution}

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, SingleTimeSeries):
            return NotImplemented
        return (
            self.uuid == other.uuid
            and self.label == other.label
            and self.resolution == other.resolution
            and self.scaling_factor_multiplier == other.scaling_factor_multiplier
            and self.data.index.equals(other.data.index)
            and np.array_equal(self.data_array, other.data_array)
        )

    def __len__(self) -> int:
        return self.length

    def __getitem__(self, key: int | slice) -> "SingleTimeSeries":
        """Return a new time series with the values at the integer positions in key."""
        if isinstance(key, int):
            key = slice(key, key + 1 if key != -1 else None)
        return self._split(self.data.iloc[key])

    @classmethod
    def from_array(
        cls,
        data: ISArray,
        label: str,
        initial_timestamp: datetime,
        resolution: timedelta,
        normalization_factor: NormalizationFactor = None,
        scaling_factor_multiplier: Callable | None = None,
    ) -> "SingleTimeSeries":
        """Create an instance from a sequence of values.

        Parameters
        ----------
        data
            Sequence that contains the values of the time series
        label
            Label assigned to the values of the time series (e.g., active_power)
        initial_timestamp
            Start time for the time series (e.g., datetime(2020,1,1))
        resolution
            Resolution of the time series (e.g., 30min, 1hr)
        normalization_factor
            Optional factor to divide every value by. Applied once at construction.
        scaling_factor_multiplier
            Optional module-level function that is applied to the data relative to an owning
            component when the data is retrieved. It is not applied here.

        See Also
        --------
        from_time_array:  Time index implementation
        """
        values = normalize_data(np.asarray(data, dtype=np.float64), normalization_factor)
        check_resolution(resolution)
        index = pd.date_range(start=initial_timestamp, periods=len(values), freq=resolution)
        return cls(
            label=label,
            data=pd.Series(values, index=index),
            resolution=resolution,
            scaling_factor_multiplier=scaling_factor_multiplier,
        )

    @classmethod
    def from_time_array(
        cls,
        data: ISArray,
        label: str,
        time_index: Sequence[datetime],
        normalization_factor: NormalizationFactor = None,
        scaling_factor_multiplier: Callable | None = None,
    ) -> "SingleTimeSeries":
        """Create an instance from values and their timestamps. Every gap in time_index must
        be identical.

        Raises
        ------
        ISDataFormatError
            Raised if the timestamps do not have a uniform resolution or if the lengths of
            data and time_index differ.
        """
        values = normalize_data(np.asarray(data, dtype=np.float64), normalization_factor)
        if len(values) != len(time_index):
            msg = f"Length mismatch: {len(values)} values and {len(time_index)} timestamps"
            raise ISDataFormatError(msg)
        return cls(
            label=label,
            data=pd.Series(values, index=pd.DatetimeIndex(time_index)),
            scaling_factor_multiplier=scaling_factor_multiplier,
        )

    @classmethod
    def from_metadata(
        cls, metadata: "SingleTimeSeriesMetadata", data: NDArray, index: int = 0
    ) -> "SingleTimeSeries":
        """Reconstruct a time series from stored metadata and values read from storage.

        index is the position of the first value of data in the stored array.
        """
        initial_timestamp = metadata.initial_timestamp + index * metadata.resolution
        return cls(
            uuid=metadata.time_series_uuid,
            label=metadata.label,
            data=pd.Series(
                np.asarray(data, dtype=np.float64),
                index=pd.date_range(
                    start=initial_timestamp, periods=len(data), freq=metadata.resolution
                ),
            ),
            resolution=metadata.resolution,
            scaling_factor_multiplier=metadata.scaling_factor_multiplier,
        )

    @staticmethod
    def get_time_series_metadata_type() -> Type["SingleTimeSeriesMetadata"]:
        return SingleTimeSeriesMetadata

    @property
    def data_array(self) -> NDArray:
        return self.data.to_numpy()

    @property
    def initial_timestamp(self) -> datetime:
        return self.data.index[0].to_pydatetime()

    @property
    def length(self) -> int:
        """Return the length of the data."""
        return len(self.data)

    @property
    def timestamps(self) -> list[datetime]:
        return list(self.data.index.to_pydatetime())

    def get_array(self) -> NDArray:
        return self.data_array

    def head(self, num: int = 6) -> "SingleTimeSeries":
        """Return a time series with only the first num values."""
        return self._split(self.data.iloc[:num])

    def tail(self, num: int = 6) -> "SingleTimeSeries":
        """Return a time series with only the last num values."""
        if num <= 0:
            return self._split(self.data.iloc[:0])
        return self._split(self.data.iloc[max(len(self.data) - num, 0) :])

    def first(self) -> "SingleTimeSeries":
        return self.head(1)

    def last(self) -> "SingleTimeSeries":
        return self.tail(1)

    def from_time(self, timestamp: datetime) -> "SingleTimeSeries":
        """Return a time series truncated to start with timestamp."""
        return self._split(self.data[self.data.index >= timestamp])

    def to_time(self, timestamp: datetime) -> "SingleTimeSeries":
        """Return a time series truncated after timestamp."""
        return self._split(self.data[self.data.index <= timestamp])

    def when(self, period: str | Callable[[datetime], Any], value: Any) -> "SingleTimeSeries":
        """Return a time series with only the values whose timestamps match value in period.

        Parameters
        ----------
        period : str | Callable
            Name of a pandas DatetimeIndex field, such as "hour" or "dayofweek", or a function
            that accepts a timestamp.
        value : Any
            Value to match.

        Examples
        --------
        >>> ts.when("hour", 3)
        >>> ts.when(lambda x: x.day, 1)
        """
        if isinstance(period, str):
            mask = np.asarray(getattr(self.data.index, period) == value)
        else:
            mask = np.array([period(x) == value for x in self.data.index.to_pydatetime()])
        return self._split(self.data[mask])

    def _split(self, data: pd.Series) -> "SingleTimeSeries":
        """Create a new time series from a subset of the data. The new instance gets a new
        UUID and its resolution is recomputed from the subset's timestamps."""
        if data.empty:
            msg = f"The requested subset of {self.summary} is empty"
            raise ISConflictingArguments(msg)
        return type(self)(
            label=self.label,
            data=data.copy(),
            resolution=None if len(data) > 1 else self.resolution,
            scaling_factor_multiplier=self.scaling_factor_multiplier,
        )


class ForecastWindows:
    """Lazy and restartable iterable over the windows of a forecast in ascending order."""

    def __init__(self, forecast: "Deterministic") -> None:
        self._forecast = forecast

    def __iter__(self) -> Iterator[pd.Series]:
        for initial_time in self._forecast.data:
            yield self._forecast.get_window(initial_time)

    def __len__(self) -> int:
        return self._forecast.count


class Forecast(TimeSeriesData, abc.ABC):
    """Defines the time series types for forecasts."""

    initial_timestamp: datetime
    resolution: timedelta
    horizon: int
    interval: timedelta
    count: int


class Deterministic(Forecast):
    """A deterministic forecast for a particular data field in a Component.

    The data maps each issue time to a window of horizon values. All windows share one
    resolution and issue times are evenly spaced by interval. initial_timestamp, horizon,
    interval, and count are derived from the data.

    See Also
    --------
    from_dict : Construct from a mapping of issue time to values.
    from_time_series_dict : Construct from a mapping of issue time to time series.
    from_csv : Construct from a delimited file.
    """

    data: dict[datetime, np.ndarray]

    @model_validator(mode="before")
    @classmethod
    def check_data(cls, values: Any) -> Any:
        """Sort the windows and derive the forecast parameters from them."""
        if not isinstance(values, dict):
            return values

        data = _make_windows(values.get("data"))
        initial_times = list(data)
        derived = {
            "initial_timestamp": initial_times[0],
            "horizon": len(data[initial_times[0]]),
            "count": len(initial_times),
        }
        if len(initial_times) > 1:
            derived["interval"] = get_resolution(initial_times)
        elif values.get("interval") is None:
            derived["interval"] = timedelta(0)

        for field, value in derived.items():
            if values.get(field) is not None and values[field] != value:
                msg = f"{field}={values[field]} does not match the forecast data: {value}"
                raise ISDataFormatError(msg)

        resolution = values.get("resolution")
        if resolution is None:
            msg = "resolution must be provided for a Deterministic forecast"
            raise ISDataFormatError(msg)
        check_resolution(resolution)
        return {**values, **derived, "data": data}

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Deterministic):
            return NotImplemented
        return (
            self.uuid == other.uuid
            and self.label == other.label
            and self.resolution == other.resolution
            and self.interval == other.interval
            and self.scaling_factor_multiplier == other.scaling_factor_multiplier
            and list(self.data) == list(other.data)
            and np.array_equal(self.get_array(), other.get_array())
        )

    @classmethod
    def from_dict(
        cls,
        label: str,
        input_data: Mapping[datetime, Any],
        resolution: timedelta,
        normalization_factor: NormalizationFactor = None,
        scaling_factor_multiplier: Callable | None = None,
    ) -> "Deterministic":
        """Construct Deterministic from a mapping of issue time to forecast values.

        Parameters
        ----------
        label
            User-defined label
        input_data
            Maps each issue time to a sequence of values that can be converted to floats.
            Every sequence must have the same length.
        resolution
            Resolution of the values within each window.
        normalization_factor
            Optional factor to divide every value in every window by. Applied once.
        scaling_factor_multiplier
            Optional module-level function applied relative to an owning component when the
            data is retrieved.

        Raises
        ------
        ISDataFormatError
            Raised if input_data is empty, if a value cannot be converted to floats, or if the
            windows have different lengths.

        Examples
        --------
        >>> data = {
        ...     datetime(2020, 1, 1, 0): [1.0, 2.0],
        ...     datetime(2020, 1, 1, 1): [3.0, 4.0],
        ... }
        >>> forecast = Deterministic.from_dict("max_active_power", data, timedelta(hours=1))
        """
        data = _make_windows(input_data)
        if normalization_factor is not None:
            array = normalize_data(np.vstack(list(data.values())), normalization_factor)
            data = dict(zip(data, array))
        return cls(
            label=label,
            data=data,
            resolution=resolution,
            scaling_factor_multiplier=scaling_factor_multiplier,
        )

    @classmethod
    def from_time_series_dict(
        cls,
        label: str,
        input_data: Mapping[datetime, "SingleTimeSeries | pd.Series | pd.DataFrame"],
        normalization_factor: NormalizationFactor = None,
        scaling_factor_multiplier: Callable | None = None,
    ) -> "Deterministic":
        """Construct Deterministic from a mapping of issue time to time series. The resolution
        is derived from the timestamps, which must be evenly spaced in every window.

        Raises
        ------
        ISDataFormatError
            Raised if a window has more than one column or non-uniform timestamps.
        """
        windows: dict[datetime, NDArray] = {}
        resolution: timedelta | None = None
        for initial_time, window in input_data.items():
            if isinstance(window, SingleTimeSeries):
                window = window.data
            elif isinstance(window, pd.DataFrame):
                if len(window.columns) > 1:
                    msg = f"Window with timestamp {initial_time} has more than one column"
                    raise ISDataFormatError(msg)
                window = window.iloc[:, 0]
            window_resolution = get_resolution(window.index)
            if resolution is not None and window_resolution != resolution:
                msg = (
                    f"Window with timestamp {initial_time} has resolution {window_resolution}. "
                    f"Expected {resolution}."
                )
                raise ISDataFormatError(msg)
            resolution = window_resolution
            windows[initial_time] = window.to_numpy()

        if resolution is None:
            msg = "Forecast data cannot be empty"
            raise ISDataFormatError(msg)

        return cls.from_dict(
            label,
            windows,
            resolution=resolution,
            normalization_factor=normalization_factor,
            scaling_factor_multiplier=scaling_factor_multiplier,
        )

    @classmethod
    def from_raw(
        cls,
        label: str,
        raw: RawTimeSeries,
        resolution: timedelta,
        normalization_factor: NormalizationFactor = None,
        scaling_factor_multiplier: Callable | None = None,
    ) -> "Deterministic":
        """Construct Deterministic from pre-parsed raw data."""
        return cls.from_dict(
            label,
            raw.data,
            resolution=resolution,
            normalization_factor=normalization_factor,
            scaling_factor_multiplier=scaling_factor_multiplier,
        )

    @classmethod
    def from_csv(
        cls,
        label: str,
        filename: Path | str,
        resolution: timedelta,
        normalization_factor: NormalizationFactor = None,
        scaling_factor_multiplier: Callable | None = None,
    ) -> "Deterministic":
        """Construct Deterministic from a CSV file. The first column must contain the issue
        timestamps and the other columns the values in the forecast window.

        See Also
        --------
        infraseries.time_series_parser.read_raw_time_series
        """
        return cls.from_raw(
            label,
            read_raw_time_series(filename),
            resolution=resolution,
            normalization_factor=normalization_factor,
            scaling_factor_multiplier=scaling_factor_multiplier,
        )

    @classmethod
    def from_metadata(
        cls, metadata: "DeterministicMetadata", data: NDArray, window_offset: int = 0
    ) -> "Deterministic":
        """Reconstruct a forecast from stored metadata and the rows read from storage.

        window_offset is the index of the first row of data in the stored array.
        """
        data = np.asarray(data, dtype=np.float64)
        if data.ndim != 2 or data.shape[1] != metadata.horizon:
            msg = f"Stored data with shape {data.shape} does not match {metadata.label=}"
            raise ISDataFormatError(msg)
        initial_times = metadata.get_initial_times()[window_offset : window_offset + len(data)]
        return cls(
            uuid=metadata.time_series_uuid,
            label=metadata.label,
            data=dict(zip(initial_times, data)),
            resolution=metadata.resolution,
            interval=metadata.interval,
            scaling_factor_multiplier=metadata.scaling_factor_multiplier,
        )

    def with_data(self, data: Mapping[datetime, Any]) -> "Deterministic":
        """Create a new Deterministic from this instance and a subset of data. All other fields
        are preserved. The new instance always gets a new UUID."""
        return type(self)(
            label=self.label,
            data=data,
            resolution=self.resolution,
            interval=self.interval if len(data) == 1 else None,
            scaling_factor_multiplier=self.scaling_factor_multiplier,
        )

    @staticmethod
    def get_time_series_metadata_type() -> Type["DeterministicMetadata"]:
        return DeterministicMetadata

    def get_array(self) -> NDArray:
        """Return the windows as a 2-D array with one row per window."""
        return np.vstack(list(self.data.values()))

    def get_initial_times(self) -> list[datetime]:
        return list(self.data)

    def index_to_initial_time(self, index: int) -> datetime:
        """Return the issue time of the window at index."""
        if not 0 <= index < self.count:
            msg = f"Window {index=} is out of range for {self.summary} with count={self.count}"
            raise ISConflictingArguments(msg)
        return get_time_series_initial_times(self.initial_timestamp, self.interval, self.count)[
            index
        ]

    def get_window(self, initial_time: datetime | int) -> pd.Series:
        """Return the forecast window corresponding to an issue time or a window index."""
        if isinstance(initial_time, numbers.Integral) and not isinstance(initial_time, bool):
            initial_time = self.index_to_initial_time(initial_time)
        values = self.data.get(initial_time)
        if values is None:
            msg = f"{self.summary} does not have a window with {initial_time=}"
            raise ISNotStored(msg)
        index = pd.date_range(start=initial_time, periods=self.horizon, freq=self.resolution)
        return pd.Series(values, index=index, name=self.label)

    def iterate_windows(self) -> ForecastWindows:
        """Iterate over all forecast windows."""
        return ForecastWindows(self)


def _make_windows(input_data: Any) -> dict[datetime, NDArray]:
    """Convert input data to a dict of equal-length float arrays sorted by issue time."""
    if not isinstance(input_data, Mapping) or not input_data:
        msg = "Forecast data must be a non-empty mapping of issue time to values"
        raise ISDataFormatError(msg)

    data: dict[datetime, NDArray] = {}
    for initial_time in sorted(input_data):
        try:
            values = np.array([float(x) for x in input_data[initial_time]], dtype=np.float64)
        except (TypeError, ValueError) as e:
            logger.error("The forecast data at {} can't be converted to floats", initial_time)
            msg = f"The forecast data at {initial_time} can't be converted to floats: {e}"
            raise ISDataFormatError(msg) from e
        data[pd.Timestamp(initial_time).to_pydatetime()] = values

    horizon = len(next(iter(data.values())))
    if horizon == 0:
        msg = "Forecast windows cannot be empty"
        raise ISDataFormatError(msg)
    for initial_time, values in data.items():
        if len(values) != horizon:
            msg = (
                f"Forecast window at {initial_time} has {len(values)} values. "
                f"Expected {horizon}."
            )
            raise ISDataFormatError(msg)
    return data


class TimeSeriesMetadata(InfraSeriesBaseModel, abc.ABC):
    """Defines common metadata for all time series. The bulk data is stored separately under
    time_series_uuid."""

    model_config = make_model_config(frozen=True)

    label: str
    resolution: timedelta
    time_series_uuid: UUID
    scaling_factor_multiplier: Optional[Callable] = None
    type: Literal["SingleTimeSeries", "Deterministic"]

    @field_validator("resolution", mode="before")
    @classmethod
    def parse_resolution(cls, value: Any) -> Any:
        return from_iso_8601(value) if isinstance(value, str) else value

    @field_validator("scaling_factor_multiplier", mode="before")
    @classmethod
    def check_scaling_factor_multiplier(cls, value: Any) -> Callable | None:
        return deserialize_function(value)

    @field_serializer("resolution")
    def _serialize_resolution(self, _) -> str:
        return to_iso_8601(self.resolution)

    @field_serializer("time_series_uuid")
    def _serialize_uuid(self, _) -> str:
        return str(self.time_series_uuid)

    @field_serializer("scaling_factor_multiplier")
    def _serialize_scaling_factor_multiplier(self, _) -> str | None:
        return serialize_function(self.scaling_factor_multiplier)

    @property
    def summary(self) -> str:
        """Return the label of the time series array with its type."""
        return f"{self.type}.{self.label}"

    @staticmethod
    @abc.abstractmethod
    def get_time_series_data_type() -> Type[TimeSeriesData]:
        """Return the data type associated with this metadata type."""

    @classmethod
    @abc.abstractmethod
    def from_data(cls, time_series: Any) -> "TimeSeriesMetadata":
        """Construct an instance of TimeSeriesMetadata."""

    @abc.abstractmethod
    def get_initial_times(self) -> list[datetime]:
        """Return the initial times of the time series."""

    @abc.abstractmethod
    def get_range(self, selection: TimeSeriesSelection | None = None) -> tuple[int, int]:
        """Return the (index, length) along the first axis of the stored array."""


class SingleTimeSeriesMetadata(TimeSeriesMetadata):
    """Defines the metadata for a SingleTimeSeries."""

    initial_timestamp: datetime
    length: int
    type: Literal["SingleTimeSeries"] = "SingleTimeSeries"

    @classmethod
    def from_data(cls, time_series: SingleTimeSeries) -> "SingleTimeSeriesMetadata":
        """Construct a SingleTimeSeriesMetadata from a SingleTimeSeries."""
        return cls(
            label=time_series.label,
            resolution=time_series.resolution,
            initial_timestamp=time_series.initial_timestamp,
            length=time_series.length,
            time_series_uuid=time_series.uuid,
            scaling_factor_multiplier=time_series.scaling_factor_multiplier,
        )

    @staticmethod
    def get_time_series_data_type() -> Type[SingleTimeSeries]:
        return SingleTimeSeries

    def get_initial_times(self) -> list[datetime]:
        return [self.initial_timestamp]

    def get_range(self, selection: TimeSeriesSelection | None = None) -> tuple[int, int]:
        if selection is not None and selection.window_index is not None:
            msg = f"window_index is not supported for {self.summary}"
            raise ISConflictingArguments(msg)
        return get_selection_range(self.initial_timestamp, self.resolution, self.length, selection)


class DeterministicMetadata(TimeSeriesMetadata):
    """Defines the metadata for Deterministic time series."""

    initial_timestamp: datetime
    horizon: int
    interval: timedelta
    count: int
    type: Literal["Deterministic"] = "Deterministic"

    @field_validator("interval", mode="before")
    @classmethod
    def parse_interval(cls, value: Any) -> Any:
        return from_iso_8601(value) if isinstance(value, str) else value

    @field_serializer("interval")
    def _serialize_interval(self, _) -> str:
        return to_iso_8601(self.interval)

    @classmethod
    def from_data(cls, time_series: Deterministic) -> "DeterministicMetadata":
        """Construct a DeterministicMetadata from a Deterministic time series."""
        return cls(
            label=time_series.label,
            resolution=time_series.resolution,
            initial_timestamp=time_series.initial_timestamp,
            horizon=time_series.horizon,
            interval=time_series.interval,
            count=time_series.count,
            time_series_uuid=time_series.uuid,
            scaling_factor_multiplier=time_series.scaling_factor_multiplier,
        )

    @staticmethod
    def get_time_series_data_type() -> Type[Deterministic]:
        return Deterministic

    def get_initial_times(self) -> list[datetime]:
        return get_time_series_initial_times(self.initial_timestamp, self.interval, self.count)

    def get_range(self, selection: TimeSeriesSelection | None = None) -> tuple[int, int]:
        return get_selection_range(self.initial_timestamp, self.interval, self.count, selection)


class TimeSeriesKey(InfraSeriesBaseModel):
    """Identifies a time series within one component: the metadata type and the label."""

    model_config = make_model_config(frozen=True)

    time_series_type: Type[TimeSeriesMetadata]
    label: str

    def __str__(self) -> str:
        return f"{self.time_series_type.__name__}.{self.label}"


def get_metadata_type(time_series_type: Type) -> Type[TimeSeriesMetadata]:
    """Return the metadata type for a time series data or metadata type."""
    if issubclass(time_series_type, TimeSeriesMetadata):
        return time_series_type
    if issubclass(time_series_type, TimeSeriesData):
        return time_series_type.get_time_series_metadata_type()
    msg = f"{time_series_type} is not a time series type"
    raise ISConflictingArguments(msg)
