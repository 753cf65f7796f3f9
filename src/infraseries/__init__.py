import importlib.metadata as metadata

from loguru import logger

logger.disable("infraseries")

__version__ = metadata.metadata("infraseries")["Version"]

from .component import Component, ComponentWithTimeSeries
from .normalization import NormalizationModel
from .system import System
from .time_series_container import TimeSeriesContainer
from .time_series_models import (
    Deterministic,
    DeterministicMetadata,
    SingleTimeSeries,
    SingleTimeSeriesMetadata,
    TimeSeriesKey,
    TimeSeriesSelection,
)
from .time_series_storage import (
    CompressionSettings,
    CompressionType,
    TimeSeriesStorageType,
    make_time_series_storage,
)

__all__ = (
    "Component",
    "ComponentWithTimeSeries",
    "CompressionSettings",
    "CompressionType",
    "Deterministic",
    "DeterministicMetadata",
    "NormalizationModel",
    "SingleTimeSeries",
    "SingleTimeSeriesMetadata",
    "System",
    "TimeSeriesContainer",
    "TimeSeriesKey",
    "TimeSeriesSelection",
    "TimeSeriesStorageType",
    "make_time_series_storage",
)
