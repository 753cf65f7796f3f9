"""Normalization utilities"""

import abc
from enum import Enum
from typing import Literal, Optional, Annotated, Union

import numpy as np
from pydantic import Field

from infraseries.models import InfraSeriesBaseModel


class NormalizationType(str, Enum):
    MAX = "max"
    BY_VALUE = "by_value"


class NormalizationBase(InfraSeriesBaseModel, abc.ABC):
    """Base class for all normalization models"""

    @abc.abstractmethod
    def normalize_array(self, data: np.ndarray) -> np.ndarray:
        """Normalize the array."""


class NormalizationMax(NormalizationBase):
    """Perform normalization by the max value in an array. For forecasts the max is taken
    across all windows."""

    max_value: Optional[float] = None
    normalization_type: Literal[NormalizationType.MAX] = NormalizationType.MAX

    def normalize_array(self, data: np.ndarray) -> np.ndarray:
        self.max_value = float(np.max(data))
        return data / self.max_value


class NormalizationByValue(NormalizationBase):
    """Perform normalization by a user-defined value."""

    value: float
    normalization_type: Literal[NormalizationType.BY_VALUE] = NormalizationType.BY_VALUE

    def normalize_array(self, data: np.ndarray) -> np.ndarray:
        return data / self.value


NormalizationModel = Annotated[
    Union[None, NormalizationMax, NormalizationByValue],
    Field(
        description="Defines the type of normalization performed on the data, if any.",
        discriminator="normalization_type",
    ),
]

NormalizationFactor = Union[float, NormalizationMax, NormalizationByValue, None]


def normalize_data(data: np.ndarray, normalization_factor: NormalizationFactor) -> np.ndarray:
    """Divide every value in data by the normalization factor. The operation is applied once
    and is not reversible.

    Parameters
    ----------
    data : np.ndarray
        Values to normalize. May be 1-D (single time series) or 2-D (forecast windows).
    normalization_factor : float | NormalizationMax | NormalizationByValue | None
        A factor of None or 1.0 returns the data unchanged.
    """
    if normalization_factor is None:
        return data
    if isinstance(normalization_factor, NormalizationBase):
        return normalization_factor.normalize_array(data)
    if normalization_factor == 1.0:
        return data
    return data / float(normalization_factor)
