"""Parses delimited tables of forecast data."""

from datetime import datetime
from pathlib import Path

import pandas as pd
from loguru import logger

from infraseries.exceptions import ISDataFormatError
from infraseries.models import InfraSeriesBaseModel


class RawTimeSeries(InfraSeriesBaseModel):
    """Pre-parsed forecast data: issue time mapped to the values of the window."""

    initial_time: datetime
    data: dict[datetime, list[float]]


def read_raw_time_series(filename: Path | str) -> RawTimeSeries:
    """Read forecast data from a delimited file.

    The first column must contain the issue timestamps. The remaining columns contain the
    values of each forecast window. Missing trailing values are dropped, so rows of different
    lengths are reported when the forecast is constructed.

    Examples
    --------
    timestamp,1,2,3
    2020-01-01T00:00:00,1.0,2.0,3.0
    2020-01-01T01:00:00,4.0,5.0,6.0
    """
    df = pd.read_csv(filename, index_col=0, parse_dates=[0])
    if df.empty:
        msg = f"{filename} does not contain any forecast windows"
        raise ISDataFormatError(msg)
    if not isinstance(df.index, pd.DatetimeIndex):
        msg = f"The first column of {filename} must contain timestamps"
        raise ISDataFormatError(msg)

    data = {
        timestamp.to_pydatetime(): row.dropna().astype(float).tolist()
        for timestamp, row in df.iterrows()
    }
    logger.debug("Read {} forecast windows from {}", len(data), filename)
    return RawTimeSeries(initial_time=min(data), data=data)
