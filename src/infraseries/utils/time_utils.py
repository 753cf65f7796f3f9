"""Utility functions for time stamps and durations."""

import re
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Sequence

import pandas as pd

from infraseries.exceptions import ISDataFormatError

REGEX_DURATIONS = OrderedDict(
    {
        "milliseconds": r"^P0DT(\d+\.\d+)S$",
        "seconds": r"^P0DT(\d+)S$",
        "minutes": r"^P0DT(\d+)M$",
        "hours": r"^P0DT(\d+)H$",
        "days": r"^P(\d+)D$",
        "weeks": r"^P(\d+)W$",
    }
)

# A resolution must be a whole multiple of one of these.
RESOLUTION_UNITS = (
    timedelta(days=1),
    timedelta(hours=1),
    timedelta(minutes=1),
    timedelta(seconds=1),
)


def from_iso_8601(duration: str) -> timedelta:
    """Convert a duration string from the ISO 8601 to a Python timedelta.

    Raises
    ------
    ValueError
        If fractional milliseconds are provided (e.g, P0DT30.532S)
        If the string does not follow the ISO 8601 format.

    See Also
    --------
    to_iso_8601: Reverse operation of this function

    Examples
    --------
    >>> from_iso_8601("P0DT1H")
    datetime.timedelta(seconds=3600)
    """
    for name, regex in REGEX_DURATIONS.items():
        if match := re.match(regex, duration):
            if name == "milliseconds":
                value_float = float(match.group(1))
                if (value_float * 1_000) % 1 != 0.0:
                    msg = "Fractional milliseconds are not supported. "
                    msg += "Provide seconds with a integer number of milliseconds"
                    raise ValueError(msg)
                value = value_float * 1_000
            else:
                value = int(match.group(1))
            return timedelta(**{name: value})

    msg = f"No match found for {duration=}. "
    msg += "Check `REGEX_DURATIONS` to validate that the format is covered."
    raise ValueError(msg)


def to_iso_8601(duration: timedelta) -> str:
    """Convert a timedelta to an ISO 8601 duration string.

    Raises
    ------
    TypeError
        If the object provided is not a `timedelta`.
    ValueError
        If the duration is not a whole number of milliseconds.

    Examples
    --------
    >>> to_iso_8601(timedelta(hours=1))
    'P0DT1H'
    """
    if not isinstance(duration, timedelta):
        msg = "Input must be a timedelta object."
        raise TypeError(msg)

    days = duration.days
    seconds = duration.seconds
    microseconds = duration.microseconds

    if days and not any([seconds, microseconds]):
        if days % 7 == 0:
            return f"P{days // 7}W"
        return f"P{days}D"

    if not days and seconds % 3600 == 0 and not microseconds:
        return f"P0DT{seconds // 3600}H"

    if not days and seconds % 60 == 0 and not microseconds:
        return f"P0DT{seconds // 60}M"

    total_seconds = duration.total_seconds()
    if not microseconds and total_seconds.is_integer():
        return f"P0DT{int(total_seconds)}S"

    if round(total_seconds, 3) == 0 or microseconds % 1_000 != 0:
        msg = "The minimum resolution is `1ms`. "
        msg += f"{total_seconds=} must be divisible by 1ms"
        raise ValueError(msg)
    return f"P0DT{total_seconds:.3f}S"


def get_resolution(timestamps: Sequence[datetime] | pd.DatetimeIndex) -> timedelta:
    """Return the resolution of a sequence of timestamps.

    Every gap between consecutive timestamps is checked, not only the first one.

    Raises
    ------
    ISDataFormatError
        Raised if there are fewer than two timestamps, if a gap is not a whole number of
        days, hours, minutes, or seconds, or if the gaps are not all equal.
    """
    index = pd.DatetimeIndex(timestamps)
    if len(index) < 2:
        msg = f"At least two timestamps are required to derive a resolution: {len(index)}"
        raise ISDataFormatError(msg)

    deltas = {x.to_pytimedelta() for x in index[1:] - index[:-1]}
    for delta in deltas:
        if delta <= timedelta(0):
            msg = f"Timestamps must be strictly increasing: found a gap of {delta}"
            raise ISDataFormatError(msg)
        if not any(delta % unit == timedelta(0) for unit in RESOLUTION_UNITS):
            msg = f"Cannot understand the resolution of the time series: {delta}"
            raise ISDataFormatError(msg)

    if len(deltas) > 1:
        msg = (
            "Time series has non-uniform resolution: "
            f"{sorted(str(x) for x in deltas)}. This is not supported."
        )
        raise ISDataFormatError(msg)

    return deltas.pop()


def check_resolution(resolution: timedelta) -> timedelta:
    """Check that a resolution is a whole number of days, hours, minutes, or seconds."""
    if resolution <= timedelta(0) or not any(
        resolution % unit == timedelta(0) for unit in RESOLUTION_UNITS
    ):
        msg = f"Cannot understand the resolution of the time series: {resolution}"
        raise ISDataFormatError(msg)
    return resolution


def get_time_series_initial_times(
    initial_timestamp: datetime, interval: timedelta, count: int
) -> list[datetime]:
    """Return the evenly spaced initial times of count windows starting at initial_timestamp.

    Examples
    --------
    >>> get_time_series_initial_times(datetime(2020, 1, 1), timedelta(hours=1), 2)
    [datetime.datetime(2020, 1, 1, 0, 0), datetime.datetime(2020, 1, 1, 1, 0)]
    """
    return [initial_timestamp + i * interval for i in range(count)]
