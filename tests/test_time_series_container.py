from datetime import datetime, timedelta

import pytest

from infraseries.exceptions import ISDuplicateKey, ISNotStored, ISOwnershipConflict
from infraseries.time_series_container import TimeSeriesContainer
from infraseries.time_series_models import (
    Deterministic,
    DeterministicMetadata,
    SingleTimeSeries,
    SingleTimeSeriesMetadata,
    TimeSeriesData,
    TimeSeriesKey,
    TimeSeriesMetadata,
)
from infraseries.time_series_storage import make_time_series_storage

from .models.simple_system import get_rating


@pytest.fixture
def single_metadata() -> SingleTimeSeriesMetadata:
    ts = SingleTimeSeries.from_array(
        range(24),
        "active_power",
        datetime(2020, 1, 1),
        timedelta(hours=1),
        scaling_factor_multiplier=get_rating,
    )
    return SingleTimeSeriesMetadata.from_data(ts)


@pytest.fixture
def forecast_metadata() -> DeterministicMetadata:
    data = {datetime(2020, 1, 1, hour): [1.0, 2.0] for hour in range(24)}
    forecast = Deterministic.from_dict("max_active_power", data, timedelta(hours=1))
    return DeterministicMetadata.from_data(forecast)


def test_time_series_key():
    key = TimeSeriesKey(time_series_type=SingleTimeSeriesMetadata, label="active_power")
    key2 = TimeSeriesKey(time_series_type=SingleTimeSeriesMetadata, label="active_power")
    assert key == key2
    assert hash(key) == hash(key2)
    assert str(key) == "SingleTimeSeriesMetadata.active_power"
    assert key != TimeSeriesKey(time_series_type=DeterministicMetadata, label="active_power")


def test_add_get_remove(single_metadata):
    container = TimeSeriesContainer()
    assert len(container) == 0
    assert not container.has_time_series()
    container.add_time_series(single_metadata)
    assert len(container) == 1
    assert container.has_time_series()
    assert container.has_time_series(SingleTimeSeries)
    assert container.has_time_series(SingleTimeSeriesMetadata, "active_power")
    assert not container.has_time_series(Deterministic)
    assert not container.has_time_series(label="reactive_power")

    assert container.get_time_series(SingleTimeSeries, "active_power") is single_metadata
    assert container.get_time_series(SingleTimeSeriesMetadata, "active_power") is single_metadata
    with pytest.raises(ISNotStored):
        container.get_time_series(Deterministic, "active_power")

    assert container.remove_time_series(SingleTimeSeries, "active_power") is single_metadata
    assert len(container) == 0
    with pytest.raises(ISNotStored):
        container.remove_time_series(SingleTimeSeries, "active_power")


def test_duplicate_key(single_metadata, caplog):
    container = TimeSeriesContainer()
    assert container.add_time_series(single_metadata)
    with pytest.raises(ISDuplicateKey):
        container.add_time_series(single_metadata)
    assert not container.add_time_series(single_metadata, skip_if_present=True)
    assert len(container) == 1
    assert "Skipping time series" in caplog.text


def test_initial_times(single_metadata, forecast_metadata):
    container = TimeSeriesContainer()
    assert container.get_time_series_initial_times() == []
    container.add_time_series(forecast_metadata)
    container.add_time_series(single_metadata)

    initial_times = container.get_time_series_initial_times()
    assert len(initial_times) == 24
    assert initial_times[0] == datetime(2020, 1, 1)
    assert initial_times[-1] == datetime(2020, 1, 1, 23)

    assert container.get_time_series_initial_times(SingleTimeSeries) == [datetime(2020, 1, 1)]
    assert len(container.get_time_series_initial_times(TimeSeriesData)) == 24
    assert (
        len(container.get_time_series_initial_times(Deterministic, "max_active_power")) == 24
    )
    assert container.get_time_series_initial_times(Deterministic, "active_power") == []

    initial_times_set: set[datetime] = set()
    container.collect_initial_times(initial_times_set)
    assert len(initial_times_set) == 24


def test_labels(single_metadata, forecast_metadata):
    container = TimeSeriesContainer()
    container.add_time_series(single_metadata)
    container.add_time_series(forecast_metadata)
    assert container.get_time_series_labels(SingleTimeSeries) == ["active_power"]
    assert container.get_time_series_labels(TimeSeriesMetadata) == [
        "active_power",
        "max_active_power",
    ]
    assert [x.label for x in container.iter_metadata()] == ["active_power", "max_active_power"]
    assert len(container.clear_time_series()) == 2
    assert len(container) == 0


def test_labels_are_unique_across_types(single_metadata):
    data = {datetime(2020, 1, 1, hour): [1.0, 2.0] for hour in range(24)}
    forecast = Deterministic.from_dict("active_power", data, timedelta(hours=1))
    container = TimeSeriesContainer()
    container.add_time_series(single_metadata)
    container.add_time_series(DeterministicMetadata.from_data(forecast))
    assert len(container) == 2
    assert container.get_time_series_labels(TimeSeriesMetadata) == ["active_power"]
    assert container.get_time_series_labels() == ["active_power"]
    assert container.get_time_series_labels(Deterministic) == ["active_power"]


def test_set_time_series_storage():
    storage1 = make_time_series_storage(in_memory=True)
    storage2 = make_time_series_storage(in_memory=True)
    container = TimeSeriesContainer()
    container.set_time_series_storage(storage1)
    with pytest.raises(ISOwnershipConflict):
        container.set_time_series_storage(storage1)
    with pytest.raises(ISOwnershipConflict):
        container.set_time_series_storage(storage2)
    assert container.time_series_storage is storage1
    container.set_time_series_storage(None)
    container.set_time_series_storage(storage2)
    assert container.time_series_storage is storage2


def test_read_time_series_without_storage(single_metadata):
    container = TimeSeriesContainer()
    container.add_time_series(single_metadata)
    with pytest.raises(ISNotStored):
        container.read_time_series(SingleTimeSeries, "active_power")


def test_serialize_deserialize(single_metadata, forecast_metadata):
    container = TimeSeriesContainer()
    container.add_time_series(single_metadata)
    container.add_time_series(forecast_metadata)
    records = container.serialize()
    assert records[0]["__metadata__"] == {
        "module": "infraseries.time_series_models",
        "type": "SingleTimeSeriesMetadata",
    }
    assert records[1]["type"] == "Deterministic"

    container2 = TimeSeriesContainer.deserialize(records)
    assert len(container2) == 2
    assert container2.get_time_series(SingleTimeSeries, "active_power") == single_metadata
    assert container2.get_time_series(Deterministic, "max_active_power") == forecast_metadata
