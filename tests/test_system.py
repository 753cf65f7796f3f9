from datetime import datetime, timedelta

import numpy as np
import pytest

from infraseries import System
from infraseries.exceptions import (
    ISAlreadyAttached,
    ISConflictingArguments,
    ISDuplicateKey,
    ISFileExists,
    ISNotStored,
    ISOperationNotAllowed,
    ISOwnershipConflict,
    ISReadOnly,
)
from infraseries.system import SystemInfo
from infraseries.time_series_models import (
    Deterministic,
    DeterministicMetadata,
    SingleTimeSeries,
    TimeSeriesSelection,
)
from infraseries.time_series_storage import make_time_series_storage

from .models.simple_system import (
    GeneratorBase,
    SimpleArea,
    SimpleBus,
    SimpleGenerator,
    get_rating,
)


def make_time_series(label: str = "active_power", length: int = 24) -> SingleTimeSeries:
    return SingleTimeSeries.from_array(
        np.arange(length, dtype=np.float64), label, datetime(2020, 1, 1), timedelta(hours=1)
    )


def test_components(simple_system):
    assert simple_system.get_num_components() == 4
    gen = simple_system.get_component(SimpleGenerator, "gen1")
    assert simple_system.get_component_by_uuid(gen.uuid) is gen
    assert {x.name for x in simple_system.get_components(GeneratorBase)} == {"gen1", "gen2"}
    assert gen.get_time_series_container().time_series_storage is (
        simple_system.time_series_storage
    )

    with pytest.raises(ISAlreadyAttached):
        simple_system.add_component(gen)
    with pytest.raises(ISNotStored):
        simple_system.get_component(SimpleGenerator, "gen3")

    area = simple_system.get_component(SimpleArea, "test-area")
    assert area.get_time_series_container() is None
    simple_system.remove_component(area)
    assert simple_system.get_num_components() == 3
    with pytest.raises(ISNotStored):
        simple_system.remove_component(area)


def test_component_queries(simple_system):
    assert set(simple_system.get_component_types()) == {SimpleBus, SimpleGenerator, SimpleArea}
    assert simple_system.get_num_components_by_type() == {
        SimpleBus: 1,
        SimpleGenerator: 2,
        SimpleArea: 1,
    }
    gens = simple_system.list_components_by_name(GeneratorBase, "gen2")
    assert [x.name for x in gens] == ["gen2"]
    assert not simple_system.list_components_by_name(SimpleBus, "gen2")

    component_counts, _ = SystemInfo(simple_system).extract_system_counts()
    assert component_counts == {"SimpleBus": 1, "SimpleGenerator": 2, "SimpleArea": 1}


def test_component_helpers(capsys):
    gen = SimpleGenerator.example()
    assert gen.summary == "SimpleGenerator.simple-gen"
    uuid = gen.uuid
    gen.assign_new_uuid()
    assert gen.uuid != uuid
    gen.pprint()
    assert "simple-gen" in capsys.readouterr().out


def test_unsupported_kwargs():
    with pytest.raises(ISConflictingArguments):
        System(time_series_storage_type="arrow")


def test_add_time_series(simple_system):
    gen1 = simple_system.get_component(SimpleGenerator, "gen1")
    ts = make_time_series()
    simple_system.add_time_series(ts, gen1)
    assert gen1.has_time_series(SingleTimeSeries, "active_power")
    assert simple_system.has_time_series(gen1, SingleTimeSeries)

    ts2 = simple_system.get_time_series(SingleTimeSeries, gen1, "active_power")
    assert ts2 == ts
    assert gen1.get_time_series(SingleTimeSeries, "active_power") == ts

    metadata = simple_system.get_time_series_metadata(SingleTimeSeries, gen1, "active_power")
    assert metadata.time_series_uuid == ts.uuid
    assert metadata.length == 24

    area = simple_system.get_component(SimpleArea, "test-area")
    with pytest.raises(ISOperationNotAllowed):
        simple_system.add_time_series(ts, area)
    assert not simple_system.has_time_series(area)
    with pytest.raises(ISConflictingArguments):
        simple_system.add_time_series(ts)


def test_get_time_series_with_selection(simple_system):
    gen1 = simple_system.get_component(SimpleGenerator, "gen1")
    simple_system.add_time_series(make_time_series(), gen1)
    ts = simple_system.get_time_series(
        SingleTimeSeries,
        gen1,
        "active_power",
        selection=TimeSeriesSelection(start_time=datetime(2020, 1, 1, 5), head=5),
    )
    assert ts.initial_timestamp == datetime(2020, 1, 1, 5)
    assert list(ts.data_array) == [5.0, 6.0, 7.0, 8.0, 9.0]


def test_get_time_series_array(simple_system):
    gen1 = simple_system.get_component(SimpleGenerator, "gen1")
    gen2 = simple_system.get_component(SimpleGenerator, "gen2")
    values = np.arange(4, dtype=np.float64)
    ts = SingleTimeSeries.from_array(
        values,
        "max_active_power",
        datetime(2020, 1, 1),
        timedelta(hours=1),
        scaling_factor_multiplier=get_rating,
    )
    simple_system.add_time_series(ts, gen1, gen2)
    simple_system.add_time_series(make_time_series(length=4), gen1)

    np.testing.assert_array_equal(
        simple_system.get_time_series_array(SingleTimeSeries, gen1, "max_active_power"),
        values * 2.0,
    )
    np.testing.assert_array_equal(
        gen2.get_time_series_array(SingleTimeSeries, "max_active_power"), values * 3.0
    )
    np.testing.assert_array_equal(
        simple_system.get_time_series_array(
            SingleTimeSeries,
            gen2,
            "max_active_power",
            selection=TimeSeriesSelection(start_time=datetime(2020, 1, 1, 2)),
        ),
        [6.0, 9.0],
    )
    stored = simple_system.get_time_series(SingleTimeSeries, gen1, "max_active_power")
    np.testing.assert_array_equal(stored.get_array(), values)
    np.testing.assert_array_equal(
        simple_system.get_time_series_array(SingleTimeSeries, gen1, "active_power"), values
    )


def test_get_forecast_array(simple_system):
    gen2 = simple_system.get_component(SimpleGenerator, "gen2")
    forecast = Deterministic.from_dict(
        "max_active_power",
        {datetime(2020, 1, 1): [1.0, 2.0], datetime(2020, 1, 1, 1): [3.0, 4.0]},
        resolution=timedelta(hours=1),
        scaling_factor_multiplier=get_rating,
    )
    simple_system.add_time_series(forecast, gen2)
    np.testing.assert_array_equal(
        gen2.get_time_series_array(Deterministic, "max_active_power"),
        [[3.0, 6.0], [9.0, 12.0]],
    )


def test_duplicate_time_series(simple_system, caplog):
    gen1 = simple_system.get_component(SimpleGenerator, "gen1")
    gen2 = simple_system.get_component(SimpleGenerator, "gen2")
    simple_system.add_time_series(make_time_series(), gen1)

    ts = make_time_series()
    with pytest.raises(ISDuplicateKey):
        simple_system.add_time_series(ts, gen2, gen1)
    # Nothing is written when any component has the key.
    assert not gen2.has_time_series()
    assert simple_system.time_series_storage.get_num_time_series() == 1

    simple_system.add_time_series(ts, gen2, gen1, skip_if_present=True)
    assert gen2.has_time_series(SingleTimeSeries, "active_power")
    assert "Skipping time series" in caplog.text
    assert simple_system.get_time_series(SingleTimeSeries, gen2, "active_power") == ts
    assert simple_system.get_time_series(SingleTimeSeries, gen1, "active_power") != ts


def test_shared_time_series(simple_system):
    gen1 = simple_system.get_component(SimpleGenerator, "gen1")
    gen2 = simple_system.get_component(SimpleGenerator, "gen2")
    storage = simple_system.time_series_storage
    ts = make_time_series()
    simple_system.add_time_series(ts, gen1, gen2)
    assert storage.get_num_time_series() == 1
    assert storage.get_reference_count(ts.uuid) == 2
    assert simple_system.get_num_time_series() == 2

    simple_system.remove_time_series(SingleTimeSeries, gen1, "active_power")
    assert not gen1.has_time_series()
    assert storage.get_reference_count(ts.uuid) == 1
    assert simple_system.get_time_series(SingleTimeSeries, gen2, "active_power") == ts

    simple_system.remove_time_series(SingleTimeSeries, gen2, "active_power")
    assert storage.get_num_time_series() == 0
    with pytest.raises(ISNotStored):
        simple_system.remove_time_series(SingleTimeSeries, gen2, "active_power")


def test_remove_component_with_time_series(simple_system):
    gen1 = simple_system.get_component(SimpleGenerator, "gen1")
    gen2 = simple_system.get_component(SimpleGenerator, "gen2")
    storage = simple_system.time_series_storage
    ts = make_time_series()
    simple_system.add_time_series(ts, gen1, gen2)
    simple_system.remove_component(gen1)
    assert not gen1.has_time_series()
    assert gen1.get_time_series_container().time_series_storage is None
    assert storage.get_reference_count(ts.uuid) == 1

    simple_system.remove_component(gen2)
    assert storage.get_num_time_series() == 0

    # A removed component can be attached to another system.
    with System(time_series_in_memory=True) as system2:
        system2.add_component(gen1)
        assert gen1.get_time_series_container().time_series_storage is (
            system2.time_series_storage
        )


def test_ownership_conflict(simple_system):
    gen1 = simple_system.get_component(SimpleGenerator, "gen1")
    with System(time_series_in_memory=True) as system2:
        with pytest.raises(ISOwnershipConflict):
            system2.add_component(gen1)
        assert system2.get_num_components() == 0


def test_ownership_conflict_shared_storage():
    storage = make_time_series_storage(in_memory=True)
    system1 = System(time_series_storage=storage)
    system2 = System(time_series_storage=storage)
    gen = SimpleGenerator(name="gen1", available=True, active_power=1.0, rating=2.0)
    system1.add_component(gen)
    with pytest.raises(ISOwnershipConflict):
        system2.add_component(gen)
    assert system2.get_num_components() == 0

    system1.remove_component(gen)
    system2.add_component(gen)
    assert gen.get_time_series_container().time_series_storage is storage


def test_initial_times_and_labels(simple_system_with_time_series):
    system = simple_system_with_time_series
    gen1 = system.get_component(SimpleGenerator, "gen1")
    assert system.get_time_series_labels(SingleTimeSeries, gen1) == ["active_power"]
    assert system.get_time_series_labels(Deterministic, gen1) == ["max_active_power"]

    initial_times = system.get_time_series_initial_times(Deterministic)
    assert initial_times == [datetime(2020, 1, 1, hour) for hour in range(0, 24, 6)]
    assert system.get_time_series_initial_times(SingleTimeSeries) == [datetime(2020, 1, 1)]
    assert len(system.get_time_series_initial_times()) == 4

    forecast = system.get_time_series(
        Deterministic, gen1, "max_active_power", TimeSeriesSelection(window_index=1)
    )
    assert list(forecast.get_window(0).to_numpy()) == [6.0, 7.0, 8.0]


def test_clear_time_series(simple_system_with_time_series):
    system = simple_system_with_time_series
    gen1 = system.get_component(SimpleGenerator, "gen1")
    system.clear_time_series()
    assert not gen1.has_time_series()
    assert system.time_series_storage.get_num_time_series() == 0
    assert system.get_time_series_initial_times() == []


def test_serialization(simple_system_with_time_series, tmp_path):
    system = simple_system_with_time_series
    gen1 = system.get_component(SimpleGenerator, "gen1")
    bus = system.get_component(SimpleBus, "test-bus")
    ts = SingleTimeSeries.from_array(
        np.arange(48, dtype=np.float64),
        "max_active_power",
        datetime(2020, 1, 1),
        timedelta(hours=1),
        scaling_factor_multiplier=get_rating,
    )
    system.add_time_series(ts, gen1, bus)

    filename = tmp_path / "system.json"
    system.to_json(filename)
    time_series_file = tmp_path / "system_time_series.h5"
    assert time_series_file.exists()
    with pytest.raises(ISFileExists):
        system.to_json(filename)

    with System.from_json(filename) as system2:
        assert system2.uuid == system.uuid
        assert system2.name == system.name
        assert system2.get_num_components() == system.get_num_components()
        gen1b = system2.get_component(SimpleGenerator, "gen1")
        assert gen1b.uuid == gen1.uuid
        assert gen1b.rating == gen1.rating
        bus2 = system2.get_component(SimpleBus, "test-bus")
        for component in (gen1, bus):
            component2 = system2.get_component_by_uuid(component.uuid)
            for metadata in component.get_time_series_container().iter_metadata():
                ts_type = metadata.get_time_series_data_type()
                expected = system.get_time_series(ts_type, component, metadata.label)
                actual = system2.get_time_series(ts_type, component2, metadata.label)
                assert np.array_equal(actual.get_array(), expected.get_array())

        ts2 = system2.get_time_series(SingleTimeSeries, bus2, "max_active_power")
        assert ts2 == ts
        assert ts2.scaling_factor_multiplier is get_rating
        assert system2.time_series_storage.get_reference_count(ts.uuid) == 2

        # The deserialized system works on a copy of the file.
        system2.remove_time_series(SingleTimeSeries, bus2, "max_active_power")
    with System.from_json(filename, time_series_read_only=True) as system3:
        bus3 = system3.get_component(SimpleBus, "test-bus")
        assert system3.has_time_series(bus3, SingleTimeSeries, "max_active_power")


def test_read_only_system(simple_system_with_time_series, tmp_path):
    filename = tmp_path / "system.json"
    simple_system_with_time_series.to_json(filename, indent=2)
    time_series_file = tmp_path / "system_time_series.h5"
    contents = time_series_file.read_bytes()

    with System.from_json(filename, time_series_read_only=True) as system:
        gen1 = system.get_component(SimpleGenerator, "gen1")
        gen2 = system.get_component(SimpleGenerator, "gen2")
        forecast = system.get_time_series(Deterministic, gen1, "max_active_power")
        assert forecast.count == 4
        metadata = system.get_time_series_metadata(Deterministic, gen1, "max_active_power")
        assert isinstance(metadata, DeterministicMetadata)

        with pytest.raises(ISReadOnly):
            system.add_time_series(make_time_series(), gen2)
        with pytest.raises(ISReadOnly):
            system.remove_time_series(SingleTimeSeries, gen1, "active_power")
        with pytest.raises(ISReadOnly):
            system.clear_time_series()
        with pytest.raises(ISReadOnly):
            system.remove_component(gen1)
        assert gen1.has_time_series(SingleTimeSeries, "active_power")

        # Serializing onto the backing file is a no-op.
        system.to_json(filename, overwrite=True)

    assert time_series_file.read_bytes() == contents


def test_missing_time_series_file(simple_system_with_time_series, tmp_path):
    filename = tmp_path / "system.json"
    simple_system_with_time_series.to_json(filename)
    (tmp_path / "system_time_series.h5").unlink()
    with pytest.raises(ISNotStored):
        System.from_json(filename, time_series_read_only=True)


def test_time_series_file(tmp_path):
    time_series_file = tmp_path / "my_time_series.h5"
    with System(time_series_file=time_series_file) as system:
        gen = SimpleGenerator.example()
        system.add_component(gen)
        system.add_time_series(make_time_series(), gen)
    assert time_series_file.exists()

    with System(time_series_file=time_series_file, time_series_read_only=True) as system:
        assert system.time_series_storage.get_num_time_series() == 1


def test_info(simple_system_with_time_series, capsys):
    simple_system_with_time_series.info()
    output = capsys.readouterr().out
    assert "Component Information" in output
    assert "Time Series Summary" in output
    assert "SimpleGenerator" in output
