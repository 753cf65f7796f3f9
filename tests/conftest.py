from datetime import datetime, timedelta

import pytest
from loguru import logger

from infraseries import System
from infraseries.time_series_models import Deterministic, SingleTimeSeries

from .models.simple_system import SimpleArea, SimpleBus, SimpleGenerator


@pytest.fixture(params=[True, False], ids=["in_memory", "hdf5"])
def simple_system(request, tmp_path):
    """Creates a system with in-memory or HDF5 time series storage."""
    system = System(
        name="test-system",
        time_series_in_memory=request.param,
        time_series_directory=tmp_path,
    )
    bus = SimpleBus(name="test-bus", voltage=1.1)
    gen1 = SimpleGenerator(name="gen1", available=True, active_power=1.0, rating=2.0)
    gen2 = SimpleGenerator(name="gen2", available=True, active_power=1.5, rating=3.0)
    area = SimpleArea(name="test-area")
    system.add_components(bus, gen1, gen2, area)
    yield system
    system.close()


@pytest.fixture
def simple_system_with_time_series(simple_system) -> System:
    """Creates a system with a single time series and a forecast attached to gen1."""
    ts = SingleTimeSeries.from_array(
        range(24), "active_power", datetime(2020, 1, 1), timedelta(hours=1)
    )
    forecast = Deterministic.from_dict(
        "max_active_power",
        {datetime(2020, 1, 1, hour): [hour, hour + 1.0, hour + 2.0] for hour in range(0, 24, 6)},
        resolution=timedelta(hours=1),
    )
    gen = simple_system.get_component(SimpleGenerator, "gen1")
    simple_system.add_time_series(ts, gen)
    simple_system.add_time_series(forecast, gen)
    return simple_system


@pytest.fixture
def caplog(caplog):
    """Enable logging for the package"""
    logger.remove()
    logger.enable("infraseries")
    handler_id = logger.add(caplog.handler, format="{message}")
    yield caplog
    logger.remove(handler_id)
