import pytest

from infraseries.component_manager import ComponentManager
from infraseries.exceptions import ISAlreadyAttached, ISNotStored, ISOperationNotAllowed

from .models.simple_system import (
    GeneratorBase,
    RenewableGenerator,
    SimpleBus,
    SimpleGenerator,
)


@pytest.fixture
def manager() -> ComponentManager:
    mgr = ComponentManager()
    mgr.add(
        SimpleBus(name="bus1", voltage=1.1),
        SimpleGenerator(name="gen1", available=True, active_power=1.0, rating=2.0),
        SimpleGenerator(name="gen2", available=False, active_power=1.0, rating=2.0),
        RenewableGenerator(name="gen1", available=True, active_power=0.5, rating=1.0),
    )
    return mgr


def test_counts(manager):
    assert manager.get_num_components() == 4
    assert manager.get_num_components_by_type() == {
        SimpleBus: 1,
        SimpleGenerator: 2,
        RenewableGenerator: 1,
    }
    assert set(manager.get_types()) == {SimpleBus, SimpleGenerator, RenewableGenerator}


def test_iter_subclasses(manager):
    names = sorted(x.name for x in manager.iter(GeneratorBase))
    assert names == ["gen1", "gen1", "gen2"]
    available = manager.iter(GeneratorBase, filter_func=lambda x: x.available)
    assert sorted(type(x).__name__ for x in available) == [
        "RenewableGenerator",
        "SimpleGenerator",
    ]
    assert len(list(manager.iter(SimpleBus, SimpleGenerator))) == 3


def test_list_by_name(manager):
    assert len(manager.list_by_name(GeneratorBase, "gen1")) == 2
    assert manager.get(SimpleGenerator, "gen1").rating == 2.0
    with pytest.raises(ISNotStored):
        manager.get(GeneratorBase, "gen1")


def test_get_duplicate_name():
    manager = ComponentManager()
    manager.add(
        SimpleBus(name="bus", voltage=1.0),
        SimpleBus(name="bus", voltage=1.2),
    )
    with pytest.raises(ISOperationNotAllowed):
        manager.get(SimpleBus, "bus")
    assert len(manager.list_by_name(SimpleBus, "bus")) == 2


def test_add_twice(manager):
    bus = manager.get(SimpleBus, "bus1")
    with pytest.raises(ISAlreadyAttached):
        manager.add(bus)

    new_bus = SimpleBus(name="bus2", voltage=1.0)
    with pytest.raises(ISAlreadyAttached):
        manager.add(new_bus, new_bus)
    assert manager.get_num_components() == 4


def test_remove(manager):
    gen = manager.get(SimpleGenerator, "gen2")
    manager.remove(gen)
    assert manager.get_num_components() == 3
    with pytest.raises(ISNotStored):
        manager.get_by_uuid(gen.uuid)
    with pytest.raises(ISNotStored):
        manager.remove(gen)

    bus = manager.get(SimpleBus, "bus1")
    manager.remove(bus)
    assert SimpleBus not in set(manager.get_types())
