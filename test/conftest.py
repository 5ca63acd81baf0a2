import pytest

from mig_partitioner import DeviceModel, Profile, SimulatedDeviceAPI, get_device_model


@pytest.fixture
def a100():
    return get_device_model("A100-SXM4-40GB")


@pytest.fixture
def small_model():
    # Four slices, no separate memory budget
    return DeviceModel(
        name="TEST-4SLICE",
        device_ids=(0x0000FFFF,),
        total_slices=4,
        total_memory_slices=None,
        profiles=(Profile("1g.5gb"), Profile("2g.10gb")),
        placements={"1g.5gb": (0, 1, 2, 3), "2g.10gb": (0, 2)},
    )


@pytest.fixture
def api(a100):
    return SimulatedDeviceAPI(a100, num_devices=2)
