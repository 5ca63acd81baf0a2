"""
MIG Partitioner

Describe, enumerate and reliably apply Multi-Instance GPU partition layouts.
Instance creation is order sensitive, so layouts are applied by searching the
distinct creation orders until one succeeds.
"""

__version__ = "0.1.0"

from .algorithms.enumerator import enumerate_layouts
from .algorithms.permutations import SearchResult, search_orderings, unique_permutations
from .core.catalog import DeviceModel, get_device_model, known_device_models
from .core.config import ManagerConfig
from .core.errors import (
    CapacityError,
    DeviceAPIError,
    ExhaustedError,
    FatalDeviceError,
    LayoutMismatchError,
    MigPartitionError,
    OrderingError,
)
from .core.layout import Layout
from .core.profiles import Profile
from .placement.config_manager import MigConfigManager
from .placement.device_api import DeviceAPI, MigInstance
from .placement.simulated import SimulatedDeviceAPI

__all__ = [
    "CapacityError",
    "DeviceAPI",
    "DeviceAPIError",
    "DeviceModel",
    "ExhaustedError",
    "FatalDeviceError",
    "Layout",
    "LayoutMismatchError",
    "ManagerConfig",
    "MigConfigManager",
    "MigInstance",
    "MigPartitionError",
    "OrderingError",
    "Profile",
    "SearchResult",
    "SimulatedDeviceAPI",
    "enumerate_layouts",
    "get_device_model",
    "known_device_models",
    "search_orderings",
    "unique_permutations",
]
