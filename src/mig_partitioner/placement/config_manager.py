"""
MIG Config Manager

Applies, reads and clears MIG layouts on a GPU through a DeviceAPI.

Applying a layout:
1. Capacity check against the device model (no device calls on failure)
2. Enable MIG mode and clear existing instances
3. Search creation orders; a failed order is rolled back to an empty device
   before the next one is tried
4. Exhaustion leaves the device empty
"""

import logging
from collections import Counter
from typing import List, Optional, Sequence

from ..algorithms.permutations import SearchResult, search_orderings
from ..core.catalog import DeviceModel
from ..core.config import ManagerConfig
from ..core.errors import (
    DeviceAPIError,
    ExhaustedError,
    FatalDeviceError,
    LayoutMismatchError,
    OrderingError,
)
from ..core.layout import Layout
from ..core.profiles import Profile
from .device_api import DeviceAPI, MigInstance


class MigConfigManager:
    """Layout-level MIG reconfiguration for a set of GPUs"""

    def __init__(self, device_api: DeviceAPI, config: Optional[ManagerConfig] = None):
        self.logger = logging.getLogger(__name__)
        self.device_api = device_api
        self.config = config or ManagerConfig()

    def set_layout(self, device: int, layout: Layout) -> SearchResult:
        """
        Replace whatever is on the GPU with the given layout

        Returns the successful ordering and how many orderings it took.
        Raises CapacityError, ExhaustedError (device left empty) or
        FatalDeviceError (device state unknown).
        """
        self.device_model(device).check_capacity(layout)

        if self.config.enable_mig_mode:
            self.enable_mig(device, layout)
        self.clear_layout(device, target=layout)

        try:
            result = search_orderings(
                layout, lambda ordering: self._create_ordering(device, layout, ordering)
            )
        except ExhaustedError as e:
            self.logger.error(f"GPU {device}: no working order for [{layout}] "
                              f"after {e.attempts} attempts")
            raise ExhaustedError(layout, e.attempts, device, e.last_error) from e

        self.logger.info(f"Applied layout [{layout}] on GPU {device} "
                         f"after {result.attempts} ordering(s)")
        return result

    def get_layout(self, device: int) -> Layout:
        """Current layout as reported by the device"""
        counts = Counter(instance.profile for instance in self._list(device))
        return Layout(counts)

    def clear_layout(self, device: int, target: Optional[Layout] = None):
        """Destroy every MIG instance on the GPU; no-op when already empty"""
        self._clear(device, target, "destroy")

    def _clear(self, device: int, target: Optional[Layout], operation: str):
        instances = self._list(device, target)
        for instance in instances:
            self._destroy(device, instance.instance_id, operation, target)
        if instances:
            self.logger.info(f"Cleared {len(instances)} MIG instance(s) on GPU {device}")

    def assert_layout(self, device: int, layout: Layout):
        """Raise LayoutMismatchError unless the GPU holds exactly this layout"""
        actual = self.get_layout(device)
        if actual != layout:
            raise LayoutMismatchError(device, layout, actual)

    def device_model(self, device: int) -> DeviceModel:
        try:
            return self.device_api.device_model(device)
        except DeviceAPIError as e:
            raise FatalDeviceError(device, "device_model", cause=e) from e

    def get_mig_mode(self, device: int) -> bool:
        try:
            return self.device_api.get_mig_mode(device)
        except DeviceAPIError as e:
            raise FatalDeviceError(device, "get_mig_mode", cause=e) from e

    def enable_mig(self, device: int, target: Optional[Layout] = None):
        """Enable MIG mode on GPU"""
        if self.get_mig_mode(device):
            return
        try:
            self.device_api.set_mig_mode(device, True)
        except DeviceAPIError as e:
            self.logger.error(f"Failed to enable MIG on GPU {device}: {e}")
            raise FatalDeviceError(device, "set_mig_mode", target, e) from e
        self.logger.info(f"Enabled MIG on GPU {device}")

    def disable_mig(self, device: int):
        """Clear all instances and turn MIG mode off"""
        self.clear_layout(device)
        try:
            self.device_api.set_mig_mode(device, False)
        except DeviceAPIError as e:
            self.logger.error(f"Failed to disable MIG on GPU {device}: {e}")
            raise FatalDeviceError(device, "set_mig_mode", cause=e) from e
        self.logger.info(f"Disabled MIG on GPU {device}")

    def _create_ordering(self, device: int, layout: Layout, ordering: Sequence[Profile]):
        created: List[int] = []
        for profile in ordering:
            try:
                created.append(self.device_api.create_instance(device, profile))
            except DeviceAPIError as e:
                self.logger.debug(f"GPU {device}: creating {profile.name} failed after "
                                  f"{len(created)} of {len(ordering)} instances: {e}")
                self._rollback(device, layout, created)
                raise OrderingError(ordering, e) from e

    def _rollback(self, device: int, layout: Layout, created: List[int]):
        if not self.config.rollback_on_failure:
            self._clear(device, layout, "rollback")
            return
        for instance_id in reversed(created):
            self._destroy(device, instance_id, "rollback", layout)

    def _list(self, device: int, target: Optional[Layout] = None) -> List[MigInstance]:
        try:
            return self.device_api.list_instances(device)
        except DeviceAPIError as e:
            self.logger.error(f"Listing MIG instances failed on GPU {device}: {e}")
            raise FatalDeviceError(device, "list", target, e) from e

    def _destroy(self, device: int, instance_id: int, operation: str,
                 target: Optional[Layout] = None):
        try:
            self.device_api.destroy_instance(device, instance_id)
        except DeviceAPIError as e:
            self.logger.error(f"MIG {operation} failed on GPU {device}: {e}")
            raise FatalDeviceError(device, operation, target, e) from e
        self.logger.debug(f"Destroyed MIG instance {instance_id} on GPU {device}")
