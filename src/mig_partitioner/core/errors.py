"""
Error Types

Failures raised while validating, applying or reading MIG layouts.
"""

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .layout import Layout
    from .profiles import Profile


class MigPartitionError(Exception):
    """Base class for all partitioning errors"""


class CapacityError(MigPartitionError):
    """Layout does not fit the device model; raised before any device call"""

    def __init__(self, layout: "Layout", model_name: str, reason: str):
        self.layout = layout
        self.model_name = model_name
        self.reason = reason
        super().__init__(f"Layout [{layout}] does not fit {model_name}: {reason}")


class OrderingError(MigPartitionError):
    """One creation order failed; the next ordering may still succeed"""

    def __init__(self, ordering: Sequence["Profile"], cause: Optional[BaseException] = None):
        self.ordering = tuple(ordering)
        self.cause = cause
        names = ", ".join(p.name for p in self.ordering)
        super().__init__(f"Ordering [{names}] failed: {cause}")


class ExhaustedError(MigPartitionError):
    """Every distinct creation order was tried and none succeeded"""

    def __init__(self, layout: "Layout", attempts: int, device: Optional[int] = None,
                 last_error: Optional[BaseException] = None):
        self.layout = layout
        self.attempts = attempts
        self.device = device
        self.last_error = last_error
        where = f" on GPU {device}" if device is not None else ""
        super().__init__(
            f"No viable ordering for layout [{layout}]{where} after {attempts} of "
            f"{layout.unique_orderings()} unique orderings; the device topology "
            f"cannot currently host this layout (last error: {last_error})"
        )


class DeviceAPIError(MigPartitionError):
    """A device collaborator call failed"""

    def __init__(self, device: int, operation: str, message: str):
        self.device = device
        self.operation = operation
        self.message = message
        super().__init__(f"GPU {device}: {operation} failed: {message}")


class FatalDeviceError(MigPartitionError):
    """A destroy, list or mode call failed; device state is unknown"""

    def __init__(self, device: int, operation: str, layout: Optional["Layout"] = None,
                 cause: Optional[BaseException] = None):
        self.device = device
        self.operation = operation
        self.layout = layout
        self.cause = cause
        target = f" while applying [{layout}]" if layout is not None else ""
        super().__init__(
            f"GPU {device}: {operation} failed{target}; device may be left "
            f"in an inconsistent state: {cause}"
        )


class LayoutMismatchError(MigPartitionError):
    """Live device layout differs from the expected one"""

    def __init__(self, device: int, expected: "Layout", actual: "Layout"):
        self.device = device
        self.expected = expected
        self.actual = actual
        super().__init__(f"GPU {device}: expected layout [{expected}], found [{actual}]")
