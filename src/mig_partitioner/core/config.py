"""
Manager Configuration
"""

from dataclasses import dataclass


@dataclass
class ManagerConfig:
    enable_mig_mode: bool = True  # switch MIG mode on before applying a layout
    rollback_on_failure: bool = True  # False: clear the whole device instead
