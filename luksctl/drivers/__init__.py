"""Volume-lock and mount drivers package"""

from luksctl.drivers.base import BaseMountManager, BaseVolumeLockController
from luksctl.drivers.cryptsetup import CryptsetupController
from luksctl.drivers.system_mount import SystemMountManager

__all__ = [
    'BaseMountManager',
    'BaseVolumeLockController',
    'CryptsetupController',
    'SystemMountManager',
]
