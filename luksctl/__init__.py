"""
luksctl - mount and unmount LUKS-encrypted block devices

Unlocks a LUKS device under a mapper name derived from its UUID, mounts it
with nosuid,nodev and remembers the mount in a runtime state directory so
that it can be unmounted and locked again later. When the record is gone,
the mapper node is recovered from the live mount table.

Example:
    >>> from luksctl import MountService, StateStore
    >>> from luksctl.drivers import CryptsetupController, SystemMountManager
    >>>
    >>> service = MountService(
    ...     CryptsetupController(),
    ...     SystemMountManager(),
    ...     StateStore('/run/luksctl'),
    ... )
    >>> result = service.mount('/dev/sdb1', '/mnt/secure', passphrase='secret')
    >>> service.unmount('/mnt/secure')
"""

from luksctl.models import MountOptions, MountRecord
from luksctl.services import MountService, StateStore
from luksctl.version import version_string

__version__ = version_string()

__all__ = ['MountOptions', 'MountRecord', 'MountService', 'StateStore', '__version__']
