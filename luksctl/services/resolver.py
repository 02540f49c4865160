"""Mount-table fallback resolver"""

import os
from typing import Optional

from luksctl.drivers.base import BaseMountManager
from luksctl.exceptions import RecordNotFound
from luksctl.utils.logger import get_logger
from luksctl.utils.validators import is_managed_mapper_name

LOG = get_logger(__name__)

MAPPER_DEV_PREFIX = '/dev/mapper/'
DM_DEV_PREFIX = '/dev/dm-'


class MountTableResolver:
    """
    Finds the luks-* mapper node mounted at a path by reading the live
    mount table. Used when no state record is available. Never mutates
    anything.
    """

    SYS_BLOCK_DIR = '/sys/block'

    def __init__(self, mount_manager: BaseMountManager, sys_block_dir: str = SYS_BLOCK_DIR):
        self.mount_manager = mount_manager
        self.sys_block_dir = sys_block_dir

    def _mapper_name(self, device: str) -> Optional[str]:
        if device.startswith(MAPPER_DEV_PREFIX):
            return device[len(MAPPER_DEV_PREFIX):]

        if device.startswith(DM_DEV_PREFIX):
            # /dev/dm-3 -> /sys/block/dm-3/dm/name
            dm_node = os.path.basename(device)
            name_file = os.path.join(self.sys_block_dir, dm_node, 'dm', 'name')
            try:
                with open(name_file, 'r') as f:
                    return f.read().strip()
            except OSError as e:
                LOG.debug(f"Cannot read mapper name for {device}: {e}")
        return None

    def _visible_device(self, mount_point: str) -> Optional[str]:
        target = os.path.realpath(mount_point)
        device = None
        for entry in self.mount_manager.mount_table():
            if os.path.realpath(entry.mount_point) == target:
                # Last match is the visible one for stacked mounts
                device = entry.device
        return device

    def resolve(self, mount_point: str) -> str:
        """
        Resolve the mapper identifier mounted at mount_point.

        Args:
            mount_point: Canonical mount point path

        Returns:
            Mapper identifier (luks-*)

        Raises:
            RecordNotFound if nothing managed is mounted there
        """
        device = self._visible_device(mount_point)
        if device is None:
            LOG.info(f"{mount_point} is not in the mount table")
            raise RecordNotFound(path=mount_point)

        mapper_id = self._mapper_name(device)
        if not mapper_id or not is_managed_mapper_name(mapper_id):
            LOG.info(f"{mount_point} is backed by {device}, not a luks-* mapper node")
            raise RecordNotFound(path=mount_point, device=device)

        LOG.info(f"Resolved {mount_point} to {mapper_id} from the mount table")
        return mapper_id

    def holds_mapper(self, mount_point: str, mapper_id: str) -> bool:
        """True when the filesystem visible at mount_point is mapper_id"""
        device = self._visible_device(mount_point)
        return device is not None and self._mapper_name(device) == mapper_id

    def is_mapper_mounted(self, mapper_id: str) -> bool:
        """True when mapper_id is mounted anywhere"""
        return any(self._mapper_name(entry.device) == mapper_id
                   for entry in self.mount_manager.mount_table())
