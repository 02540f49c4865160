"""Base driver interfaces for volume locking and mounting"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from luksctl.models import MountEntry, MountOptions


class BaseVolumeLockController(ABC):
    """Abstract base class for volume-lock controllers"""

    MAPPER_DIR = '/dev/mapper'

    @abstractmethod
    def is_encrypted_volume(self, device: str) -> bool:
        """
        Check whether a device holds an encrypted volume.

        Args:
            device: Block device path

        Returns:
            True if the device is a LUKS volume
        """
        pass

    @abstractmethod
    def volume_uuid(self, device: str) -> str:
        """
        Read the volume UUID from the LUKS header.

        Raises:
            VolumeLockError if the UUID cannot be read
        """
        pass

    @abstractmethod
    def unlock(self, device: str, mapper_id: str, passphrase: str) -> None:
        """
        Unlock a device as /dev/mapper/<mapper_id>.

        Raises:
            VolumeLockError on failure
        """
        pass

    @abstractmethod
    def lock(self, mapper_id: str) -> None:
        """
        Close the mapper node.

        Raises:
            VolumeLockError on failure
        """
        pass

    @abstractmethod
    def backing_device(self, mapper_id: str) -> Optional[str]:
        """Return the device behind an open mapper node, or None"""
        pass

    def mapper_path(self, mapper_id: str) -> str:
        return f"{self.MAPPER_DIR}/{mapper_id}"

    @abstractmethod
    def is_unlocked(self, mapper_id: str) -> bool:
        """Check whether the mapper node exists"""
        pass


class BaseMountManager(ABC):
    """Abstract base class for mount managers"""

    @abstractmethod
    def mount(self, source_node: str, mount_point: str, options: MountOptions) -> None:
        """
        Mount a block device.

        Args:
            source_node: Device node to mount
            mount_point: Target directory
            options: Effective mount options

        Raises:
            MountManagerError on failure
        """
        pass

    @abstractmethod
    def unmount(self, mount_point: str, force: bool = False) -> None:
        """
        Unmount a mount point, lazily when force is set.

        Raises:
            MountManagerError on failure
        """
        pass

    @abstractmethod
    def mount_table(self) -> Iterable[MountEntry]:
        """
        Enumerate the live system mount table.

        Returns:
            Iterable of (device, mount_point, fs_type) entries
        """
        pass

    def is_mounted(self, mount_point: str) -> bool:
        """Check if a path appears in the live mount table"""
        return any(entry.mount_point == mount_point for entry in self.mount_table())
