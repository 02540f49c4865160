"""System mount manager using mount(8), umount(8) and psutil"""

import subprocess
from typing import Iterator, List

import psutil

from luksctl.drivers.base import BaseMountManager
from luksctl.exceptions import MountManagerError
from luksctl.models import MountEntry, MountOptions
from luksctl.utils.logger import get_logger
from luksctl.utils.validators import validate_fs_type, validate_mount_options

LOG = get_logger(__name__)

# Always applied to encrypted volumes
SECURE_DEFAULT_OPTIONS = ('nosuid', 'nodev')


class SystemMountManager(BaseMountManager):
    """Driver for mounting block devices on the local system."""

    def __init__(self, mount_bin: str = 'mount', umount_bin: str = 'umount'):
        self.mount_bin = mount_bin
        self.umount_bin = umount_bin

    def build_mount_command(self, source_node: str, mount_point: str,
                            options: MountOptions) -> List[str]:
        cmd = [self.mount_bin]

        fs_type = validate_fs_type(options.fs_type)
        if fs_type:
            cmd += ['-t', fs_type]

        mount_opts = list(SECURE_DEFAULT_OPTIONS)
        if options.read_only:
            mount_opts.append('ro')
        extra = validate_mount_options(options.extra_options)
        if extra:
            mount_opts.append(extra)

        cmd += ['-o', ','.join(mount_opts), source_node, mount_point]
        return cmd

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        LOG.debug(f"Executing: {' '.join(cmd)}")
        try:
            return subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise MountManagerError(f"Failed to execute {cmd[0]}: {e}") from e

    def mount(self, source_node: str, mount_point: str, options: MountOptions) -> None:
        cmd = self.build_mount_command(source_node, mount_point, options)

        LOG.info(f"Mounting {source_node} at {mount_point}")
        result = self._run(cmd)

        if result.returncode != 0:
            LOG.error(f"Mount failed: {result.stderr.strip()}")
            raise MountManagerError(
                f"Failed to mount {source_node} at {mount_point}",
                stderr=result.stderr,
                returncode=result.returncode,
            )

        LOG.info(f"Successfully mounted {source_node} at {mount_point}")

    def unmount(self, mount_point: str, force: bool = False) -> None:
        cmd = [self.umount_bin]
        if force:
            # Lazy unmount: detach now, clean up once no longer busy
            cmd.append('-l')
        cmd.append(mount_point)

        LOG.info(f"Unmounting {mount_point}{' (lazy)' if force else ''}")
        result = self._run(cmd)

        if result.returncode != 0:
            LOG.error(f"Unmount failed: {result.stderr.strip()}")
            raise MountManagerError(
                f"Failed to unmount {mount_point}",
                stderr=result.stderr,
                returncode=result.returncode,
            )

        LOG.info(f"Successfully unmounted {mount_point}")

    def mount_table(self) -> Iterator[MountEntry]:
        for part in psutil.disk_partitions(all=True):
            yield MountEntry(part.device, part.mountpoint, part.fstype)
