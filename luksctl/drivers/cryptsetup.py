"""cryptsetup volume-lock controller"""

import os
import subprocess
from typing import List, Optional

from luksctl.drivers.base import BaseVolumeLockController
from luksctl.exceptions import VolumeLockError
from luksctl.utils.logger import get_logger
from luksctl.utils.validators import validate_device_path, validate_mapper_name

LOG = get_logger(__name__)

# cryptsetup stderr fragments that mean the passphrase was rejected
WRONG_PASSPHRASE_MARKERS = ('No key available', 'wrong')


class CryptsetupController(BaseVolumeLockController):
    """Driver for LUKS volumes through the cryptsetup binary."""

    def __init__(self, cryptsetup_bin: str = 'cryptsetup'):
        self.cryptsetup_bin = cryptsetup_bin

    def _run(self, args: List[str], stdin: Optional[str] = None) -> subprocess.CompletedProcess:
        cmd = [self.cryptsetup_bin] + args
        LOG.debug(f"Executing: {' '.join(cmd)}")
        try:
            return subprocess.run(
                cmd,
                input=stdin,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise VolumeLockError(f"Failed to execute {self.cryptsetup_bin}: {e}") from e

    def is_encrypted_volume(self, device: str) -> bool:
        validate_device_path(device)
        result = self._run(['isLuks', device])
        return result.returncode == 0

    def volume_uuid(self, device: str) -> str:
        validate_device_path(device)
        result = self._run(['luksUUID', device])
        if result.returncode != 0:
            raise VolumeLockError(
                f"Failed to read LUKS UUID of {device}",
                stderr=result.stderr,
                returncode=result.returncode,
            )
        return result.stdout.strip()

    def unlock(self, device: str, mapper_id: str, passphrase: str) -> None:
        """
        Open a LUKS device.

        The passphrase is written to cryptsetup's stdin (--key-file=-) and
        never appears on the command line or in logs.
        """
        validate_device_path(device)
        validate_mapper_name(mapper_id)

        LOG.info(f"Opening LUKS device {device} as {mapper_id}")
        result = self._run(
            ['open', '--type', 'luks', '--key-file=-', device, mapper_id],
            stdin=passphrase,
        )

        if result.returncode != 0:
            stderr = result.stderr or ''
            wrong = any(marker in stderr for marker in WRONG_PASSPHRASE_MARKERS)
            LOG.error(f"cryptsetup open failed for {device}: {stderr.strip()}")
            raise VolumeLockError(
                f"Failed to open {device}",
                stderr=stderr,
                returncode=result.returncode,
                wrong_passphrase=wrong,
            )

        LOG.info(f"Opened {device} at {self.mapper_path(mapper_id)}")

    def lock(self, mapper_id: str) -> None:
        validate_mapper_name(mapper_id)

        LOG.info(f"Closing LUKS mapper {mapper_id}")
        result = self._run(['close', mapper_id])

        if result.returncode != 0:
            LOG.error(f"cryptsetup close failed for {mapper_id}: {result.stderr.strip()}")
            raise VolumeLockError(
                f"Failed to close {mapper_id}",
                stderr=result.stderr,
                returncode=result.returncode,
            )

    def is_unlocked(self, mapper_id: str) -> bool:
        return os.path.exists(self.mapper_path(mapper_id))

    def backing_device(self, mapper_id: str) -> Optional[str]:
        """
        Read the underlying device from `cryptsetup status`.

        Example output line:
            device:  /dev/sda1
        """
        validate_mapper_name(mapper_id)
        result = self._run(['status', mapper_id])
        if result.returncode != 0:
            return None

        for line in result.stdout.splitlines():
            key, sep, value = line.strip().partition(':')
            if sep and key.strip() == 'device':
                return value.strip() or None
        return None
