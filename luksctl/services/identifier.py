"""Mapper identifier derivation"""

from luksctl.drivers.base import BaseVolumeLockController
from luksctl.exceptions import DeviceNotLuks, VolumeLockError
from luksctl.utils.logger import get_logger
from luksctl.utils.validators import (
    MAPPER_PREFIX,
    validate_mapper_name,
    validate_volume_uuid,
)

LOG = get_logger(__name__)


def mapper_id_for_uuid(volume_uuid: str) -> str:
    """Build the mapper identifier for a LUKS volume UUID"""
    uuid = (volume_uuid or '').strip().lower()
    if not validate_volume_uuid(uuid):
        raise DeviceNotLuks('errors.device_uuid_invalid', uuid=volume_uuid)
    return validate_mapper_name(f"{MAPPER_PREFIX}{uuid}")


def generate_mapper_id(device: str, controller: BaseVolumeLockController) -> str:
    """
    Derive the mapper identifier of a device.

    The identifier is a pure function of the LUKS header UUID, so repeated
    calls for the same device always converge on the same mapper node.

    Args:
        device: Source block device
        controller: Volume-lock controller used to read the UUID

    Returns:
        Identifier of the form luks-<uuid>

    Raises:
        DeviceNotLuks if the UUID is unavailable or malformed
    """
    try:
        volume_uuid = controller.volume_uuid(device)
    except VolumeLockError as e:
        LOG.error(f"Could not read LUKS UUID of {device}: {e.stderr or e}")
        raise DeviceNotLuks(path=device) from e

    if not volume_uuid:
        raise DeviceNotLuks(path=device)

    mapper_id = mapper_id_for_uuid(volume_uuid)
    LOG.debug(f"Derived mapper id {mapper_id} for {device}")
    return mapper_id
