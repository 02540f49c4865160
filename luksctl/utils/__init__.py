"""Utilities package"""

from luksctl.utils.logger import get_logger, setup_logging
from luksctl.utils.validators import (
    validate_device_path,
    validate_fs_type,
    validate_mapper_name,
    validate_mount_options,
    validate_mount_path,
)

__all__ = [
    'get_logger',
    'setup_logging',
    'validate_device_path',
    'validate_fs_type',
    'validate_mapper_name',
    'validate_mount_options',
    'validate_mount_path',
]
