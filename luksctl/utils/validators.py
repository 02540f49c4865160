"""Validation utilities for paths, mapper names and mount options"""

import os
import re
from typing import Optional

from luksctl.exceptions import InvalidInput
from luksctl.utils.logger import get_logger

LOG = get_logger(__name__)

MAPPER_PREFIX = 'luks-'
MAX_MAPPER_NAME_LEN = 128
MAX_MOUNT_OPTIONS_LEN = 1024
MAX_FS_TYPE_LEN = 32

ALLOWED_FS_TYPES = (
    'ext2', 'ext3', 'ext4', 'xfs', 'btrfs', 'f2fs', 'ntfs', 'ntfs3',
    'vfat', 'exfat', 'iso9660', 'udf', 'hfsplus', 'jfs', 'reiserfs',
)

# Accepted, but worth a warning on an encrypted volume
DANGEROUS_MOUNT_OPTIONS = ('suid', 'dev', 'exec')

_MAPPER_NAME_RE = re.compile(r'^[A-Za-z0-9_-]+$')
_UUID_RE = re.compile(r'^[0-9a-f]+(-[0-9a-f]+)*$')
_FORBIDDEN_OPTION_CHARS = set(';&|$`\n\r\\"\' ')


def _check_path(path: str, what: str):
    if not path:
        raise InvalidInput('errors.path_empty', what=what)
    if '\0' in path:
        raise InvalidInput('errors.path_null_byte', what=what)
    if not os.path.isabs(path):
        raise InvalidInput('errors.path_not_absolute', what=what, path=path)
    if '..' in path.split('/'):
        raise InvalidInput('errors.path_traversal', what=what, path=path)


def validate_device_path(device: str) -> str:
    """
    Validate a source block device path.

    Returns:
        The device path, unchanged

    Raises:
        InvalidInput if the path is unsafe or outside /dev
    """
    _check_path(device, 'device')
    if not device.startswith('/dev/'):
        raise InvalidInput('errors.device_not_in_dev', path=device)
    return device


def validate_mount_path(path: str) -> str:
    """
    Validate a mount point and return its canonical form.

    Symlinks are resolved so the same directory always maps to the same
    state key.
    """
    _check_path(path, 'mount_point')
    return os.path.realpath(path)


def validate_mapper_name(name: str) -> str:
    """Validate a mapper name managed by luksctl"""
    if not name or len(name) > MAX_MAPPER_NAME_LEN:
        raise InvalidInput('errors.mapper_name_length', name=name or '',
                           max=MAX_MAPPER_NAME_LEN)
    if not name.startswith(MAPPER_PREFIX):
        raise InvalidInput('errors.mapper_name_prefix', name=name)
    if not _MAPPER_NAME_RE.match(name):
        raise InvalidInput('errors.mapper_name_chars', name=name)
    return name


def is_managed_mapper_name(name: str) -> bool:
    """Return True if name follows the luks-* naming convention"""
    try:
        validate_mapper_name(name)
    except InvalidInput:
        return False
    return True


def validate_volume_uuid(uuid: str) -> bool:
    """Check that a volume UUID is lower-case hex groups joined by dashes"""
    return bool(uuid) and bool(_UUID_RE.match(uuid))


def validate_fs_type(fs_type: Optional[str]) -> Optional[str]:
    """Validate a filesystem type hint against the allow-list"""
    if fs_type is None or fs_type == '':
        return None
    if '\0' in fs_type or '/' in fs_type or len(fs_type) > MAX_FS_TYPE_LEN:
        raise InvalidInput('errors.fs_type_invalid', fs_type=fs_type)
    fs_lower = fs_type.lower()
    if fs_lower not in ALLOWED_FS_TYPES:
        raise InvalidInput('errors.fs_type_unsupported', fs_type=fs_type,
                           allowed=', '.join(ALLOWED_FS_TYPES))
    return fs_lower


def validate_mount_options(options: Optional[str]) -> Optional[str]:
    """
    Validate a raw comma-separated mount option string.

    Empty items are dropped; every other item is passed through verbatim.

    Returns:
        Normalized option string, or None when nothing is left
    """
    if not options:
        return None
    if '\0' in options:
        raise InvalidInput('errors.mount_options_null_byte')
    if len(options) > MAX_MOUNT_OPTIONS_LEN:
        raise InvalidInput('errors.mount_options_too_long',
                           max=MAX_MOUNT_OPTIONS_LEN)

    validated = []
    for opt in options.split(','):
        opt = opt.strip()
        if not opt:
            continue
        if any(c in _FORBIDDEN_OPTION_CHARS for c in opt):
            raise InvalidInput('errors.mount_option_forbidden_chars', opt=opt)
        name = opt.split('=', 1)[0]
        if name.lower() in DANGEROUS_MOUNT_OPTIONS:
            LOG.warning(f"Mount option '{name}' weakens the default nosuid,nodev policy")
        validated.append(opt)

    return ','.join(validated) if validated else None
