"""
Custom exceptions for luksctl

Every exception carries a message key and the parameters needed to render
it; the CLI turns them into localized text through luksctl.i18n.
"""

EXIT_SUCCESS = 0
EXIT_INTERNAL_ERROR = 1
EXIT_USER_ERROR = 2
EXIT_DEVICE_ERROR = 3
EXIT_MOUNT_ERROR = 4
EXIT_WARNING = 5

SEVERITY_ERROR = 'error'
SEVERITY_WARNING = 'warning'


class LuksCtlException(Exception):
    """Base exception for luksctl"""

    message_key = 'errors.unexpected'
    exit_code = EXIT_INTERNAL_ERROR
    severity = SEVERITY_ERROR

    def __init__(self, message_key=None, **params):
        if message_key:
            self.message_key = message_key
        self.params = params
        super().__init__(self._describe())

    def _describe(self) -> str:
        if not self.params:
            return self.message_key
        details = ', '.join(f"{k}={v}" for k, v in sorted(self.params.items()))
        return f"{self.message_key} ({details})"

    @property
    def is_warning(self) -> bool:
        return self.severity == SEVERITY_WARNING


# Mount workflow

class AlreadyMounted(LuksCtlException):
    """Mount point already has a live record"""
    message_key = 'errors.already_mounted'
    exit_code = EXIT_MOUNT_ERROR


class DeviceNotLuks(LuksCtlException):
    """Source device is not a LUKS volume or has no readable UUID"""
    message_key = 'errors.device_not_luks'
    exit_code = EXIT_DEVICE_ERROR


class MountPointCreationFailed(LuksCtlException):
    """Mount point is missing and could not (or may not) be created"""
    message_key = 'errors.mount_point_creation_failed'
    exit_code = EXIT_MOUNT_ERROR


class UnlockFailed(LuksCtlException):
    """Volume could not be unlocked"""
    message_key = 'errors.unlock_failed'
    exit_code = EXIT_DEVICE_ERROR


class MountFailed(LuksCtlException):
    """Filesystem mount failed; the volume was locked again"""
    message_key = 'errors.mount_failed'
    exit_code = EXIT_MOUNT_ERROR

    def __init__(self, message_key=None, rollback_error=None, **params):
        self.rollback_error = rollback_error
        if rollback_error:
            message_key = message_key or 'errors.mount_failed_rollback'
            params['rollback_error'] = rollback_error
        super().__init__(message_key, **params)


class StatePersistFailed(LuksCtlException):
    """Mount succeeded but its record could not be stored"""
    message_key = 'warnings.state_persist_failed'
    exit_code = EXIT_WARNING
    severity = SEVERITY_WARNING


# Unmount workflow

class NotMounted(LuksCtlException):
    """No managed volume could be found at the mount point"""
    message_key = 'errors.not_mounted'
    exit_code = EXIT_MOUNT_ERROR


class UnmountFailed(LuksCtlException):
    """Filesystem unmount failed"""
    message_key = 'errors.unmount_failed'
    exit_code = EXIT_MOUNT_ERROR


class LockFailed(LuksCtlException):
    """Filesystem is unmounted but the mapper node could not be closed"""
    message_key = 'warnings.lock_failed'
    exit_code = EXIT_WARNING
    severity = SEVERITY_WARNING


class StateRemoveFailed(LuksCtlException):
    """Record could not be removed after a successful unmount"""
    message_key = 'warnings.state_remove_failed'
    exit_code = EXIT_WARNING
    severity = SEVERITY_WARNING


# State store

class StoreUnavailable(LuksCtlException):
    """State directory missing, unreadable or unwritable"""
    message_key = 'errors.store_unavailable'
    exit_code = EXIT_INTERNAL_ERROR


class RecordNotFound(LuksCtlException):
    """No record (or no mount table entry) for a mount point"""
    message_key = 'errors.record_not_found'
    exit_code = EXIT_MOUNT_ERROR


# Input and environment

class InvalidInput(LuksCtlException):
    """Exception raised when user input fails validation"""
    message_key = 'errors.invalid_input'
    exit_code = EXIT_USER_ERROR


class PermissionDenied(LuksCtlException):
    """Exception raised when the tool is not run as root"""
    message_key = 'errors.must_be_root'
    exit_code = EXIT_USER_ERROR


class ConfigurationException(LuksCtlException):
    """Exception raised for configuration errors"""
    message_key = 'errors.configuration'
    exit_code = EXIT_USER_ERROR


# Driver errors, wrapped by the mount service

class DriverException(Exception):
    """Exception raised when an external tool fails"""

    def __init__(self, message: str, stderr: str = '', returncode: int = None):
        self.stderr = (stderr or '').strip()
        self.returncode = returncode
        super().__init__(message)


class VolumeLockError(DriverException):
    """Exception raised by volume-lock controllers"""

    def __init__(self, message: str, stderr: str = '', returncode: int = None,
                 wrong_passphrase: bool = False):
        self.wrong_passphrase = wrong_passphrase
        super().__init__(message, stderr, returncode)


class MountManagerError(DriverException):
    """Exception raised by mount managers"""
    pass
