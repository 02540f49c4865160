"""Mount service - unlock/mount and unmount/lock workflows"""

import os
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

from luksctl.drivers.base import BaseMountManager, BaseVolumeLockController
from luksctl.exceptions import (
    AlreadyMounted,
    DeviceNotLuks,
    InvalidInput,
    LockFailed,
    LuksCtlException,
    MountFailed,
    MountManagerError,
    MountPointCreationFailed,
    NotMounted,
    RecordNotFound,
    StatePersistFailed,
    StateRemoveFailed,
    StoreUnavailable,
    UnlockFailed,
    UnmountFailed,
    VolumeLockError,
)
from luksctl.models import MountOptions, MountRecord
from luksctl.services.identifier import generate_mapper_id
from luksctl.services.resolver import MountTableResolver
from luksctl.services.state_store import StateStore
from luksctl.utils.logger import get_logger
from luksctl.utils.validators import (
    validate_device_path,
    validate_fs_type,
    validate_mount_options,
    validate_mount_path,
)

LOG = get_logger(__name__)

MOUNT_POINT_MODE = 0o755

Passphrase = Union[str, Callable[[], str]]


@dataclass
class MountResult:
    record: MountRecord
    warnings: List[LuksCtlException] = field(default_factory=list)
    already_unlocked: bool = False


@dataclass
class UnmountResult:
    mount_point: str
    mapper_id: str
    source: str
    warnings: List[LuksCtlException] = field(default_factory=list)


@dataclass
class RecordStatus:
    record: MountRecord
    live: bool


class MountService:
    """Core mount/unmount service for LUKS volumes"""

    SOURCE_STATE = 'state'
    SOURCE_MOUNT_TABLE = 'mount-table'

    def __init__(self, controller: BaseVolumeLockController,
                 mount_manager: BaseMountManager,
                 store: StateStore,
                 resolver: Optional[MountTableResolver] = None):
        self.controller = controller
        self.mount_manager = mount_manager
        self.store = store
        self.resolver = resolver or MountTableResolver(mount_manager)

    # ------------------------------------------------------------------
    # Mount
    # ------------------------------------------------------------------

    def mount(self, device: str, mount_point: str,
              options: Optional[MountOptions] = None,
              passphrase: Optional[Passphrase] = None,
              mkdir: bool = False) -> MountResult:
        """
        Unlock a LUKS device and mount it.

        Args:
            device: Source block device
            mount_point: Target directory
            options: Mount options (read-only, fs type, extra options)
            passphrase: Passphrase, or a callable prompting for it; it is
                only consulted right before unlocking
            mkdir: Create the mount point directory when absent

        Returns:
            MountResult with the stored record and any warnings

        Raises:
            InvalidInput, AlreadyMounted, StoreUnavailable, DeviceNotLuks,
            MountPointCreationFailed, UnlockFailed, MountFailed
        """
        options = self._validate_options(options or MountOptions())
        validate_device_path(device)
        mount_point = validate_mount_path(mount_point)

        LOG.info(f"Mount requested: {device} -> {mount_point}")

        # Step 1: uniqueness, reconciling a stale record
        self._check_no_live_record(mount_point)

        # Step 2: device check
        if not self.controller.is_encrypted_volume(device):
            LOG.error(f"{device} is not a LUKS device")
            raise DeviceNotLuks(path=device)

        # Step 3: mapper id
        mapper_id = generate_mapper_id(device, self.controller)

        # Step 4: mount point
        self._prepare_mount_point(mount_point, mkdir)

        # Step 5: unlock
        already_unlocked = self._unlock(device, mapper_id, passphrase)

        # Step 6: mount, locking again on failure
        mapper_path = self.controller.mapper_path(mapper_id)
        try:
            self.mount_manager.mount(mapper_path, mount_point, options)
        except MountManagerError as e:
            LOG.error(f"Mount of {mapper_path} at {mount_point} failed: {e.stderr or e}")
            rollback_error = None
            if not already_unlocked:
                rollback_error = self._rollback_unlock(mapper_id)
            raise MountFailed(
                rollback_error=rollback_error,
                path=mount_point,
                error=e.stderr or str(e),
            ) from e

        # Step 7: persist; the mount stays even if this fails
        record = MountRecord(
            mount_point=mount_point,
            mapper_id=mapper_id,
            source_device=device,
            mount_options=options,
        )
        result = MountResult(record=record, already_unlocked=already_unlocked)
        try:
            self.store.put(record)
        except (StoreUnavailable, AlreadyMounted) as e:
            LOG.warning(f"Mounted {mount_point} but could not store its record: {e}")
            result.warnings.append(StatePersistFailed(path=mount_point, error=str(e)))

        LOG.info(f"Mounted {device} at {mount_point} via {mapper_id}")
        return result

    def _validate_options(self, options: MountOptions) -> MountOptions:
        return MountOptions(
            read_only=bool(options.read_only),
            fs_type=validate_fs_type(options.fs_type),
            extra_options=validate_mount_options(options.extra_options),
        )

    def _check_no_live_record(self, mount_point: str):
        # Fails before anything is unlocked when state cannot be tracked
        self.store.ensure_available()

        try:
            existing = self.store.get(mount_point)
        except RecordNotFound:
            return

        if self._is_live(existing):
            LOG.error(f"{mount_point} already has a live mount of {existing.source_device}")
            raise AlreadyMounted(path=mount_point, device=existing.source_device)

        LOG.warning(f"Removing stale record for {mount_point} ({existing.mapper_id})")
        self.store.remove(mount_point)

    def _prepare_mount_point(self, mount_point: str, mkdir: bool):
        if os.path.isdir(mount_point):
            return
        if os.path.exists(mount_point):
            raise InvalidInput('errors.mount_point_not_dir', path=mount_point)
        if not mkdir:
            LOG.error(f"Mount point {mount_point} does not exist")
            raise MountPointCreationFailed('errors.mount_point_missing', path=mount_point)

        try:
            # Only the leaf; a missing parent is an error
            os.mkdir(mount_point, MOUNT_POINT_MODE)
            os.chmod(mount_point, MOUNT_POINT_MODE)
        except OSError as e:
            LOG.error(f"Failed to create mount point {mount_point}: {e}")
            raise MountPointCreationFailed(path=mount_point, error=str(e)) from e
        LOG.info(f"Created mount point {mount_point}")

    def _unlock(self, device: str, mapper_id: str,
                passphrase: Optional[Passphrase]) -> bool:
        """Unlock the device; returns True when it was already unlocked"""
        if self.controller.is_unlocked(mapper_id):
            backing = self.controller.backing_device(mapper_id)
            if backing and os.path.realpath(backing) == os.path.realpath(device):
                LOG.info(f"{device} is already unlocked as {mapper_id}, reusing it")
                return True
            LOG.error(f"Mapper {mapper_id} exists but is backed by {backing}")
            raise UnlockFailed('errors.mapper_collision', name=mapper_id,
                               device=backing or '?')

        if callable(passphrase):
            passphrase = passphrase()
        if not passphrase:
            raise InvalidInput('errors.passphrase_missing')

        try:
            self.controller.unlock(device, mapper_id, passphrase)
        except VolumeLockError as e:
            key = 'errors.wrong_passphrase' if e.wrong_passphrase else 'errors.unlock_failed'
            raise UnlockFailed(key, path=device, error=e.stderr or str(e)) from e
        return False

    def _rollback_unlock(self, mapper_id: str) -> Optional[str]:
        LOG.warning(f"Locking {mapper_id} again after failed mount")
        try:
            self.controller.lock(mapper_id)
        except VolumeLockError as e:
            LOG.error(f"Rollback lock of {mapper_id} failed: {e.stderr or e}")
            return e.stderr or str(e)
        return None

    # ------------------------------------------------------------------
    # Unmount
    # ------------------------------------------------------------------

    def unmount(self, mount_point: str, force: bool = False) -> UnmountResult:
        """
        Unmount a managed mount point and lock its volume.

        The mapper node is taken from the state record, or from the live
        mount table when no record is available.

        Raises:
            InvalidInput, NotMounted, UnmountFailed
        """
        mount_point = validate_mount_path(mount_point)
        LOG.info(f"Unmount requested: {mount_point} (force={force})")

        record = None
        try:
            record = self.store.get(mount_point)
        except RecordNotFound:
            LOG.info(f"No record for {mount_point}, checking the mount table")
        except StoreUnavailable as e:
            LOG.warning(f"State store unavailable ({e}), checking the mount table")

        if record is not None:
            mapper_id = record.mapper_id
            source = self.SOURCE_STATE
        else:
            try:
                mapper_id = self.resolver.resolve(mount_point)
            except RecordNotFound as e:
                raise NotMounted(path=mount_point) from e
            source = self.SOURCE_MOUNT_TABLE

        result = UnmountResult(mount_point=mount_point, mapper_id=mapper_id, source=source)

        mounted = (source == self.SOURCE_MOUNT_TABLE
                   or self.resolver.holds_mapper(mount_point, mapper_id))
        if not mounted:
            if self.mount_manager.is_mounted(mount_point):
                LOG.warning(f"{mount_point} holds a filesystem other than {mapper_id}, "
                            f"leaving it mounted")
            if (not self.controller.is_unlocked(mapper_id)
                    or self.resolver.is_mapper_mounted(mapper_id)):
                LOG.warning(f"Record for {mount_point} is stale, removing it")
                self._remove_record(mount_point, result)
                raise NotMounted(path=mount_point)
            LOG.info(f"{mount_point} is already unmounted, locking {mapper_id}")
        else:
            try:
                self.mount_manager.unmount(mount_point, force=force)
            except MountManagerError as e:
                LOG.error(f"Unmount of {mount_point} failed: {e.stderr or e}")
                raise UnmountFailed(path=mount_point, error=e.stderr or str(e)) from e

        try:
            self.controller.lock(mapper_id)
        except VolumeLockError as e:
            LOG.warning(f"Unmounted {mount_point} but {mapper_id} stays open: {e.stderr or e}")
            result.warnings.append(LockFailed(name=mapper_id, error=e.stderr or str(e)))

        if record is not None:
            self._remove_record(mount_point, result)

        LOG.info(f"Unmounted {mount_point} and locked {mapper_id}")
        return result

    def _remove_record(self, mount_point: str, result: UnmountResult):
        try:
            self.store.remove(mount_point)
        except StoreUnavailable as e:
            LOG.warning(f"Failed to remove record for {mount_point}: {e}")
            result.warnings.append(StateRemoveFailed(path=mount_point, error=str(e)))

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _is_live(self, record: MountRecord) -> bool:
        return (self.controller.is_unlocked(record.mapper_id)
                and self.resolver.holds_mapper(record.mount_point, record.mapper_id))

    def status(self) -> List[RecordStatus]:
        """List stored records with their liveness"""
        return [RecordStatus(record, self._is_live(record)) for record in self.store.list()]

    def cleanup_stale(self) -> List[MountRecord]:
        """Remove records whose mapper node or mount is gone"""
        removed = []
        for entry in self.status():
            if entry.live:
                continue
            LOG.info(f"Removing stale record for {entry.record.mount_point}")
            self.store.remove(entry.record.mount_point)
            removed.append(entry.record)
        return removed
