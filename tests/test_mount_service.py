"""
Unit tests for the mount and unmount workflows.
"""

import os
from unittest.mock import Mock

import pytest

from luksctl.exceptions import (
    EXIT_DEVICE_ERROR,
    EXIT_MOUNT_ERROR,
    AlreadyMounted,
    DeviceNotLuks,
    InvalidInput,
    LockFailed,
    MountFailed,
    MountManagerError,
    MountPointCreationFailed,
    NotMounted,
    StatePersistFailed,
    StateRemoveFailed,
    StoreUnavailable,
    UnlockFailed,
    UnmountFailed,
    VolumeLockError,
)
from luksctl.models import MountEntry, MountOptions, MountRecord
from luksctl.services import MountService, StateStore
from tests.conftest import DEVICE, MAPPER_ID, OTHER_DEVICE, PASSPHRASE

MAPPER_PATH = f"/dev/mapper/{MAPPER_ID}"


class TestMount:

    def test_happy_path(self, service, controller, mount_manager, store, mount_point):
        result = service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)

        assert result.warnings == []
        assert result.already_unlocked is False
        assert result.record.mapper_id == MAPPER_ID
        assert controller.unlocked == {MAPPER_ID: DEVICE}
        assert mount_manager.called('mount') == [
            ('mount', MAPPER_PATH, mount_point, MountOptions()),
        ]
        record = store.get(mount_point)
        assert record.source_device == DEVICE
        assert record.mapper_id == MAPPER_ID

    def test_options_are_normalized(self, service, store, mount_point):
        options = MountOptions(read_only=True, fs_type='EXT4', extra_options='noatime,,')

        service.mount(DEVICE, mount_point, options=options, passphrase=PASSPHRASE)

        assert store.get(mount_point).mount_options == MountOptions(
            read_only=True, fs_type='ext4', extra_options='noatime')

    def test_passphrase_callable_is_called_once(self, service, mount_point):
        prompt = Mock(return_value=PASSPHRASE)

        service.mount(DEVICE, mount_point, passphrase=prompt)

        prompt.assert_called_once_with()

    def test_mount_point_is_canonicalized(self, service, store, mount_point, tmp_path):
        link = tmp_path / 'link'
        link.symlink_to(mount_point)

        result = service.mount(DEVICE, str(link), passphrase=PASSPHRASE)

        assert result.record.mount_point == mount_point
        assert mount_point in store

    def test_not_luks_device(self, service, controller, mount_point):
        prompt = Mock(return_value=PASSPHRASE)

        with pytest.raises(DeviceNotLuks) as exc:
            service.mount('/dev/sdx9', mount_point, passphrase=prompt)

        assert exc.value.exit_code == EXIT_DEVICE_ERROR
        assert controller.called('unlock') == []
        prompt.assert_not_called()

    @pytest.mark.parametrize('device, mount_point, options', [
        ('sdb1', '/mnt/secure', None),
        ('/tmp/disk.img', '/mnt/secure', None),
        ('/dev/../etc/passwd', '/mnt/secure', None),
        ('/dev/sdb1', 'mnt/secure', None),
        ('/dev/sdb1', '/mnt/secure', MountOptions(fs_type='nfs')),
        ('/dev/sdb1', '/mnt/secure', MountOptions(extra_options='rw;reboot')),
    ])
    def test_invalid_input_is_rejected_before_any_side_effect(
            self, service, controller, mount_manager, store, device, mount_point, options):
        with pytest.raises(InvalidInput):
            service.mount(device, mount_point, options=options, passphrase=PASSPHRASE)

        assert controller.calls == []
        assert mount_manager.calls == []
        assert store.records == {}


class TestMountPoint:

    def test_missing_mount_point_without_mkdir(self, service, controller, tmp_path):
        target = os.path.realpath(str(tmp_path / 'missing'))

        with pytest.raises(MountPointCreationFailed) as exc:
            service.mount(DEVICE, target, passphrase=PASSPHRASE)

        assert exc.value.message_key == 'errors.mount_point_missing'
        assert exc.value.exit_code == EXIT_MOUNT_ERROR
        assert not os.path.exists(target)
        assert controller.called('unlock') == []
        assert controller.unlocked == {}

    def test_mkdir_creates_mount_point(self, service, store, tmp_path):
        target = os.path.realpath(str(tmp_path / 'new'))

        service.mount(DEVICE, target, passphrase=PASSPHRASE, mkdir=True)

        assert os.path.isdir(target)
        assert target in store

    def test_mkdir_does_not_create_parents(self, service, controller, tmp_path):
        target = os.path.realpath(str(tmp_path / 'a' / 'b'))

        with pytest.raises(MountPointCreationFailed):
            service.mount(DEVICE, target, passphrase=PASSPHRASE, mkdir=True)

        assert controller.unlocked == {}

    def test_mount_point_is_a_file(self, service, controller, tmp_path):
        target = tmp_path / 'file'
        target.write_text('x')

        with pytest.raises(InvalidInput) as exc:
            service.mount(DEVICE, str(target), passphrase=PASSPHRASE)

        assert exc.value.message_key == 'errors.mount_point_not_dir'
        assert controller.called('unlock') == []


class TestUnlock:

    def test_wrong_passphrase(self, service, mount_manager, store, mount_point):
        with pytest.raises(UnlockFailed) as exc:
            service.mount(DEVICE, mount_point, passphrase='nope')

        assert exc.value.message_key == 'errors.wrong_passphrase'
        assert exc.value.exit_code == EXIT_DEVICE_ERROR
        assert isinstance(exc.value.__cause__, VolumeLockError)
        assert mount_manager.calls == []
        assert store.records == {}

    def test_unlock_error(self, service, controller, mount_point):
        controller.unlock_error = VolumeLockError('open failed', stderr='Device busy')

        with pytest.raises(UnlockFailed) as exc:
            service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)

        assert exc.value.message_key == 'errors.unlock_failed'
        assert exc.value.params['error'] == 'Device busy'

    def test_missing_passphrase(self, service, controller, mount_point):
        with pytest.raises(InvalidInput) as exc:
            service.mount(DEVICE, mount_point, passphrase=None)

        assert exc.value.message_key == 'errors.passphrase_missing'
        assert controller.called('unlock') == []

    def test_already_unlocked_same_device_is_reused(self, service, controller, mount_manager,
                                                    mount_point):
        controller.unlocked[MAPPER_ID] = DEVICE
        prompt = Mock(return_value=PASSPHRASE)

        result = service.mount(DEVICE, mount_point, passphrase=prompt)

        assert result.already_unlocked is True
        assert controller.called('unlock') == []
        prompt.assert_not_called()
        assert len(mount_manager.called('mount')) == 1

    def test_mapper_collision(self, service, controller, mount_manager, mount_point):
        controller.unlocked[MAPPER_ID] = OTHER_DEVICE

        with pytest.raises(UnlockFailed) as exc:
            service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)

        assert exc.value.message_key == 'errors.mapper_collision'
        assert controller.unlocked == {MAPPER_ID: OTHER_DEVICE}
        assert mount_manager.calls == []


class TestRollback:

    def test_failed_mount_locks_again(self, service, controller, mount_manager, store,
                                      mount_point):
        mount_manager.mount_error = MountManagerError('mount failed', stderr='wrong fs type')

        with pytest.raises(MountFailed) as exc:
            service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)

        assert exc.value.rollback_error is None
        assert exc.value.message_key == 'errors.mount_failed'
        assert exc.value.params['error'] == 'wrong fs type'
        assert controller.called('lock') == [('lock', MAPPER_ID)]
        assert controller.unlocked == {}
        assert store.records == {}

    def test_failed_rollback_is_reported(self, service, controller, mount_manager, mount_point):
        mount_manager.mount_error = MountManagerError('mount failed', stderr='wrong fs type')
        controller.lock_error = VolumeLockError('close failed', stderr='Device busy')

        with pytest.raises(MountFailed) as exc:
            service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)

        assert exc.value.rollback_error == 'Device busy'
        assert exc.value.message_key == 'errors.mount_failed_rollback'

    def test_preexisting_unlock_is_left_alone(self, service, controller, mount_manager,
                                              mount_point):
        controller.unlocked[MAPPER_ID] = DEVICE
        mount_manager.mount_error = MountManagerError('mount failed')

        with pytest.raises(MountFailed):
            service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)

        assert controller.called('lock') == []
        assert controller.unlocked == {MAPPER_ID: DEVICE}


class TestUniqueness:

    def test_live_record_blocks_second_mount(self, service, controller, mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)

        with pytest.raises(AlreadyMounted) as exc:
            service.mount(OTHER_DEVICE, mount_point, passphrase=PASSPHRASE)

        assert exc.value.params['device'] == DEVICE
        assert len(controller.called('unlock')) == 1

    def test_stale_record_is_replaced(self, service, store, mount_point):
        store.records[mount_point] = MountRecord(mount_point, 'luks-0000', '/dev/sdz1')

        result = service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)

        assert result.record.source_device == DEVICE
        assert store.get(mount_point).mapper_id == MAPPER_ID

    def test_unavailable_store_fails_before_unlock(self, service, controller, store,
                                                   mount_point):
        store.available = False
        prompt = Mock(return_value=PASSPHRASE)

        with pytest.raises(StoreUnavailable):
            service.mount(DEVICE, mount_point, passphrase=prompt)

        prompt.assert_not_called()
        assert controller.calls == []

    def test_persist_failure_is_a_warning(self, service, controller, mount_manager, store,
                                          mount_point):
        store.put_error = StoreUnavailable(path='memory', error='No space left on device')

        result = service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)

        assert len(result.warnings) == 1
        assert isinstance(result.warnings[0], StatePersistFailed)
        assert result.warnings[0].is_warning
        assert controller.unlocked == {MAPPER_ID: DEVICE}
        assert mount_manager.is_mounted(mount_point)


class TestUnmount:

    def test_happy_path(self, service, controller, mount_manager, store, mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)

        result = service.unmount(mount_point)

        assert result.source == MountService.SOURCE_STATE
        assert result.mapper_id == MAPPER_ID
        assert result.warnings == []
        assert mount_manager.called('unmount') == [('unmount', mount_point, False)]
        assert controller.unlocked == {}
        assert mount_point not in store

    def test_forced_unmount_of_busy_target(self, service, controller, mount_manager, store,
                                           mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        mount_manager.busy = True

        with pytest.raises(UnmountFailed) as exc:
            service.unmount(mount_point)
        assert exc.value.params['error'] == 'target is busy'
        assert mount_point in store

        result = service.unmount(mount_point, force=True)

        assert result.warnings == []
        assert mount_manager.called('unmount') == [('unmount', mount_point, False),
                                                   ('unmount', mount_point, True)]
        assert not mount_manager.is_mounted(mount_point)
        assert controller.unlocked == {}
        assert mount_point not in store

    def test_falls_back_to_mount_table(self, service, controller, store, mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        store.records.clear()

        result = service.unmount(mount_point)

        assert result.source == MountService.SOURCE_MOUNT_TABLE
        assert result.mapper_id == MAPPER_ID
        assert controller.unlocked == {}

    def test_second_unmount_reports_not_mounted(self, service, store, mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        store.records.clear()
        service.unmount(mount_point)

        with pytest.raises(NotMounted):
            service.unmount(mount_point)

    def test_unavailable_store_falls_back_to_mount_table(self, service, controller, store,
                                                         mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        store.available = False

        result = service.unmount(mount_point)

        assert result.source == MountService.SOURCE_MOUNT_TABLE
        assert result.warnings == []
        assert controller.unlocked == {}

    def test_nothing_mounted(self, service, mount_point):
        with pytest.raises(NotMounted) as exc:
            service.unmount(mount_point)

        assert exc.value.exit_code == EXIT_MOUNT_ERROR

    def test_unmanaged_mount_is_refused(self, service, controller, mount_manager, mount_point):
        mount_manager.mount("/dev/mapper/vg0-data", mount_point, MountOptions())

        with pytest.raises(NotMounted):
            service.unmount(mount_point)

        assert mount_manager.called('unmount') == []

    def test_unmount_failure_keeps_everything(self, service, controller, mount_manager, store,
                                              mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        mount_manager.unmount_error = MountManagerError('umount failed', stderr='target is busy')

        with pytest.raises(UnmountFailed) as exc:
            service.unmount(mount_point)

        assert exc.value.params['error'] == 'target is busy'
        assert controller.unlocked == {MAPPER_ID: DEVICE}
        assert mount_point in store

    def test_lock_failure_is_a_warning(self, service, controller, store, mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        controller.lock_error = VolumeLockError('close failed', stderr='Device busy')

        result = service.unmount(mount_point)

        assert [type(w) for w in result.warnings] == [LockFailed]
        assert mount_point not in store

    def test_remove_failure_is_a_warning(self, service, controller, store, mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        store.remove_error = StoreUnavailable(path='memory', error='Read-only file system')

        result = service.unmount(mount_point)

        assert [type(w) for w in result.warnings] == [StateRemoveFailed]
        assert controller.unlocked == {}

    def test_already_unmounted_volume_is_locked(self, service, controller, mount_manager, store,
                                                mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        mount_manager.mounts.clear()

        result = service.unmount(mount_point)

        assert mount_manager.called('unmount') == []
        assert result.warnings == []
        assert controller.unlocked == {}
        assert mount_point not in store

    def test_stale_record_is_removed(self, service, store, mount_point):
        store.records[mount_point] = MountRecord(mount_point, MAPPER_ID, DEVICE)

        with pytest.raises(NotMounted):
            service.unmount(mount_point)

        assert mount_point not in store

    def test_other_filesystem_at_closed_record_is_left_alone(self, service, controller,
                                                             mount_manager, store, mount_point):
        store.records[mount_point] = MountRecord(mount_point, MAPPER_ID, DEVICE)
        mount_manager.mounts.append(MountEntry('/dev/sdz9', mount_point, 'ext4'))

        with pytest.raises(NotMounted):
            service.unmount(mount_point)

        assert mount_manager.called('unmount') == []
        assert mount_manager.mounts == [MountEntry('/dev/sdz9', mount_point, 'ext4')]
        assert controller.called('lock') == []
        assert mount_point not in store

    def test_other_filesystem_at_open_record_is_left_alone(self, service, controller,
                                                           mount_manager, store, mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        mount_manager.mounts.clear()
        mount_manager.mounts.append(MountEntry('/dev/sdz9', mount_point, 'ext4'))

        result = service.unmount(mount_point)

        assert result.warnings == []
        assert mount_manager.called('unmount') == []
        assert mount_manager.mounts == [MountEntry('/dev/sdz9', mount_point, 'ext4')]
        assert controller.unlocked == {}
        assert mount_point not in store

    def test_mapper_mounted_elsewhere_is_not_locked(self, service, controller, mount_manager,
                                                    store, mount_point, tmp_path):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        elsewhere = os.path.realpath(str(tmp_path / 'elsewhere'))
        mount_manager.mounts[0] = MountEntry(MAPPER_PATH, elsewhere, 'ext4')

        with pytest.raises(NotMounted):
            service.unmount(mount_point)

        assert mount_manager.called('unmount') == []
        assert controller.unlocked == {MAPPER_ID: DEVICE}
        assert mount_point not in store


class TestDiagnostics:

    def test_status_and_cleanup(self, service, store, mount_point, tmp_path):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        gone = os.path.realpath(str(tmp_path / 'gone'))
        store.records[gone] = MountRecord(gone, 'luks-0000', '/dev/sdz1')

        status = {entry.record.mount_point: entry.live for entry in service.status()}
        assert status == {mount_point: True, gone: False}

        removed = service.cleanup_stale()

        assert [record.mount_point for record in removed] == [gone]
        assert list(store.records) == [mount_point]

    def test_record_shadowed_by_other_filesystem_is_not_live(self, service, mount_manager,
                                                             mount_point):
        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        mount_manager.mounts.append(MountEntry('/dev/sdz9', mount_point, 'ext4'))

        assert [entry.live for entry in service.status()] == [False]


class TestWithFileStore:

    def test_record_lifecycle(self, controller, mount_manager, tmp_path, mount_point):
        state_dir = tmp_path / 'state'
        service = MountService(controller, mount_manager, StateStore(str(state_dir)))

        service.mount(DEVICE, mount_point, passphrase=PASSPHRASE)
        assert len(os.listdir(state_dir)) == 1

        service.unmount(mount_point)
        assert os.listdir(state_dir) == []
