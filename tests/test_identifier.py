"""Tests for mapper identifier derivation"""

import pytest

from luksctl.exceptions import DeviceNotLuks
from luksctl.services import generate_mapper_id
from luksctl.services.identifier import mapper_id_for_uuid
from tests.conftest import DEVICE, MAPPER_ID, OTHER_DEVICE, VOLUME_UUID


def test_same_device_same_id(controller):
    assert generate_mapper_id(DEVICE, controller) == MAPPER_ID
    assert generate_mapper_id(DEVICE, controller) == MAPPER_ID


def test_different_devices_different_ids(controller):
    assert generate_mapper_id(DEVICE, controller) != generate_mapper_id(OTHER_DEVICE, controller)


def test_uuid_is_lowercased():
    assert mapper_id_for_uuid(VOLUME_UUID.upper()) == MAPPER_ID


def test_non_luks_device(controller):
    with pytest.raises(DeviceNotLuks) as exc:
        generate_mapper_id('/dev/sdx9', controller)

    assert exc.value.params == {'path': '/dev/sdx9'}


def test_empty_uuid(controller):
    controller.volumes['/dev/sdd1'] = ''

    with pytest.raises(DeviceNotLuks):
        generate_mapper_id('/dev/sdd1', controller)


@pytest.mark.parametrize('uuid', ['../../etc', 'abc def', 'xyz-123', '-abc'])
def test_malformed_uuid(uuid):
    with pytest.raises(DeviceNotLuks) as exc:
        mapper_id_for_uuid(uuid)

    assert exc.value.message_key == 'errors.device_uuid_invalid'
