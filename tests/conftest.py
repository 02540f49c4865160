"""Shared pytest fixtures"""

import logging
import os

import pytest

from luksctl.services import MountService
from tests.fakes import FakeMountManager, FakeVolumeLockController, MemoryStateStore

DEVICE = '/dev/sdb1'
OTHER_DEVICE = '/dev/sdc1'
VOLUME_UUID = '3f2a9c1e-7b4d-4e8a-9f10-2c6b8d0e4a57'
OTHER_UUID = '0b8e1d2c-5a6f-4c3b-8e9d-7f1a2b3c4d5e'
MAPPER_ID = f"luks-{VOLUME_UUID}"
PASSPHRASE = 'secret'


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo handlers installed by setup_logging between tests"""
    yield
    logger = logging.getLogger('luksctl')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def controller():
    return FakeVolumeLockController(
        {DEVICE: VOLUME_UUID, OTHER_DEVICE: OTHER_UUID},
        passphrase=PASSPHRASE,
    )


@pytest.fixture
def mount_manager():
    return FakeMountManager()


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def service(controller, mount_manager, store):
    return MountService(controller, mount_manager, store)


@pytest.fixture
def mount_point(tmp_path):
    path = tmp_path / 'secure'
    path.mkdir()
    return os.path.realpath(str(path))
