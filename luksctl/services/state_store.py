"""
File-based state store for luksctl mount records.

One JSON file per mount point in a runtime directory (tmpfs, cleared on
reboot). Writes go to a temp file first and are published with a hard link,
so readers never see a partial record and an existing record is never
overwritten.
"""

import json
import os
import stat
import tempfile
from typing import Iterator
from urllib.parse import quote, unquote

from luksctl.exceptions import (
    AlreadyMounted,
    InvalidInput,
    RecordNotFound,
    StoreUnavailable,
)
from luksctl.models import MountRecord
from luksctl.utils.logger import get_logger

LOG = get_logger(__name__)


class StateStore:
    """Persists MountRecords keyed by mount point"""

    DEFAULT_STATE_DIR = '/run/luksctl'
    STATE_DIR_MODE = 0o700
    STATE_FILE_MODE = 0o600
    RECORD_SUFFIX = '.json'
    TEMP_PREFIX = '.tmp-'
    MAX_RECORD_SIZE = 4096
    MAX_NAME_LEN = 255

    def __init__(self, root: str = DEFAULT_STATE_DIR):
        self.root = root

    def _record_name(self, mount_point: str) -> str:
        name = quote(mount_point, safe='') + self.RECORD_SUFFIX
        if len(name.encode('utf-8')) > self.MAX_NAME_LEN:
            raise InvalidInput('errors.mount_point_too_long', path=mount_point)
        return name

    def _record_path(self, mount_point: str) -> str:
        return os.path.join(self.root, self._record_name(mount_point))

    def _ensure_root(self, create: bool = False):
        if create and not os.path.isdir(self.root):
            try:
                os.makedirs(self.root, mode=self.STATE_DIR_MODE, exist_ok=True)
                os.chmod(self.root, self.STATE_DIR_MODE)
                LOG.info(f"Created state directory {self.root}")
            except OSError as e:
                LOG.error(f"Failed to create state directory {self.root}: {e}")
                raise StoreUnavailable(path=self.root, error=str(e)) from e

        if not os.path.isdir(self.root):
            raise StoreUnavailable(path=self.root, error='missing')

    def ensure_available(self):
        """
        Make sure records can be written, creating the directory if needed.

        Raises:
            StoreUnavailable if the directory cannot be created or written
        """
        self._ensure_root(create=True)
        if not os.access(self.root, os.W_OK | os.X_OK):
            raise StoreUnavailable(path=self.root, error='not writable')

    def _read(self, path: str) -> MountRecord:
        try:
            info = os.lstat(path)
        except FileNotFoundError:
            raise RecordNotFound(path=path)
        except OSError as e:
            raise StoreUnavailable(path=self.root, error=str(e)) from e

        if not stat.S_ISREG(info.st_mode):
            LOG.warning(f"Ignoring state entry that is not a regular file: {path}")
            raise RecordNotFound(path=path)
        if info.st_size > self.MAX_RECORD_SIZE:
            LOG.warning(f"Ignoring oversized state file: {path}")
            raise RecordNotFound(path=path)

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            raise RecordNotFound(path=path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            LOG.warning(f"Ignoring corrupt state file {path}: {e}")
            raise RecordNotFound(path=path)
        except OSError as e:
            raise StoreUnavailable(path=self.root, error=str(e)) from e

        try:
            return MountRecord.from_dict(data)
        except (KeyError, TypeError) as e:
            LOG.warning(f"Ignoring malformed state file {path}: {e}")
            raise RecordNotFound(path=path)

    def put(self, record: MountRecord):
        """
        Store a record.

        Raises:
            AlreadyMounted if a record exists for the mount point
            StoreUnavailable if the directory cannot be used
        """
        final_path = self._record_path(record.mount_point)
        self._ensure_root(create=True)

        temp_path = None
        try:
            fd, temp_path = tempfile.mkstemp(prefix=self.TEMP_PREFIX, dir=self.root)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                os.fchmod(f.fileno(), self.STATE_FILE_MODE)
                json.dump(record.to_dict(), f, indent=2)
                f.write('\n')
                f.flush()
                os.fsync(f.fileno())

            # link() refuses to replace an existing name
            os.link(temp_path, final_path)
        except FileExistsError:
            LOG.warning(f"Record already exists for {record.mount_point}")
            try:
                device = self._read(final_path).source_device
            except (RecordNotFound, StoreUnavailable):
                device = record.source_device
            raise AlreadyMounted(path=record.mount_point, device=device)
        except OSError as e:
            LOG.error(f"Failed to write state for {record.mount_point}: {e}")
            raise StoreUnavailable(path=self.root, error=str(e)) from e
        finally:
            if temp_path is not None:
                try:
                    os.unlink(temp_path)
                except FileNotFoundError:
                    pass
                except OSError as e:
                    LOG.warning(f"Failed to remove temp file {temp_path}: {e}")

        LOG.info(f"Stored record for {record.mount_point} ({record.mapper_id})")

    def get(self, mount_point: str) -> MountRecord:
        """
        Look up the record of a mount point.

        Raises:
            RecordNotFound if there is no usable record
            StoreUnavailable if the directory cannot be read
        """
        path = self._record_path(mount_point)
        self._ensure_root()
        record = self._read(path)
        if record.mount_point != mount_point:
            LOG.warning(f"State file {path} belongs to {record.mount_point}, ignoring")
            raise RecordNotFound(path=mount_point)
        return record

    def remove(self, mount_point: str):
        """Delete a record; a missing record is not an error"""
        path = self._record_path(mount_point)
        try:
            os.unlink(path)
            LOG.info(f"Removed record for {mount_point}")
        except FileNotFoundError:
            LOG.debug(f"No record to remove for {mount_point}")
        except NotADirectoryError:
            LOG.debug(f"No state directory, nothing to remove for {mount_point}")
        except OSError as e:
            LOG.error(f"Failed to remove record for {mount_point}: {e}")
            raise StoreUnavailable(path=self.root, error=str(e)) from e

    def list(self) -> Iterator[MountRecord]:
        """
        Yield every stored record.

        Each call rescans the directory. Unreadable entries are skipped.
        """
        self._ensure_root()
        try:
            names = sorted(os.listdir(self.root))
        except OSError as e:
            raise StoreUnavailable(path=self.root, error=str(e)) from e

        for name in names:
            if name.startswith(self.TEMP_PREFIX) or not name.endswith(self.RECORD_SUFFIX):
                continue
            try:
                yield self._read(os.path.join(self.root, name))
            except RecordNotFound:
                LOG.debug(f"Skipping unusable state entry {unquote(name)}")
                continue

    def __contains__(self, mount_point: str) -> bool:
        try:
            self.get(mount_point)
        except (RecordNotFound, StoreUnavailable):
            return False
        return True
