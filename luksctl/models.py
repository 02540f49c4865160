"""
Data models for luksctl mount records.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, NamedTuple, Optional


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds')


@dataclass(frozen=True)
class MountOptions:
    """Effective options of a mount"""

    read_only: bool = False
    fs_type: Optional[str] = None
    extra_options: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'MountOptions':
        data = data or {}
        return cls(
            read_only=bool(data.get('read_only', False)),
            fs_type=data.get('fs_type'),
            extra_options=data.get('extra_options'),
        )


@dataclass(frozen=True)
class MountRecord:
    """
    One active encrypted-volume mount created by luksctl.

    Keyed by mount_point in the state store. Created only after unlock and
    mount both succeeded, removed right after unmount and lock.
    """

    mount_point: str
    mapper_id: str
    source_device: str
    mount_options: MountOptions = field(default_factory=MountOptions)
    created_at: str = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mount_point': self.mount_point,
            'mapper_id': self.mapper_id,
            'source_device': self.source_device,
            'mount_options': self.mount_options.to_dict(),
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MountRecord':
        """
        Build a record from its serialized form.

        Raises:
            KeyError or TypeError when required fields are missing
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")
        return cls(
            mount_point=data['mount_point'],
            mapper_id=data['mapper_id'],
            source_device=data['source_device'],
            mount_options=MountOptions.from_dict(data.get('mount_options')),
            created_at=data.get('created_at') or _utcnow(),
        )

    def __repr__(self):
        return (
            f"<MountRecord("
            f"mount_point='{self.mount_point}', "
            f"mapper_id='{self.mapper_id}', "
            f"source_device='{self.source_device}')>"
        )


class MountEntry(NamedTuple):
    """One line of the live system mount table"""

    device: str
    mount_point: str
    fs_type: str
