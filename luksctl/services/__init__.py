"""Services package"""

from luksctl.services.identifier import generate_mapper_id
from luksctl.services.mount_service import MountService
from luksctl.services.resolver import MountTableResolver
from luksctl.services.state_store import StateStore

__all__ = ['MountService', 'MountTableResolver', 'StateStore', 'generate_mapper_id']
