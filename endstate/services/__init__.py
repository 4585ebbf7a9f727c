"""Service layer for restore, revert and install operations."""

from endstate.services.install import InstallService
from endstate.services.journal import JournalStore
from endstate.services.manifest import Manifest, load_manifest
from endstate.services.restore import RestoreService
from endstate.services.revert import RevertService

__all__ = [
    'InstallService',
    'JournalStore',
    'Manifest',
    'RestoreService',
    'RevertService',
    'load_manifest',
]
