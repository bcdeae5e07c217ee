from .backup import BackupManager
from .config import BackupConfig

__version__ = "0.1.0"
__author__ = "Classora Team"

__all__ = ["BackupManager", "BackupConfig", "__version__"]
