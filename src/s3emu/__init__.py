"""s3emu - local filesystem object-storage emulator."""

from s3emu.config import StoreConfig, load_store_config
from s3emu.storage.engine import StorageEngine

__version__ = "0.1.0"

__all__ = ["StorageEngine", "StoreConfig", "load_store_config", "__version__"]
