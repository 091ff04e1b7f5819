from .api import create_loader as create_loader
from .cache import CacheEntry as CacheEntry
from .cache import CacheStore as CacheStore
from .cache import InMemoryCacheStore as InMemoryCacheStore
from .config import ChunkPolicy as ChunkPolicy
from .config import LoaderConfig as LoaderConfig
from .exceptions import ContractViolation as ContractViolation
from .exceptions import InvalidKeyError as InvalidKeyError
from .exceptions import ResultLengthError as ResultLengthError
from .exceptions import SuperLoaderError as SuperLoaderError
from .exceptions import WindowDispatchError as WindowDispatchError
from .loader import SuperLoader as SuperLoader
from .logging import setup_logging as setup_logging
from .outcome import Failure as Failure
from .outcome import Success as Success

__all__ = [
    "create_loader",
    "SuperLoader",
    "LoaderConfig",
    "ChunkPolicy",
    "CacheEntry",
    "CacheStore",
    "InMemoryCacheStore",
    "Success",
    "Failure",
    "SuperLoaderError",
    "ContractViolation",
    "InvalidKeyError",
    "ResultLengthError",
    "WindowDispatchError",
    "setup_logging",
]
