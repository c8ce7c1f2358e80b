import logging

from .config import MODE_AUTO, MODE_MEMORY, MODE_MMAP
from .decoder import Decoder, NativeBridge, TaggedBridge, to_native
from .errors import (ClosedDatabaseError, InvalidDatabaseError,
                     LookupFailedError, MMDBError)
from .metadata import Metadata
from .reader import Reader, open_database
from .types import Uint16, Uint32, Uint64, Uint128, Int32, Float, Double

__version__ = '0.1.0'

logging.getLogger(__name__).addHandler(logging.NullHandler())
