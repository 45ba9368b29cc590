"""
Filesystem module: buffered write sessions over an object store.

Components (leaves first):
- EntryState: per-URI write session state machine
- WriteCache: per-URI in-memory accumulators
- UploadPool: shared execution substrate
- PartUploader: concurrent part uploads tracked by part number
- FlushCoordinator: single PUT vs multipart completion
- RangeReader: ranged GETs of finalized objects
- S3FileSystem: adapter facade
"""

from objectfs.fs.state import EntryState, EntryTransition, VALID_TRANSITIONS
from objectfs.fs.cache import (
    SinglePut,
    MultipartSession,
    WriteCacheEntry,
    WriteCache,
)
from objectfs.fs.pool import UploadPool
from objectfs.fs.uploader import PartUploader
from objectfs.fs.assembler import FlushCoordinator
from objectfs.fs.reader import RangeReader
from objectfs.fs.filesystem import S3FileSystem

__all__ = [
    "EntryState",
    "EntryTransition",
    "VALID_TRANSITIONS",
    "SinglePut",
    "MultipartSession",
    "WriteCacheEntry",
    "WriteCache",
    "UploadPool",
    "PartUploader",
    "FlushCoordinator",
    "RangeReader",
    "S3FileSystem",
]
