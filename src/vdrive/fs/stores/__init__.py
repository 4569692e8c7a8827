"""Object store backends.

``S3ObjectStore`` needs the ``s3`` extra and is imported from
``vdrive.fs.stores.s3`` directly.
"""

from vdrive.fs.stores.local import LocalObjectStore
from vdrive.fs.stores.memory import MemoryObjectStore

__all__ = [
    "LocalObjectStore",
    "MemoryObjectStore",
]
