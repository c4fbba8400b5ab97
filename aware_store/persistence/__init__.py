"""
Persistence package for aware-store.

Table provisioning plus the write and read paths. Every component takes the
`PoolManager` handle it leases connections from at construction.
"""

from aware_store.persistence.reader import RecordReader
from aware_store.persistence.schema import SchemaProvisioner
from aware_store.persistence.writer import RecordWriter

__all__ = [
    "RecordReader",
    "RecordWriter",
    "SchemaProvisioner",
]
