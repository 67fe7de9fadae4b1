from strata_core.storage.object_store import RecordStore, atomic_write_bytes
from strata_core.storage.paths import StorePaths, join_uri

__all__ = ["RecordStore", "StorePaths", "atomic_write_bytes", "join_uri"]
