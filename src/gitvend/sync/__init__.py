"""Copy vendored content into the workspace and rebuild lock entries."""

from gitvend.sync.service import LICENSE_FILENAMES, RefSync, SyncError, SyncResult, SyncService

__all__ = [
    "LICENSE_FILENAMES",
    "RefSync",
    "SyncError",
    "SyncResult",
    "SyncService",
]
