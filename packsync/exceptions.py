"""
Custom exception hierarchy for packsync.

Fatal conditions (bad source reference, name collisions, an archive with no
manifest) surface as these exceptions. Per-file problems are collected as
explicit failure records by the scanner and the unpack writer instead.
"""


class PackSyncError(Exception):
    """Base exception for all packsync errors."""
    pass


class SourceResolutionError(PackSyncError):
    """Raised when a local path or remote reference cannot be turned into a directory."""
    pass


class ManifestFormatError(PackSyncError):
    """Raised when a manifest or registry document is structurally invalid."""
    pass


class ManifestCollisionError(PackSyncError):
    """Raised when two packed files would share one archive entry name."""
    pass


class ManifestMissingError(PackSyncError):
    """Raised when an archive being unpacked carries no manifest."""
    pass


class ArchiveError(PackSyncError):
    """Raised when an archive cannot be read or written."""
    pass


class FileHashError(PackSyncError):
    """Raised when file hashing fails."""
    pass


class FileOperationError(PackSyncError):
    """Raised when a destination file cannot be written."""
    pass


class PackIncompleteError(PackSyncError):
    """Raised in strict mode when files were dropped from a pack."""
    pass
