# unifi_fw/core/errors.py
"""
Exception taxonomy.

Fatal errors abort the run (cli maps them to exit code 1). ItemError
subclasses only abort the current source; the pipeline catches them at the
batch loop and moves on.
"""
from __future__ import annotations


class FirmwareCacheError(Exception):
    """Root of everything this package raises on purpose."""


# ---- fatal -------------------------------------------------------------------
class ConfigError(FirmwareCacheError):
    pass


class CatalogError(FirmwareCacheError):
    pass


class VersionDetectionError(CatalogError):
    pass


class PrivilegeError(FirmwareCacheError):
    pass


class MissingToolError(FirmwareCacheError):
    pass


class IndexCorruptError(FirmwareCacheError):
    pass


# ---- per item ----------------------------------------------------------------
class ItemError(FirmwareCacheError):
    """Recoverable: skip this source, continue with the batch."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.reason = message


class UnresolvedIdentity(ItemError):
    pass


class EmptySource(ItemError):
    pass


class RecordAbsent(ItemError):
    pass


class FetchError(ItemError):
    pass


class UnsafeMirrorPath(ItemError):
    pass


class UnsafeCachePath(ItemError):
    pass
