# unifi_fw/core/placement.py
"""
Puts firmware files into the controller cache as
<cache-root>/<device code>/<version>/<file name> and records each one in
firmware_meta.json. Re-placing the same triple replaces the index entry.
"""
from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional, Tuple

import requests

from .download import Fetcher
from .errors import EmptySource, FetchError, UnsafeCachePath
from .identity import resolve_or_raise, source_filename
from .meta import MetadataIndex
from .models import CacheEntry, Identity, ReleaseRecord
from .ownership import FILE_MODE, Ownership
from .utils import checksum_matches, file_size, md5_file, non_empty, url_leaf_name

logger = logging.getLogger(__name__)

class PlacementEngine:
    def __init__(
        self,
        cache_root: Path,
        ownership: Ownership,
        index: MetadataIndex,
        fetch: Fetcher,
        device_code_override: str = "",
        version_override: str = "",
    ):
        self.cache_root = cache_root
        self.ownership = ownership
        self.index = index
        self.fetch = fetch
        self.device_code_override = device_code_override
        self.version_override = version_override

    def target_for(self, code: str, version: str, filename: str) -> Tuple[Path, str]:
        for part in (code, version, filename):
            if part in ("", ".", "..") or "/" in part or "\\" in part:
                raise UnsafeCachePath(f"{code}/{version}/{filename}", f"refusing cache path segment {part!r}")
        rel = f"{code}/{version}/{filename}"
        return self.cache_root / code / version / filename, rel

    def identify(self, source: str) -> Identity:
        return resolve_or_raise(source, self.device_code_override, self.version_override)

    def _record(self, code: str, version: str, target: Path, rel: str) -> CacheEntry:
        entry = CacheEntry(
            checksum=md5_file(target),
            version=version,
            size=file_size(target),
            path=rel,
            devices=[code],
        )
        self.index.upsert(entry)
        return entry

    def _fetch(self, url: str, target: Path) -> None:
        try:
            self.fetch(url, target)
        except requests.RequestException as e:
            raise FetchError(url, f"download failed: {e}") from e
        if not non_empty(target):
            raise FetchError(url, f"download produced no data at {target}")
        self.ownership.apply(target, FILE_MODE)

    # ---- entry points --------------------------------------------------------
    def place(self, code: str, version: str, source_file: Path, filename: str) -> CacheEntry:
        if not non_empty(source_file):
            raise EmptySource(str(source_file), "file missing or empty")
        target, rel = self.target_for(code, version, filename)
        self.ownership.ensure_dir(target.parent)
        self.ownership.install(source_file, target, FILE_MODE)
        return self._record(code, version, target, rel)

    def place_from_file(self, path: Path) -> CacheEntry:
        ident = self.identify(str(path))
        logger.info("[FILE] %s %s <- %s", ident.device_code, ident.version, path)
        return self.place(ident.device_code, ident.version, path, source_filename(str(path)))

    def place_with_source_url(self, url: str, path: Path) -> CacheEntry:
        """Identity and file name from url, bytes from the local file."""
        if not non_empty(path):
            raise EmptySource(str(path), f"file missing or empty (paired with {url})")
        ident = self.identify(url)
        logger.info("[SRC-URL] %s %s <- %s (URL: %s)", ident.device_code, ident.version, path, url)
        return self.place(ident.device_code, ident.version, path, url_leaf_name(url))

    def place_from_url(self, url: str, identity: Optional[Identity] = None) -> CacheEntry:
        ident = identity or self.identify(url)
        target, rel = self.target_for(ident.device_code, ident.version, url_leaf_name(url))
        self.ownership.ensure_dir(target.parent)
        logger.info("[URL] %s %s -> %s", ident.device_code, ident.version, target)
        self._fetch(url, target)
        return self._record(ident.device_code, ident.version, target, rel)

    def place_from_catalog_record(self, code: str, record: ReleaseRecord) -> CacheEntry:
        target, rel = self.target_for(code, record.version, url_leaf_name(record.url))
        self.ownership.ensure_dir(target.parent)
        logger.info("[CATALOG] %s %s -> %s", code, record.version, target)
        if non_empty(target):
            # might have been copied in by hand; fix owner/mode anyway
            self.ownership.apply(target, FILE_MODE)
        else:
            self._fetch(record.url, target)

        if record.checksum:
            ok, actual = checksum_matches(target, record.checksum)
            if not ok:
                logger.warning("Checksum mismatch for %s (catalog=%s, file=%s)", target, record.checksum, actual)
        return self._record(code, record.version, target, rel)
