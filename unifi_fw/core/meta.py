# unifi_fw/core/meta.py
"""
firmware_meta.json: the controller's list of cached firmware files.

    {"cached_firmwares": [{"md5", "version", "size", "path", "devices"}, ...]}

Writes are read-modify-write with no locking; one running instance is
assumed to own the cache directory. Every mutation first copies the current
document to firmware_meta.json.bak.<YYYYMMDD-HHMMSS>.
"""
from __future__ import annotations
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import IndexCorruptError
from .models import CacheEntry
from .ownership import FILE_MODE, Ownership
from .utils import timestamp

logger = logging.getLogger(__name__)

META_NAME = "firmware_meta.json"
ENTRIES_KEY = "cached_firmwares"

class MetadataIndex:
    def __init__(self, cache_root: Path, ownership: Optional[Ownership] = None):
        self.cache_root = cache_root
        self.ownership = ownership or Ownership()
        self.path = cache_root / META_NAME

    def ensure_initialized(self) -> None:
        self.ownership.ensure_dir(self.cache_root)
        if not self.path.exists():
            self._write({ENTRIES_KEY: []})
            logger.info("Created empty index %s", self.path)

    # ---- read ----------------------------------------------------------------
    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {ENTRIES_KEY: []}
        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise IndexCorruptError(f"{self.path} is not valid JSON ({e}); restore it from a .bak.* copy") from e
        if not isinstance(doc, dict) or not isinstance(doc.get(ENTRIES_KEY, []), list):
            raise IndexCorruptError(f"{self.path}: '{ENTRIES_KEY}' must be a list inside an object")
        doc.setdefault(ENTRIES_KEY, [])
        return doc

    def entries(self) -> List[CacheEntry]:
        return [CacheEntry.from_json(e) for e in self._read()[ENTRIES_KEY] if isinstance(e, dict)]

    # ---- write ---------------------------------------------------------------
    def _write(self, doc: Dict[str, Any]) -> None:
        self.ownership.write_text(self.path, json.dumps(doc, indent=2, ensure_ascii=False) + "\n", FILE_MODE)

    def backup(self) -> Path:
        bak = self.path.with_name(f"{self.path.name}.bak.{timestamp()}")
        self.ownership.install(self.path, bak, FILE_MODE)
        logger.info("Backup: %s", bak)
        return bak

    def upsert(self, entry: CacheEntry) -> None:
        """Replace whatever entry has entry.path, keeping everything else in order."""
        self.ensure_initialized()
        doc = self._read()
        self.backup()

        # others' fields (unknown keys included) pass through untouched
        doc[ENTRIES_KEY] = [e for e in doc[ENTRIES_KEY]
                            if not (isinstance(e, dict) and e.get("path") == entry.path)]
        self._write(doc)

        doc[ENTRIES_KEY].append(entry.to_json())
        self._write(doc)
        logger.debug("Indexed %s (%s, %d bytes)", entry.path, entry.checksum, entry.size)
