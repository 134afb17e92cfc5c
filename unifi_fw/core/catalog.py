# unifi_fw/core/catalog.py
"""
Reader for the controller's firmware catalog (firmware.json):

    { "<controller version>": { "release": { "<device code>":
        {"version": ..., "url": ..., "md5sum": ...} } } }

The document is decoded into a Catalog once; shape errors fail fast with
CatalogError instead of surfacing later as blank lookups.
"""
from __future__ import annotations
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import CatalogError, VersionDetectionError
from .models import Catalog, ReleaseRecord
from .utils import version_key

logger = logging.getLogger(__name__)

NUMERIC_VERSION = re.compile(r"^\d+\.\d+")
CHECKSUM_KEYS = ("md5sum", "checksum", "md5")

def _text(where: str, rec: Dict[str, Any], key: str) -> str:
    v = rec.get(key)
    if v is None:
        return ""
    if not isinstance(v, str):
        raise CatalogError(f"{where}.{key}: expected a string, got {type(v).__name__}")
    return v.strip()

def _record(where: str, raw: Any) -> ReleaseRecord:
    if not isinstance(raw, dict):
        raise CatalogError(f"{where}: expected an object")
    checksum = ""
    for k in CHECKSUM_KEYS:
        checksum = _text(where, raw, k)
        if checksum: break
    return ReleaseRecord(
        version=_text(where, raw, "version"),
        url=_text(where, raw, "url"),
        checksum=checksum,
    )

def parse_catalog(data: Any) -> Catalog:
    if not isinstance(data, dict):
        raise CatalogError("catalog: top level must be an object")
    releases: Dict[str, Dict[str, ReleaseRecord]] = {}
    for ctrl, body in data.items():
        if not isinstance(body, dict):
            raise CatalogError(f"{ctrl}: expected an object")
        rel = body.get("release", {})
        if not isinstance(rel, dict):
            raise CatalogError(f"{ctrl}.release: expected an object")
        releases[ctrl] = {code: _record(f"{ctrl}.release.{code}", raw) for code, raw in rel.items()}
    return Catalog(releases)

def load_catalog(path: Path) -> Catalog:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogError(f"catalog not readable: {path} ({e})") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CatalogError(f"catalog is not valid JSON: {path} ({e})") from e
    return parse_catalog(data)

def lookup(catalog: Catalog, controller_version: str, device_code: str) -> Optional[ReleaseRecord]:
    rec = catalog.release(controller_version).get(device_code)
    if rec is None or not rec.version or not rec.url:
        return None
    return rec

def latest_version(catalog: Catalog) -> Optional[str]:
    keys = [k for k in catalog.controller_versions() if NUMERIC_VERSION.match(k)]
    if not keys:
        return None
    return max(keys, key=lambda k: (version_key(k), k))

def detect_controller_version(catalog: Catalog) -> str:
    found = latest_version(catalog)
    if not found:
        raise VersionDetectionError("cannot auto-detect controller version: no numeric version key in catalog")
    logger.info("Controller version auto-detected as %s", found)
    return found
