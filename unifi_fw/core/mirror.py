# unifi_fw/core/mirror.py
"""
Flat mirror of every file a catalog release references, laid out like the
download host (https://host/unifi/firmware/X/1.2.3/f.bin -> <root>/unifi/firmware/X/1.2.3/f.bin).
No ownership, no index, no privileges needed.
"""
from __future__ import annotations
import logging
from pathlib import Path, PurePosixPath

import requests

from .download import Fetcher
from .errors import UnsafeMirrorPath
from .models import FAILED, FETCHED, UP_TO_DATE, Catalog, MirrorItem, MirrorReport
from .utils import checksum_matches, non_empty, url_path

logger = logging.getLogger(__name__)

def mirror_path(url: str) -> str:
    rel = url_path(url).lstrip("/")
    parts = PurePosixPath(rel).parts
    if not parts or any(p in ("..", ".") for p in parts):
        raise UnsafeMirrorPath(url, "URL path cannot be mirrored")
    return rel

def mirror(catalog: Catalog, controller_version: str, mirror_root: Path, fetch: Fetcher) -> MirrorReport:
    report = MirrorReport(controller_version=controller_version, root=mirror_root)
    mirror_root.mkdir(parents=True, exist_ok=True)
    logger.info("Mirroring all firmware for %s into %s", controller_version, mirror_root)

    for code, rec in catalog.release(controller_version).items():
        if not rec.url:
            logger.warning("[MIRROR] %s: no url in catalog, skipped", code)
            continue
        try:
            rel = mirror_path(rec.url)
        except UnsafeMirrorPath as e:
            logger.warning("[MIRROR] %s", e)
            report.items.append(MirrorItem(code, rec.version, "", FAILED, error=e.reason))
            continue

        dst = mirror_root / rel
        dst.parent.mkdir(parents=True, exist_ok=True)
        item = MirrorItem(code, rec.version, rel, UP_TO_DATE)
        if non_empty(dst):
            logger.info("[MIRROR] Already present: %s, skipped", rel)
        else:
            logger.info("[MIRROR] Fetching %s %s -> %s", code, rec.version, rel)
            try:
                fetch(rec.url, dst)
            except requests.RequestException as e:
                logger.warning("[MIRROR] %s: download failed: %s", rec.url, e)
                item.status, item.error = FAILED, str(e)
                report.items.append(item)
                continue
            item.status = FETCHED

        if rec.checksum and non_empty(dst):
            ok, actual = checksum_matches(dst, rec.checksum)
            item.checksum_ok = ok
            if not ok:
                logger.warning("[MIRROR] Checksum mismatch for %s (catalog=%s, file=%s)", rel, rec.checksum, actual)
        report.items.append(item)

    logger.info("Mirror complete: %s (%d fetched, %d up to date, %d failed)", mirror_root,
                report.count(FETCHED), report.count(UP_TO_DATE), report.count(FAILED))
    return report
