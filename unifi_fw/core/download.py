# unifi_fw/core/download.py
from __future__ import annotations
from pathlib import Path
from typing import Callable, Optional
import logging

import requests

from .http import SESSION
from .utils import rewrite_host

logger = logging.getLogger(__name__)

ProgressCB = Callable[[str, int, int], None]  # (name, downloaded_bytes, total_bytes)
Fetcher = Callable[[str, Path], None]         # fetch(url, destination)

TIMEOUT = 30

def download_with_resume(
    url: str,
    out_path: Path,
    session: Optional[requests.Session] = None,
    on_progress: Optional[ProgressCB] = None,
    timeout: int = TIMEOUT,
    chunk_size: int = 128 * 1024,
) -> None:
    """
    Core downloader: resumable, no UI dependencies.
    - Writes to <file>.part and renames at the end
    - A leftover .part from an interrupted run is continued with a Range request
    - Retries/backoff come from the session's urllib3 Retry
    """
    s = session or SESSION
    tmp = out_path.with_name(out_path.name + ".part")
    resume = tmp.stat().st_size if tmp.exists() else 0
    headers = {"Range": f"bytes={resume}-"} if resume > 0 else {}

    logger.debug("Starting download %s -> %s (resume=%d)", url, out_path, resume)

    with s.get(url, stream=True, headers=headers, timeout=timeout) as r:
        if r.status_code == 416 and resume > 0:
            # .part already holds the whole file
            tmp.replace(out_path)
            return
        r.raise_for_status()
        if resume > 0 and r.status_code != 206:
            # server ignored Range: start over
            resume = 0
        total = int(r.headers.get("Content-Length", "0") or 0) + resume

        mode = "ab" if resume > 0 else "wb"
        downloaded = resume
        with open(tmp, mode) as f:
            for chunk in r.iter_content(chunk_size=chunk_size):
                if not chunk:
                    continue
                f.write(chunk)
                downloaded += len(chunk)
                if on_progress:
                    on_progress(out_path.name, downloaded, total)

    tmp.replace(out_path)
    logger.debug("Download finished: %s (%d bytes)", out_path, out_path.stat().st_size)

def make_fetcher(
    host: str = "",
    session: Optional[requests.Session] = None,
    on_progress: Optional[ProgressCB] = None,
    timeout: int = TIMEOUT,
) -> Fetcher:
    """fetch(url, dest) with the configured host rewrite applied before dispatch."""
    def fetch(url: str, dest: Path) -> None:
        final = rewrite_host(url, host)
        if final != url:
            logger.info("Rewrote %s -> %s", url, final)
        download_with_resume(final, dest, session=session, on_progress=on_progress, timeout=timeout)
    return fetch
