# unifi_fw/core/identity.py
"""
Works out (device code, firmware version) for a firmware source.

Priority, highest first:
  1. explicit overrides (DEV_FAMILY / VERSION), per field
  2. download URL shaped like .../firmware/<CODE>/<VERSION>/<file>
  3. a known device signature in the file name (-UAP6MP- etc.)
  4. the first N.N.N or N.N.N.N found in the file name
"""
from __future__ import annotations
import os
import re
from typing import Optional, Tuple

from .errors import UnresolvedIdentity
from .models import Identity
from .utils import is_url, url_leaf_name, url_path

URL_PATTERN = re.compile(r"/firmware/([^/]+)/([^/]+)/[^/]+$")
VERSION_PATTERN = re.compile(r"(\d+\.\d+\.\d+(?:\.\d+)?)")

# Checked in order; first hit wins.
SIGNATURES: Tuple[Tuple[str, str], ...] = (
    ("-UAP6MP-", "UAP6MP"),
    ("-UAPL6-",  "UAPL6"),
    ("-UAL6-",   "UAL6"),
    ("-U7PG2-",  "U7PG2"),
)

def source_filename(source: str) -> str:
    if is_url(source):
        return url_leaf_name(source)
    return os.path.basename(source.rstrip("/\\"))

def infer(source: str) -> Tuple[str, str]:
    """Best guess from the source alone; either field may come back empty."""
    code, ver = "", ""
    if is_url(source):
        m = URL_PATTERN.search(url_path(source))
        if m:
            code, ver = m.group(1), m.group(2)

    fname = source_filename(source)
    if not code:
        for token, family in SIGNATURES:
            if token in fname:
                code = family
                break
    if not ver:
        m = VERSION_PATTERN.search(fname)
        if m:
            ver = m.group(1)
    return code, ver

def resolve(source: str, device_code_override: str = "", version_override: str = "") -> Optional[Identity]:
    code, ver = infer(source)
    code = device_code_override or code
    ver = version_override or ver
    if not code or not ver:
        return None
    return Identity(code, ver)

def resolve_or_raise(source: str, device_code_override: str = "", version_override: str = "") -> Identity:
    ident = resolve(source, device_code_override, version_override)
    if ident is None:
        code, ver = infer(source)
        raise UnresolvedIdentity(
            source,
            f"cannot determine device code/version (got code={code or '?'} version={ver or '?'}); "
            "set DEV_FAMILY and VERSION (--dev-family / --version)",
        )
    return ident
