from __future__ import annotations
import hashlib, math, re, time, urllib.parse
from pathlib import Path
from typing import Optional, Tuple

URL_RE = re.compile(r"^https?://", re.IGNORECASE)

def human_size(n: Optional[int]) -> str:
    if not n or n <= 0: return "?"
    units = ["B","KB","MB","GB","TB"]
    i = min(int(math.floor(math.log(n, 1024))), len(units) - 1)
    return f"{n/(1024**i):.2f} {units[i]}"

def is_url(s: str) -> bool:
    return bool(URL_RE.match(s or ""))

def url_path(u: str) -> str:
    """Path component of a URL (scheme, host, query and fragment dropped)."""
    return urllib.parse.urlsplit(u or "").path

def url_leaf_name(u: str) -> str:
    return urllib.parse.unquote(url_path(u).split("/")[-1])

def rewrite_host(u: str, host: str) -> str:
    """Swap the authority of an http(s) URL; scheme, path and query stay."""
    if not host or not is_url(u):
        return u
    parts = urllib.parse.urlsplit(u)
    return urllib.parse.urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))

def hash_algo_for(expected: str) -> str:
    n = len(expected or "")
    return "sha256" if n == 64 else ("sha1" if n == 40 else "md5")

def file_digest(path: Path, algo: str = "md5") -> str:
    h = hashlib.new(algo)
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024*1024), b""):
            h.update(chunk)
    return h.hexdigest()

def md5_file(path: Path) -> str:
    return file_digest(path, "md5")

def file_size(path: Path) -> int:
    return path.stat().st_size

def non_empty(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > 0

def checksum_matches(path: Path, expected: str) -> Tuple[bool, str]:
    """(match, actual digest); the algorithm is picked by the digest length."""
    actual = file_digest(path, hash_algo_for(expected))
    return actual.lower() == expected.strip().lower(), actual

def timestamp() -> str:
    return time.strftime("%Y%m%d-%H%M%S")

def version_key(v: str) -> Tuple[int, ...]:
    # "7.10.0" > "7.9.5": compare digit runs numerically, like sort -V
    return tuple(int(x) for x in re.findall(r"\d+", v or ""))
