# unifi_fw/core/__init__.py
from .catalog import load_catalog, lookup, latest_version, detect_controller_version
from .config import Settings, load_settings
from .download import download_with_resume, make_fetcher
from .errors import FirmwareCacheError, ItemError
from .identity import resolve
from .meta import MetadataIndex
from .ownership import Ownership
from .pipeline import RunRequest, run
from .placement import PlacementEngine
from .utils import human_size, md5_file, url_leaf_name

__all__ = [
    "load_catalog", "lookup", "latest_version", "detect_controller_version",
    "Settings", "load_settings",
    "download_with_resume", "make_fetcher",
    "FirmwareCacheError", "ItemError",
    "resolve",
    "MetadataIndex",
    "Ownership",
    "RunRequest", "run",
    "PlacementEngine",
    "human_size", "md5_file", "url_leaf_name",
    "setup_logging",
]

# ---- logging for the package ----
import logging

def setup_logging() -> None:
    # everything INFO and up goes to stderr; there is no quiet/verbose switch
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s %(name)s: %(message)s"
    )
    # quiet down noisy deps
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
