import json
from pathlib import Path

import pytest
import requests

from unifi_fw.core.config import Settings
from unifi_fw.core.ownership import Ownership


class FakeFetch:
    """Stands in for the HTTP downloader: url -> bytes, records every call."""

    def __init__(self, payloads=None):
        self.payloads = dict(payloads or {})
        self.calls = []

    def __call__(self, url, dest):
        self.calls.append((url, Path(dest)))
        if url not in self.payloads:
            raise requests.HTTPError(f"404 for {url}")
        Path(dest).write_bytes(self.payloads[url])


@pytest.fixture
def fake_fetch():
    return FakeFetch


@pytest.fixture
def ownership():
    return Ownership(enforce=False)


@pytest.fixture
def write_catalog(tmp_path):
    def _write(doc, name="firmware.json"):
        p = tmp_path / name
        p.write_text(json.dumps(doc), encoding="utf-8")
        return p

    return _write


@pytest.fixture
def settings(tmp_path):
    return Settings(
        cache_root=tmp_path / "cache",
        catalog_path=tmp_path / "firmware.json",
        mirror_root=tmp_path / "mirror",
        restart_after=False,
    )
