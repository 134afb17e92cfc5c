import hashlib
import logging

import pytest

from unifi_fw.core.errors import EmptySource, FetchError, UnresolvedIdentity, UnsafeCachePath
from unifi_fw.core.meta import MetadataIndex
from unifi_fw.core.models import ReleaseRecord
from unifi_fw.core.placement import PlacementEngine

PAYLOAD = b"firmware-bytes"
MD5 = hashlib.md5(PAYLOAD).hexdigest()


@pytest.fixture
def make_engine(tmp_path, ownership, fake_fetch):
    def _make(payloads=None, **overrides):
        root = tmp_path / "cache"
        index = MetadataIndex(root, ownership)
        fetch = fake_fetch(payloads)
        return PlacementEngine(root, ownership, index, fetch, **overrides), fetch
    return _make


@pytest.fixture
def blob(tmp_path):
    p = tmp_path / "BZ.bin"
    p.write_bytes(PAYLOAD)
    return p


def test_place_twice_is_idempotent(make_engine, blob):
    engine, _ = make_engine()
    engine.place("U7PG2", "6.7.31.15618", blob, "BZ.bin")
    entry = engine.place("U7PG2", "6.7.31.15618", blob, "BZ.bin")

    files = list((engine.cache_root / "U7PG2").rglob("*"))
    assert [p.name for p in files if p.is_file()] == ["BZ.bin"]
    entries = engine.index.entries()
    assert len(entries) == 1
    assert entries[0] == entry
    assert entry.path == "U7PG2/6.7.31.15618/BZ.bin"
    assert entry.checksum == MD5 and entry.size == len(PAYLOAD)
    assert entry.devices == ["U7PG2"]


def test_place_sets_modes(make_engine, blob):
    engine, _ = make_engine()
    engine.place("UAL6", "1.2.3", blob, "BZ.bin")
    target = engine.cache_root / "UAL6" / "1.2.3" / "BZ.bin"
    assert target.stat().st_mode & 0o777 == 0o644
    assert (engine.cache_root / "UAL6").stat().st_mode & 0o777 == 0o755


def test_empty_source_is_rejected(make_engine, tmp_path):
    engine, _ = make_engine()
    empty = tmp_path / "empty.bin"
    empty.write_bytes(b"")
    with pytest.raises(EmptySource):
        engine.place("UAL6", "1.2.3", empty, "empty.bin")
    with pytest.raises(EmptySource):
        engine.place("UAL6", "1.2.3", tmp_path / "missing.bin", "missing.bin")


def test_place_from_file_uses_filename_identity(make_engine, tmp_path):
    engine, _ = make_engine()
    src = tmp_path / "BZ-UAL6-6.6.77.bin"
    src.write_bytes(PAYLOAD)
    entry = engine.place_from_file(src)
    assert entry.path == "UAL6/6.6.77/BZ-UAL6-6.6.77.bin"


def test_place_from_file_unresolved(make_engine, tmp_path):
    engine, _ = make_engine()
    src = tmp_path / "update.bin"
    src.write_bytes(PAYLOAD)
    with pytest.raises(UnresolvedIdentity):
        engine.place_from_file(src)


def test_overrides_apply_to_files(make_engine, tmp_path):
    engine, _ = make_engine(device_code_override="UAP6MP", version_override="6.5.28")
    src = tmp_path / "update.bin"
    src.write_bytes(PAYLOAD)
    assert engine.place_from_file(src).path == "UAP6MP/6.5.28/update.bin"


def test_place_with_source_url_takes_name_from_url(make_engine, blob):
    engine, fetch = make_engine()
    url = "https://dl.ui.com/unifi/firmware/UAL6/6.7.31.15618/BZ.mt7621_6.7.31+15618.bin"
    entry = engine.place_with_source_url(url, blob)
    assert entry.path == "UAL6/6.7.31.15618/BZ.mt7621_6.7.31+15618.bin"
    assert fetch.calls == []


def test_place_from_url_fetches_into_cache(make_engine):
    url = "https://dl.example.com/unifi/firmware/UAL6/6.7.31.15618/BZ.bin"
    engine, fetch = make_engine({url: PAYLOAD})
    entry = engine.place_from_url(url)
    assert fetch.calls == [(url, engine.cache_root / "UAL6" / "6.7.31.15618" / "BZ.bin")]
    assert entry.checksum == MD5


def test_place_from_url_fetch_failure_is_item_error(make_engine):
    engine, _ = make_engine({})
    with pytest.raises(FetchError):
        engine.place_from_url("https://dl.example.com/unifi/firmware/UAL6/1.2.3/BZ.bin")
    assert engine.index.entries() == []


def test_catalog_record_existing_file_is_not_refetched(make_engine):
    url = "https://x/unifi/firmware/UAP6MP/6.7.31.15618/AA.bin"
    engine, fetch = make_engine({url: b"other"})
    target = engine.cache_root / "UAP6MP" / "6.7.31.15618" / "AA.bin"
    target.parent.mkdir(parents=True)
    target.write_bytes(PAYLOAD)
    target.chmod(0o600)

    entry = engine.place_from_catalog_record("UAP6MP", ReleaseRecord("6.7.31.15618", url, MD5))
    assert fetch.calls == []
    assert target.stat().st_mode & 0o777 == 0o644
    assert entry.checksum == MD5


def test_catalog_checksum_mismatch_only_warns(make_engine, caplog):
    url = "https://x/unifi/firmware/UAP6MP/6.7.31.15618/AA.bin"
    engine, _ = make_engine({url: PAYLOAD})
    caplog.set_level(logging.WARNING, logger="unifi_fw")
    entry = engine.place_from_catalog_record("UAP6MP", ReleaseRecord("6.7.31.15618", url, "abc123"))
    assert entry.path == "UAP6MP/6.7.31.15618/AA.bin"
    assert "catalog=abc123" in caplog.text and MD5 in caplog.text


def test_dot_segments_in_url_never_leave_the_cache(make_engine, tmp_path):
    url = "https://h/unifi/firmware/../../evil.bin"
    engine, fetch = make_engine({url: PAYLOAD})
    with pytest.raises(UnsafeCachePath):
        engine.place_from_url(url)
    assert fetch.calls == []
    assert not (tmp_path / "evil.bin").exists()
    assert engine.index.entries() == []


def test_catalog_version_with_traversal_is_refused(make_engine, tmp_path):
    url = "https://x/unifi/firmware/UAP6MP/1.0.0/AA.bin"
    engine, fetch = make_engine({url: PAYLOAD})
    with pytest.raises(UnsafeCachePath):
        engine.place_from_catalog_record("UAP6MP", ReleaseRecord("../../..", url, ""))
    assert fetch.calls == []
    assert not (tmp_path / "AA.bin").exists()


@pytest.mark.parametrize("code, version, name", [
    ("UAL6", "1.0.0", ""),
    (".", "1.0.0", "a.bin"),
    ("UAL6", "1/2", "a.bin"),
    ("UAL6", "1.0.0", "..\\a.bin"),
])
def test_target_for_rejects_bad_segments(make_engine, code, version, name):
    engine, _ = make_engine()
    with pytest.raises(UnsafeCachePath):
        engine.target_for(code, version, name)


def test_override_cannot_escape_cache(make_engine, blob):
    engine, _ = make_engine(device_code_override="..", version_override="1.0.0")
    with pytest.raises(UnsafeCachePath):
        engine.place_from_file(blob)
