import json

import pytest

from unifi_fw.core.errors import (
    ConfigError, MissingToolError, PrivilegeError, RecordAbsent, UnresolvedIdentity,
    UnsafeCachePath, VersionDetectionError,
)
from unifi_fw.core.pipeline import RunRequest, run, scan_dir

AA_URL = "https://x/unifi/firmware/UAP6MP/6.7.31.15618/AA.bin"
CATALOG = {"7.10.0": {"release": {"UAP6MP": {
    "version": "6.7.31.15618", "url": AA_URL, "md5sum": "abc123"}}}}


@pytest.fixture
def run_with(settings, ownership):
    def _run(request, fetch, **kw):
        kw.setdefault("root_check", lambda: True)
        kw.setdefault("tool_check", lambda: True)
        return run(kw.pop("settings", settings), request, fetch=fetch, ownership=ownership, **kw)
    return _run


def _index(settings):
    return json.loads((settings.cache_root / "firmware_meta.json").read_text())["cached_firmwares"]


def test_catalog_scenario_auto_detects_and_indexes(settings, write_catalog, fake_fetch, run_with, caplog):
    write_catalog(CATALOG)
    fetch = fake_fetch({AA_URL: b"payload"})
    report = run_with(RunRequest(from_catalog=True, codes=("UAP6MP",)), fetch)

    assert report.controller_version == "7.10.0"
    assert (settings.cache_root / "UAP6MP" / "6.7.31.15618" / "AA.bin").read_bytes() == b"payload"
    entries = _index(settings)
    assert [e["path"] for e in entries] == ["UAP6MP/6.7.31.15618/AA.bin"]
    # md5 "abc123" in the catalog is wrong: warning only
    assert "Checksum mismatch" in caplog.text
    assert report.batches[0].placed and not report.batches[0].skipped


def test_missing_code_is_skipped_and_batch_continues(settings, write_catalog, fake_fetch, run_with):
    write_catalog(CATALOG)
    fetch = fake_fetch({AA_URL: b"payload"})
    report = run_with(RunRequest(from_catalog=True, codes=("U7PG2", "UAP6MP")), fetch)
    batch = report.batches[0]
    assert isinstance(batch.items[0].error, RecordAbsent)
    assert batch.items[1].entry.path == "UAP6MP/6.7.31.15618/AA.bin"


def test_explicit_controller_version_skips_detection(settings, write_catalog, fake_fetch, run_with):
    write_catalog({"beta": {"release": {}}})
    report = run_with(RunRequest(from_catalog=True, codes=("UAP6MP",)), fake_fetch(),
                      settings=settings.replace(controller_version="beta"))
    assert report.controller_version == "beta"
    assert isinstance(report.batches[0].items[0].error, RecordAbsent)


def test_auto_detection_failure_is_fatal(write_catalog, fake_fetch, run_with):
    write_catalog({"beta": {"release": {}}})
    with pytest.raises(VersionDetectionError):
        run_with(RunRequest(mirror_all=True), fake_fetch())


def test_src_dir_sources_and_pairs(settings, tmp_path, fake_fetch, run_with):
    src = tmp_path / "in"
    src.mkdir()
    (src / "BZ-UAL6-6.6.77.bin").write_bytes(b"1")
    (src / "update.bin").write_bytes(b"2")
    (src / "notes.txt").write_bytes(b"3")
    loose = tmp_path / "loose.bin"
    loose.write_bytes(b"4")
    url = "https://dl.example.com/unifi/firmware/U7PG2/4.3.28/BZ.bin"
    pair_url = "https://dl.example.com/unifi/firmware/UAPL6/6.6.55/real-name.bin"

    report = run_with(RunRequest(
        src_dir=src,
        sources=(url,),
        src_url_pairs=((pair_url, str(loose)),),
    ), fake_fetch({url: b"5"}))

    names = [b.name for b in report.batches]
    assert names == ["src-dir", "sources", "src-url"]
    assert len(report.batches[0].placed) == 1
    assert isinstance(report.batches[0].skipped[0].error, UnresolvedIdentity)
    assert sorted(e["path"] for e in _index(settings)) == [
        "U7PG2/4.3.28/BZ.bin", "UAL6/6.6.77/BZ-UAL6-6.6.77.bin", "UAPL6/6.6.55/real-name.bin"]


def test_scan_dir_only_bin_and_tar(tmp_path):
    for n in ("b.bin", "a.tar", "c.txt"):
        (tmp_path / n).write_bytes(b"x")
    assert [p.name for p in scan_dir(tmp_path)] == ["b.bin", "a.tar"]


def test_mirror_runs_without_root_or_index(settings, write_catalog, fake_fetch, run_with):
    write_catalog(CATALOG)
    report = run_with(RunRequest(mirror_all=True), fake_fetch({AA_URL: b"p"}), root_check=lambda: False)
    assert report.mirror.items[0].rel_path == "unifi/firmware/UAP6MP/6.7.31.15618/AA.bin"
    assert not settings.cache_root.exists()


def test_controller_mode_requires_root(settings, tmp_path, fake_fetch, run_with):
    with pytest.raises(PrivilegeError):
        run_with(RunRequest(sources=("x.bin",)), fake_fetch(), root_check=lambda: False)


def test_restart_requested_without_systemctl(settings, fake_fetch, run_with):
    with pytest.raises(MissingToolError):
        run_with(RunRequest(sources=("x.bin",)), fake_fetch(),
                 settings=settings.replace(restart_after=True), tool_check=lambda: False)


def test_from_catalog_without_codes(fake_fetch, run_with):
    with pytest.raises(ConfigError):
        run_with(RunRequest(from_catalog=True), fake_fetch())


def test_restart_failure_is_not_fatal(settings, tmp_path, fake_fetch, run_with):
    calls = []

    def restart(name):
        calls.append(name)
        return False

    src = tmp_path / "BZ-UAL6-6.6.77.bin"
    src.write_bytes(b"1")
    report = run_with(RunRequest(sources=(str(src),)), fake_fetch(),
                      settings=settings.replace(restart_after=True), restart=restart)
    assert calls == ["unifi"]
    assert report.restarted is False


def test_unsafe_catalog_entry_is_skipped_and_batch_continues(settings, write_catalog, fake_fetch, run_with):
    bad_url = "https://x/unifi/firmware/UAL6/1.0.0/B.bin"
    write_catalog({"7.10.0": {"release": {
        "UAL6": {"version": "..", "url": bad_url},
        "UAP6MP": {"version": "6.7.31.15618", "url": AA_URL},
    }}})
    fetch = fake_fetch({AA_URL: b"payload", bad_url: b"x"})
    report = run_with(RunRequest(from_catalog=True, codes=("UAL6", "UAP6MP")), fetch)
    batch = report.batches[0]
    assert isinstance(batch.items[0].error, UnsafeCachePath)
    assert batch.items[1].entry.path == "UAP6MP/6.7.31.15618/AA.bin"
    assert [u for u, _ in fetch.calls] == [AA_URL]


def test_blank_controller_version_means_auto(settings, write_catalog, fake_fetch, run_with):
    write_catalog(CATALOG)
    report = run_with(RunRequest(mirror_all=True), fake_fetch({AA_URL: b"p"}),
                      settings=settings.replace(controller_version=""))
    assert report.controller_version == "7.10.0"
