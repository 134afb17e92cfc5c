# unifi_fw/core/pipeline.py
"""
One run of the tool: catalog codes, a scanned folder, explicit URLs/files,
URL+file pairs, then (independently) the mirror. Items fail one at a time;
anything that is not an ItemError ends the run.
"""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from . import service
from .catalog import detect_controller_version, load_catalog, lookup
from .config import Settings
from .download import Fetcher, make_fetcher
from .errors import ConfigError, ItemError, MissingToolError, PrivilegeError, RecordAbsent
from .meta import MetadataIndex
from .mirror import mirror
from .models import BatchReport, Catalog, ItemResult, RunReport
from .ownership import Ownership
from .placement import PlacementEngine
from .utils import is_url

logger = logging.getLogger(__name__)

SCAN_PATTERNS = ("*.bin", "*.tar")

@dataclass(frozen=True)
class RunRequest:
    from_catalog: bool = False
    codes: Tuple[str, ...] = ()
    src_dir: Optional[Path] = None
    sources: Tuple[str, ...] = ()
    src_url_pairs: Tuple[Tuple[str, str], ...] = ()
    mirror_all: bool = False

    @property
    def controller_mode(self) -> bool:
        return bool(self.from_catalog or self.src_dir or self.sources or self.src_url_pairs)

    @property
    def needs_catalog(self) -> bool:
        return self.from_catalog or self.mirror_all

def is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0

def preflight(
    settings: Settings,
    request: RunRequest,
    root_check: Callable[[], bool] = is_root,
    tool_check: Callable[[], bool] = service.available,
) -> None:
    if request.from_catalog and not request.codes:
        raise ConfigError("--from-catalog needs --codes \"CODE ...\"")
    if request.src_dir is not None and not request.src_dir.is_dir():
        raise ConfigError(f"source folder not found: {request.src_dir}")
    if request.controller_mode:
        if not root_check():
            raise PrivilegeError(f"controller mode needs root (writes {settings.cache_root}, restarts {settings.service_name})")
        if settings.restart_after and not tool_check():
            raise MissingToolError(f"'{service.SYSTEMCTL}' not found; use --no-restart or RESTART=0")

def scan_dir(src_dir: Path) -> List[Path]:
    out: List[Path] = []
    for pat in SCAN_PATTERNS:
        out.extend(p for p in sorted(src_dir.glob(pat)) if p.is_file())
    return out

def _run_batch(name: str, items: Iterable[Tuple[str, Callable[[], object]]]) -> BatchReport:
    batch = BatchReport(name)
    for source, action in items:
        try:
            entry = action()
        except ItemError as e:
            logger.warning("[%s] skipped %s", name, e)
            batch.items.append(ItemResult(source, error=e))
            continue
        batch.items.append(ItemResult(source, entry=entry))
    return batch

def _catalog_items(engine: PlacementEngine, catalog: Catalog, controller_version: str, codes: Iterable[str]):
    for code in codes:
        def action(code: str = code):
            rec = lookup(catalog, controller_version, code)
            if rec is None:
                raise RecordAbsent(code, f"no catalog entry for controller version {controller_version}")
            return engine.place_from_catalog_record(code, rec)
        yield code, action

def run(
    settings: Settings,
    request: RunRequest,
    fetch: Optional[Fetcher] = None,
    restart: Callable[[str], bool] = service.restart,
    root_check: Callable[[], bool] = is_root,
    tool_check: Callable[[], bool] = service.available,
    ownership: Optional[Ownership] = None,
) -> RunReport:
    preflight(settings, request, root_check=root_check, tool_check=tool_check)
    fetch = fetch or make_fetcher(settings.rewrite_host)
    report = RunReport()

    catalog: Optional[Catalog] = None
    if request.needs_catalog:
        catalog = load_catalog(settings.catalog_path)
        report.controller_version = (
            detect_controller_version(catalog) if settings.auto_version else settings.controller_version)

    if request.controller_mode:
        ownership = ownership or Ownership(settings.owner_user, settings.owner_group, enforce=True)
        index = MetadataIndex(settings.cache_root, ownership)
        index.ensure_initialized()
        engine = PlacementEngine(
            settings.cache_root, ownership, index, fetch,
            device_code_override=settings.device_code_override,
            version_override=settings.version_override,
        )

        if request.from_catalog and catalog is not None:
            report.batches.append(_run_batch(
                "catalog", _catalog_items(engine, catalog, report.controller_version, request.codes)))

        if request.src_dir is not None:
            report.batches.append(_run_batch(
                "src-dir",
                ((str(p), lambda p=p: engine.place_from_file(p)) for p in scan_dir(request.src_dir))))

        if request.sources:
            report.batches.append(_run_batch(
                "sources",
                ((s, (lambda s=s: engine.place_from_url(s)) if is_url(s) else (lambda s=s: engine.place_from_file(Path(s))))
                 for s in request.sources if s)))

        if request.src_url_pairs:
            report.batches.append(_run_batch(
                "src-url",
                ((f"{u} | {f}", lambda u=u, f=f: engine.place_with_source_url(u, Path(f)))
                 for u, f in request.src_url_pairs)))

    if request.mirror_all and catalog is not None:
        report.mirror = mirror(catalog, report.controller_version, settings.mirror_root, fetch)

    if request.controller_mode:
        ownership.enforce_tree(settings.cache_root)
        if settings.restart_after:
            report.restarted = restart(settings.service_name)
        logger.info("Done. Index: %s | Cache: %s", index.path, settings.cache_root)

    return report
