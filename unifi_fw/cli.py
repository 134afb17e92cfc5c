# unifi_fw/cli.py
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .core import setup_logging
from .core.config import load_settings
from .core.errors import FirmwareCacheError
from .core.pipeline import RunRequest, run
from .core.utils import is_url
from .ui import console, progress_fetcher, render_report

logger = logging.getLogger(__name__)

EPILOG = """\
examples:
  unifi-fw-cache --from-catalog --codes "U7PG2 UAP6MP UAPL6"
  REWRITE_HOST=mirror.lan unifi-fw-cache --from-catalog --codes "UAP6MP UAL6"
  unifi-fw-cache --src-dir .
  unifi-fw-cache --src-url https://dl.ui.com/unifi/firmware/UAL6/6.7.31.15618/BZ.bin ./BZ.bin
  unifi-fw-cache --mirror-all --mirror-root /srv/unifi-mirror --catalog ./firmware.json

environment:
  UNIFI_FW_DIR, UNIFI_USER, UNIFI_GROUP, CATALOG, APP_VERSION, RESTART,
  REWRITE_HOST, MIRROR_ROOT, DEV_FAMILY, VERSION, UNIFI_SERVICE, UNIFI_FW_CONFIG
"""

# options that consume the next token; needed to tell positionals apart
VALUE_OPTS = {
    "--codes", "--app-version", "--catalog", "--src-dir", "--mirror-root",
    "--rewrite-host", "--dev-family", "--version", "--config",
}

class UsageError(Exception):
    pass

def extract_src_url_pairs(argv: Sequence[str]) -> Tuple[List[str], List[Tuple[str, str]]]:
    """
    Pull every --src-url out of argv.

    "--src-url URL FILE" pairs with the FILE that follows; "FILE --src-url URL"
    pairs with the last local file given before it, which is then no longer
    a plain source.
    """
    rest: List[str] = []
    pairs: List[Tuple[str, str]] = []
    last_file: Optional[int] = None
    after_dd = False
    i = 0
    while i < len(argv):
        tok = argv[i]
        if after_dd or not tok.startswith("-"):
            rest.append(tok)
            last_file = None if is_url(tok) else len(rest) - 1
            i += 1
            continue
        if tok == "--":
            after_dd = True
            rest.append(tok)
            i += 1
            continue
        if tok == "--src-url" or tok.startswith("--src-url="):
            if "=" in tok:
                url = tok.split("=", 1)[1]
                i += 1
            else:
                if i + 1 >= len(argv):
                    raise UsageError("--src-url needs a URL")
                url = argv[i + 1]
                i += 2
            if not url:
                raise UsageError("--src-url needs a URL")
            if i < len(argv) and not argv[i].startswith("-") and not is_url(argv[i]):
                pairs.append((url, argv[i]))
                i += 1
            elif last_file is not None:
                pairs.append((url, rest.pop(last_file)))
                last_file = None
            else:
                raise UsageError(f"--src-url {url}: no local file given after it or before it")
            continue
        rest.append(tok)
        if tok in VALUE_OPTS and i + 1 < len(argv):
            rest.append(argv[i + 1])
            i += 1
        i += 1
    return rest, pairs

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="unifi-fw-cache",
        description="Offline firmware cache for the UniFi controller, and catalog mirror builder",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    g = ap.add_argument_group("controller cache")
    g.add_argument("--from-catalog", action="store_true", help="Fetch firmware for --codes using the catalog")
    g.add_argument("--codes", default="", help='Device codes, space separated ("U7PG2 UAP6MP UAL6")')
    g.add_argument("--app-version", help="Controller version key in the catalog (default: auto)")
    g.add_argument("--catalog", help="Path to firmware.json")
    g.add_argument("--src-dir", help="Take *.bin/*.tar from this folder")
    g.add_argument("--src-url", metavar="URL [FILE]",
                   help="Pair a local FILE (or the last file argument) with its download URL")
    g.add_argument("sources", nargs="*", metavar="URL_or_FILE", help="Extra URLs or local files to cache")

    m = ap.add_argument_group("mirror")
    m.add_argument("--mirror-all", action="store_true", help="Download every catalog file into a mirror tree")
    m.add_argument("--mirror-root", help="Mirror root (default: .)")

    h = ap.add_argument_group("identity hints")
    h.add_argument("--dev-family", dest="device_code_override", help="Force the device code for all files/URLs")
    h.add_argument("--version", dest="version_override", help="Force the firmware version for all files/URLs")

    o = ap.add_argument_group("other")
    o.add_argument("--rewrite-host", help="Download through this host instead (path kept as is)")
    o.add_argument("--no-restart", action="store_true", help="Do not restart the controller service")
    o.add_argument("--config", help="JSON settings file (also UNIFI_FW_CONFIG)")
    return ap

def parse_args(argv: Optional[Sequence[str]] = None) -> Tuple[argparse.Namespace, List[Tuple[str, str]]]:
    ap = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        rest, pairs = extract_src_url_pairs(argv)
    except UsageError as e:
        ap.error(str(e))
    args = ap.parse_args(rest)
    return args, pairs

def main(argv: Optional[Sequence[str]] = None) -> int:
    args, pairs = parse_args(argv)
    setup_logging()

    request = RunRequest(
        from_catalog=args.from_catalog,
        codes=tuple(args.codes.split()),
        src_dir=Path(args.src_dir) if args.src_dir else None,
        sources=tuple(args.sources),
        src_url_pairs=tuple(pairs),
        mirror_all=args.mirror_all,
    )
    if not (request.controller_mode or request.mirror_all):
        build_parser().print_help()
        return 0

    try:
        settings = load_settings(
            config_file=Path(args.config) if args.config else None,
            catalog_path=args.catalog,
            controller_version=args.app_version,
            mirror_root=args.mirror_root,
            rewrite_host=args.rewrite_host,
            device_code_override=args.device_code_override,
            version_override=args.version_override,
            restart_after=False if args.no_restart else None,
        )
        report = run(settings, request, fetch=progress_fetcher(settings.rewrite_host))
    except FirmwareCacheError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted by user.[/]")
        return 130

    render_report(report)
    return 0

if __name__ == "__main__":
    sys.exit(main())
