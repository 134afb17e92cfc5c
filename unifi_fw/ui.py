#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Console rendering for unifi-fw-cache

- Download progress bar fed by the core downloader's on_progress callback
- End-of-run tables: placed / skipped items per batch, mirror status lines
"""

from __future__ import annotations
from typing import Dict, Optional

from rich.console import Console
from rich.table import Table
from rich import box
from rich.progress import (
    BarColumn, DownloadColumn, Progress, TextColumn, TimeRemainingColumn, TransferSpeedColumn
)

from .core.download import Fetcher, make_fetcher
from .core.models import FAILED, FETCHED, UP_TO_DATE, MirrorReport, RunReport
from .core.utils import human_size

console = Console()

class DownloadProgress:
    """Context manager; pass .update as the downloader's on_progress."""
    def __init__(self, console_: Optional[Console] = None):
        self.console = console_ or console
        self.progress = Progress(
            TextColumn("[bold]Downloading[/] {task.description}", justify="left"), BarColumn(),
            DownloadColumn(), TransferSpeedColumn(), TimeRemainingColumn(),
            console=self.console, transient=False,
        )
        self.tasks: Dict[str, int] = {}

    def __enter__(self) -> "DownloadProgress":
        self.progress.start()
        return self

    def __exit__(self, *exc) -> None:
        self.progress.stop()

    def update(self, name: str, done: int, total: int) -> None:
        task = self.tasks.get(name)
        if task is None:
            task = self.progress.add_task(name, total=total or None, completed=done)
            self.tasks[name] = task
        self.progress.update(task, completed=done, total=total or None)

def progress_fetcher(host: str = "", console_: Optional[Console] = None) -> Fetcher:
    """Core fetcher with a progress bar per download."""
    def fetch(url, dest) -> None:
        with DownloadProgress(console_) as dp:
            make_fetcher(host, on_progress=dp.update)(url, dest)
    return fetch

_MIRROR_STYLE = {FETCHED: "green", UP_TO_DATE: "cyan", FAILED: "red"}

def render_mirror(report: MirrorReport, console_: Optional[Console] = None) -> None:
    c = console_ or console
    tbl = Table(title=f"Mirror {report.controller_version} → {report.root}",
                header_style="bold magenta", box=box.SIMPLE_HEAVY)
    tbl.add_column("Device"); tbl.add_column("Version"); tbl.add_column("Path", overflow="fold")
    tbl.add_column("Status"); tbl.add_column("MD5")
    for i in report.items:
        style = _MIRROR_STYLE.get(i.status, "")
        md5 = "-" if i.checksum_ok is None else ("[green]✓[/]" if i.checksum_ok else "[yellow]⚠ mismatch[/]")
        tbl.add_row(i.device_code, i.version, i.rel_path or i.error, f"[{style}]{i.status}[/]", md5)
    c.print(tbl)

def render_report(report: RunReport, console_: Optional[Console] = None) -> None:
    c = console_ or console
    if report.controller_version:
        c.print(f"Controller version: [bold]{report.controller_version}[/]")

    for batch in report.batches:
        tbl = Table(title=f"{batch.name}: {len(batch.placed)} placed, {len(batch.skipped)} skipped",
                    header_style="bold magenta", box=box.SIMPLE_HEAVY)
        tbl.add_column("Source", overflow="fold"); tbl.add_column("Result", overflow="fold")
        tbl.add_column("Size"); tbl.add_column("MD5")
        for item in batch.items:
            if item.entry is not None:
                e = item.entry
                tbl.add_row(item.source, f"[green]✓[/] {e.path}", human_size(e.size), e.checksum)
            else:
                reason = item.error.reason if item.error is not None else "?"
                tbl.add_row(item.source, f"[yellow]skipped[/] {reason}", "-", "-")
        c.print(tbl)

    if report.mirror is not None:
        render_mirror(report.mirror, c)

    if report.restarted is False:
        c.print("[yellow]Service restart failed; restart it by hand.[/]")
