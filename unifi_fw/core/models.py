from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ItemError


@dataclass(frozen=True)
class ReleaseRecord:
    version: str = ""
    url: str = ""
    checksum: str = ""


@dataclass
class Catalog:
    # controller-version -> device-code -> record, insertion order kept
    releases: Dict[str, Dict[str, ReleaseRecord]] = field(default_factory=dict)

    def controller_versions(self) -> List[str]:
        return list(self.releases)

    def release(self, controller_version: str) -> Dict[str, ReleaseRecord]:
        return self.releases.get(controller_version, {})


@dataclass(frozen=True)
class Identity:
    device_code: str
    version: str


@dataclass
class CacheEntry:
    checksum: str
    version: str
    size: int
    path: str
    devices: List[str] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        # the controller reads the checksum as "md5"
        return {
            "md5": self.checksum,
            "version": self.version,
            "size": self.size,
            "path": self.path,
            "devices": list(self.devices),
        }

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "CacheEntry":
        return cls(
            checksum=str(raw.get("md5") or raw.get("checksum") or ""),
            version=str(raw.get("version") or ""),
            size=int(raw.get("size") or 0),
            path=str(raw.get("path") or ""),
            devices=[str(d) for d in (raw.get("devices") or [])],
        )


@dataclass
class ItemResult:
    source: str
    entry: Optional[CacheEntry] = None
    error: Optional[ItemError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport:
    name: str
    items: List[ItemResult] = field(default_factory=list)

    @property
    def placed(self) -> List[ItemResult]:
        return [i for i in self.items if i.ok]

    @property
    def skipped(self) -> List[ItemResult]:
        return [i for i in self.items if not i.ok]


# mirror item statuses
FETCHED = "fetched"
UP_TO_DATE = "up-to-date"
FAILED = "failed"


@dataclass
class MirrorItem:
    device_code: str
    version: str
    rel_path: str
    status: str
    checksum_ok: Optional[bool] = None
    error: str = ""


@dataclass
class MirrorReport:
    controller_version: str
    root: Path
    items: List[MirrorItem] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for i in self.items if i.status == status)


@dataclass
class RunReport:
    controller_version: str = ""
    batches: List[BatchReport] = field(default_factory=list)
    mirror: Optional[MirrorReport] = None
    restarted: Optional[bool] = None
