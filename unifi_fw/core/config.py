# unifi_fw/core/config.py
from __future__ import annotations
import dataclasses
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError

AUTO = "auto"

# ---- settings ----------------------------------------------------------------
@dataclass(frozen=True)
class Settings:
    cache_root: Path = Path("/var/lib/unifi/firmware")
    catalog_path: Path = Path("/var/lib/unifi/firmware.json")
    controller_version: str = AUTO
    owner_user: str = "unifi"
    owner_group: str = "unifi"
    restart_after: bool = True
    rewrite_host: str = ""
    mirror_root: Path = Path(".")
    device_code_override: str = ""
    version_override: str = ""
    service_name: str = "unifi"

    @property
    def auto_version(self) -> bool:
        return self.controller_version in ("", AUTO)

    def replace(self, **changes: Any) -> "Settings":
        return dataclasses.replace(self, **changes)

# ---- sources -----------------------------------------------------------------
# Environment names kept from the original shell tool so existing wrappers work.
ENV_MAP: Dict[str, str] = {
    "UNIFI_FW_DIR": "cache_root",
    "CATALOG":      "catalog_path",
    "APP_VERSION":  "controller_version",
    "UNIFI_USER":   "owner_user",
    "UNIFI_GROUP":  "owner_group",
    "RESTART":      "restart_after",
    "REWRITE_HOST": "rewrite_host",
    "MIRROR_ROOT":  "mirror_root",
    "DEV_FAMILY":   "device_code_override",
    "VERSION":      "version_override",
    "UNIFI_SERVICE": "service_name",
}

_PATH_FIELDS = {"cache_root", "catalog_path", "mirror_root"}
_FIELDS = {f.name for f in dataclasses.fields(Settings)}

def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in ("1", "true", "yes", "on"): return True
    if s in ("0", "false", "no", "off", ""): return False
    raise ConfigError(f"{name}: expected a boolean, got {value!r}")

def _coerce(name: str, value: Any) -> Any:
    if name in _PATH_FIELDS:
        return Path(str(value)).expanduser()
    if name == "restart_after":
        return _as_bool(name, value)
    return "" if value is None else str(value).strip()

def config_path(env: Mapping[str, str]) -> Optional[Path]:
    p = env.get("UNIFI_FW_CONFIG")
    return Path(p).expanduser() if p else None

def read_config_file(path: Path) -> Dict[str, Any]:
    """
    Optional JSON file with Settings field names as keys.
    A broken file is fatal here: silently falling back to defaults would
    point the tool at the wrong cache.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"config {path} is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"config {path} must hold a JSON object")
    unknown = sorted(set(raw) - _FIELDS)
    if unknown:
        raise ConfigError(f"config {path}: unknown keys {', '.join(unknown)}")
    return raw

def from_env(env: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for var, name in ENV_MAP.items():
        if var in env and env[var] != "":
            out[name] = env[var]
    return out

def load_settings(
    env: Optional[Mapping[str, str]] = None,
    config_file: Optional[Path] = None,
    **flags: Any,
) -> Settings:
    """defaults < config file < environment < flags (None means "not given")."""
    env = os.environ if env is None else env
    layered: Dict[str, Any] = {}
    cfg = config_file or config_path(env)
    if cfg is not None:
        layered.update(read_config_file(cfg))
    layered.update(from_env(env))
    for k, v in flags.items():
        if k not in _FIELDS:
            raise ConfigError(f"unknown setting {k!r}")
        if v is not None:
            layered[k] = v
    return Settings(**{k: _coerce(k, v) for k, v in layered.items()})
