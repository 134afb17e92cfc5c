# unifi_fw/core/ownership.py
from __future__ import annotations
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

FILE_MODE = 0o644
DIR_MODE  = 0o755

@dataclass(frozen=True)
class Ownership:
    """
    Mode/owner policy for everything written under the controller's cache.
    With enforce=False (mirror mode, tests) only the mode bits are applied.
    """
    user: str = "unifi"
    group: str = "unifi"
    enforce: bool = False

    def apply(self, path: Path, mode: int = FILE_MODE) -> None:
        os.chmod(path, mode)
        if self.enforce:
            shutil.chown(path, user=self.user, group=self.group)

    def ensure_dir(self, path: Path) -> None:
        missing = []
        p = path
        while not p.exists():
            missing.append(p)
            if p.parent == p: break
            p = p.parent
        path.mkdir(parents=True, exist_ok=True)
        for d in reversed(missing):
            self.apply(d, DIR_MODE)

    def install(self, src: Path, dst: Path, mode: int = FILE_MODE) -> None:
        """Copy src over dst in one rename, then set mode/owner."""
        self.ensure_dir(dst.parent)
        if src.resolve() != dst.resolve():
            fd, tmp = tempfile.mkstemp(prefix=f".{dst.name}.", dir=str(dst.parent))
            os.close(fd)
            try:
                shutil.copyfile(src, tmp)
                os.replace(tmp, dst)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        self.apply(dst, mode)

    def write_text(self, dst: Path, text: str, mode: int = FILE_MODE) -> None:
        self.ensure_dir(dst.parent)
        fd, tmp = tempfile.mkstemp(prefix=f".{dst.name}.", dir=str(dst.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, dst)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        self.apply(dst, mode)

    def enforce_tree(self, root: Path) -> None:
        """Final pass over the cache: owner on everything, FILE_MODE on files."""
        if not root.is_dir():
            return
        if self.enforce:
            shutil.chown(root, user=self.user, group=self.group)
        for dirpath, dirnames, filenames in os.walk(root):
            for d in dirnames:
                if self.enforce:
                    shutil.chown(os.path.join(dirpath, d), user=self.user, group=self.group)
            for f in filenames:
                self.apply(Path(dirpath) / f, FILE_MODE)
        logger.debug("Ownership enforced under %s", root)
