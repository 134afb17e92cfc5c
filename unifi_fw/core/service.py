from __future__ import annotations
import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)

SYSTEMCTL = "systemctl"

def available() -> bool:
    return shutil.which(SYSTEMCTL) is not None

def restart(service: str) -> bool:
    """Best effort: a failed restart is logged, never raised."""
    try:
        r = subprocess.run([SYSTEMCTL, "restart", service], capture_output=True, text=True, timeout=120)
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("Could not restart %s: %s", service, e)
        return False
    if r.returncode != 0:
        logger.warning("Could not restart %s (exit %d): %s", service, r.returncode, (r.stderr or "").strip())
        return False
    logger.info("Restarted %s", service)
    return True
