"""
L4 Execution — Core subprocess runner.

The SINGLE PLACE where ``subprocess.run`` is called for install
operations. Plan steps never go through here; they are spawned by
the step executor.
"""

from __future__ import annotations

import logging
import subprocess
import time
from typing import Any

logger = logging.getLogger(__name__)


def run_subprocess(
    cmd: list[str],
    *,
    sudo: bool = False,
    timeout: int = 600,
) -> dict[str, Any]:
    """Run an install command.

    Sudo is non-interactive (``sudo -n``): if a password would be
    needed the command fails instead of blocking on a prompt.

    Args:
        cmd: Command list for ``subprocess.run()``.
        sudo: Prefix with ``sudo -n``.
        timeout: Seconds before ``TimeoutExpired``.

    Returns:
        ``{"ok": True, "stdout": "...", "elapsed_ms": N}`` on success,
        ``{"ok": False, "error": "...", ...}`` on failure.
    """
    if sudo:
        cmd = ["sudo", "-n", *cmd]

    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired:
        return {"ok": False, "error": f"Command timed out ({timeout}s)"}
    except OSError as e:
        logger.warning("Cannot run %s: %s", cmd[0], e)
        return {"ok": False, "error": str(e)}

    elapsed_ms = int((time.monotonic() - start) * 1000)

    if result.returncode == 0:
        return {
            "ok": True,
            "stdout": result.stdout[-2000:] if result.stdout else "",
            "elapsed_ms": elapsed_ms,
        }

    stderr = result.stderr[-2000:] if result.stderr else ""
    if sudo and "password is required" in stderr.lower():
        return {
            "ok": False,
            "needs_sudo": True,
            "error": "sudo needs a password; run as root or configure passwordless sudo",
            "elapsed_ms": elapsed_ms,
        }

    return {
        "ok": False,
        "error": f"Command failed (exit {result.returncode})",
        "stderr": stderr,
        "stdout": result.stdout[-2000:] if result.stdout else "",
        "elapsed_ms": elapsed_ms,
    }
