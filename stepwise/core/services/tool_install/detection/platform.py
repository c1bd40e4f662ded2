"""
L3 Detection — Host platform and privilege detection.

Maps the running OS to a platform family that decides which package
manager installs missing tools. Linux distributions are identified
from /etc/os-release (``ID`` and ``ID_LIKE``).
"""

from __future__ import annotations

import ctypes
import logging
import os
import platform as _platform
from enum import StrEnum
from pathlib import Path

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")


class Platform(StrEnum):
    KALI = "kali"
    DEBIAN = "debian"
    FEDORA = "fedora"
    ARCH = "arch"
    LINUX = "linux"           # Linux, unknown distribution
    MACOS = "macos"
    WINDOWS = "windows"
    UNSUPPORTED = "unsupported"

    @property
    def family(self) -> str:
        """Coarse family used by recipe platform restrictions."""
        if self in (Platform.KALI, Platform.DEBIAN, Platform.FEDORA, Platform.ARCH, Platform.LINUX):
            return "linux"
        return self.value

    @property
    def package_manager(self) -> str | None:
        return _PACKAGE_MANAGERS.get(self)

    @property
    def label(self) -> str:
        return _LABELS[self]


_PACKAGE_MANAGERS: dict[Platform, str] = {
    Platform.KALI: "apt",
    Platform.DEBIAN: "apt",
    Platform.FEDORA: "dnf",
    Platform.ARCH: "pacman",
    Platform.MACOS: "brew",
    Platform.WINDOWS: "winget",
}

_LABELS: dict[Platform, str] = {
    Platform.KALI: "Kali Linux",
    Platform.DEBIAN: "Debian-family Linux",
    Platform.FEDORA: "Fedora-family Linux",
    Platform.ARCH: "Arch Linux",
    Platform.LINUX: "Linux (Other)",
    Platform.MACOS: "macOS",
    Platform.WINDOWS: "Windows",
    Platform.UNSUPPORTED: "Unsupported OS",
}


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release ``KEY=value`` lines."""
    info: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        info[key] = value.strip().strip('"').strip("'")
    return info


def read_os_release(path: Path = OS_RELEASE_PATH) -> dict[str, str]:
    try:
        return parse_os_release(path.read_text(encoding="utf-8"))
    except (FileNotFoundError, OSError):
        return {}


def detect_platform(
    system: str | None = None,
    os_release: dict[str, str] | None = None,
) -> Platform:
    """Detect the platform family.

    Args:
        system: ``platform.system()`` value (detected when None).
        os_release: Parsed /etc/os-release (read when None on Linux).

    Returns:
        Platform enum member.
    """
    system = system if system is not None else _platform.system()

    if system == "Windows":
        return Platform.WINDOWS
    if system == "Darwin":
        return Platform.MACOS
    if system != "Linux":
        return Platform.UNSUPPORTED

    info = os_release if os_release is not None else read_os_release()
    ids = {info.get("ID", "").lower(), *info.get("ID_LIKE", "").lower().split()}
    ids.discard("")

    if "kali" in ids:
        return Platform.KALI
    if ids & {"debian", "ubuntu"}:
        return Platform.DEBIAN
    if ids & {"fedora", "rhel", "centos"}:
        return Platform.FEDORA
    if ids & {"arch", "manjaro"}:
        return Platform.ARCH
    return Platform.LINUX


def is_elevated() -> bool:
    """Whether the current process runs as root / Administrator."""
    if os.name == "nt":
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
        except (AttributeError, OSError):
            return False
    return os.geteuid() == 0
