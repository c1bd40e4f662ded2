"""
Installers — collaborators that put missing tools on the host.
"""

from stepwise.adapters.base import InstallOutcome, Installer
from stepwise.adapters.mock import MockInstaller
from stepwise.adapters.package_manager import PackageManagerInstaller

__all__ = [
    "InstallOutcome",
    "Installer",
    "MockInstaller",
    "PackageManagerInstaller",
]
