"""
L0 Data — Tool recipe registry.

Tools a generated plan is likely to name, with the package that
provides them under each package manager. Pure data, no logic.

Keys are the tool names steps use in ``declared_tool``. Entries from
``tools:`` in stepwise.yml are merged over these.

Recipe fields:
    label     — display name
    cli       — binary probed for presence (default: the key)
    packages  — {package manager: package name}; ``_default`` applies
                to managers without an explicit entry
    platforms — platform families the tool exists on (absent = all)
"""

from __future__ import annotations

TOOL_RECIPES: dict[str, dict] = {

    # ── Network discovery ───────────────────────────────────────

    "nmap": {
        "label": "Nmap",
        "packages": {"_default": "nmap", "winget": "Insecure.Nmap"},
    },
    "masscan": {
        "label": "masscan",
        "packages": {"_default": "masscan"},
        "platforms": ["linux", "macos"],
    },
    "arp-scan": {
        "label": "arp-scan",
        "packages": {"_default": "arp-scan"},
        "platforms": ["linux", "macos"],
    },
    "traceroute": {
        "label": "traceroute",
        "packages": {"_default": "traceroute", "pacman": "traceroute"},
        "platforms": ["linux", "macos"],
    },
    "ip": {
        "label": "iproute2",
        "packages": {"_default": "iproute2", "dnf": "iproute"},
        "platforms": ["linux"],
    },
    "tcpdump": {
        "label": "tcpdump",
        "packages": {"_default": "tcpdump"},
        "platforms": ["linux", "macos"],
    },

    # ── DNS / lookup ────────────────────────────────────────────

    "dig": {
        "label": "dig",
        "cli": "dig",
        "packages": {
            "apt": "dnsutils",
            "dnf": "bind-utils",
            "pacman": "bind",
            "brew": "bind",
            "winget": "ISC.Bind",
        },
    },
    "whois": {
        "label": "whois",
        "packages": {"_default": "whois", "winget": "Microsoft.Sysinternals.Whois"},
    },

    # ── Transfer ────────────────────────────────────────────────

    "curl": {
        "label": "curl",
        "packages": {"_default": "curl", "winget": "cURL.cURL"},
    },
    "wget": {
        "label": "wget",
        "packages": {"_default": "wget", "winget": "JernejSimoncic.Wget"},
    },
    "nc": {
        "label": "netcat",
        "cli": "nc",
        "packages": {
            "apt": "netcat-openbsd",
            "dnf": "nmap-ncat",
            "pacman": "openbsd-netcat",
            "brew": "netcat",
        },
        "platforms": ["linux", "macos"],
    },

    # ── Assessment ──────────────────────────────────────────────

    "nikto": {
        "label": "Nikto",
        "packages": {"_default": "nikto"},
        "platforms": ["linux", "macos"],
    },
    "gobuster": {
        "label": "Gobuster",
        "packages": {"_default": "gobuster"},
        "platforms": ["linux", "macos"],
    },
    "hydra": {
        "label": "THC Hydra",
        "packages": {"_default": "hydra", "dnf": "hydra", "apt": "hydra"},
        "platforms": ["linux", "macos"],
    },
    "sqlmap": {
        "label": "sqlmap",
        "packages": {"_default": "sqlmap"},
        "platforms": ["linux", "macos"],
    },
    "msfconsole": {
        "label": "Metasploit Framework",
        "packages": {"apt": "metasploit-framework"},
        "platforms": ["linux"],
    },
    "setoolkit": {
        "label": "Social-Engineer Toolkit",
        "packages": {"apt": "set"},
        "platforms": ["linux"],
    },

    # ── General ─────────────────────────────────────────────────

    "jq": {
        "label": "jq",
        "packages": {"_default": "jq", "winget": "jqlang.jq"},
    },
    "git": {
        "label": "Git",
        "packages": {"_default": "git", "winget": "Git.Git"},
    },
}
