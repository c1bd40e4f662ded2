"""
Value extraction — turning discovery output into placeholder values.

A discovery step declares the names it produces; after it succeeds
each name is looked up in its stdout, in this order:

    1. the step's own ``extract`` regex for that name
    2. a built-in extractor for well-known names
       (default_gateway, local_ip, subnet_cidr)
    3. a ``name=value`` or ``name: value`` line
    4. the first non-empty line, when the step produces exactly one name

Also extracts seed values (a target address or subnet) from the free
text of a user's request.
"""

from __future__ import annotations

import logging
import re

from stepwise.core.models.plan import Step

logger = logging.getLogger(__name__)

_IPV4 = r"(?:[0-9]{1,3}\.){3}[0-9]{1,3}"

# Addresses that never identify a useful host
_IGNORED_ADDRESSES = frozenset({"0.0.0.0", "127.0.0.1"})

# ── Built-in extractors ─────────────────────────────────────────

_WELL_KNOWN: dict[str, list[re.Pattern[str]]] = {
    "default_gateway": [
        re.compile(rf"default via ({_IPV4})"),                  # ip route
        re.compile(rf"Default Gateway[ .]*:\s*({_IPV4})"),      # ipconfig
        re.compile(rf"gateway:\s*({_IPV4})"),                   # route -n get default
    ],
    "local_ip": [
        re.compile(rf"\bsrc ({_IPV4})"),                        # ip route get
        re.compile(rf"\binet (?:addr:)?({_IPV4})"),             # ip addr / ifconfig
        re.compile(rf"IPv4 Address[ .]*:\s*({_IPV4})"),         # ipconfig
    ],
    "subnet_cidr": [
        re.compile(rf"\b({_IPV4}/[0-9]{{1,2}})\b"),
    ],
}


_BARE_ADDRESS_RE = re.compile(rf"{_IPV4}(?:/[0-9]{{1,2}})?")


def _acceptable(value: str) -> bool:
    host = value.split("/", 1)[0]
    return host not in _IGNORED_ADDRESSES and not host.startswith("127.")


def _well_known(name: str, output: str) -> str | None:
    for pattern in _WELL_KNOWN.get(name, ()):
        for match in pattern.finditer(output):
            value = match.group(1)
            if _acceptable(value):
                return value
            logger.debug("Ignoring %s candidate %s", name, value)
    return None


def _keyed_line(name: str, output: str) -> str | None:
    pattern = re.compile(rf"^\s*{re.escape(name)}\s*[=:]\s*(\S.*?)\s*$", re.MULTILINE)
    match = pattern.search(output)
    return match.group(1) if match else None


def _first_line(output: str) -> str | None:
    for line in output.splitlines():
        if line.strip():
            return line.strip()
    return None


def extract_value(step: Step, name: str, output: str) -> str | None:
    """Extract one produced value from ``output`` (None = not found)."""
    custom = step.extract.get(name)
    if custom is not None:
        match = re.search(custom, output, re.MULTILINE)
        if match and match.group(1):
            return match.group(1).strip()
        return None

    value = _well_known(name, output)
    if value is not None:
        return value

    value = _keyed_line(name, output)
    if value is not None:
        return value

    if len(step.produces) != 1:
        return None
    line = _first_line(output)
    if line is not None and name in _WELL_KNOWN:
        # A bare address on its own line still counts, 0.0.0.0 does not
        if not _BARE_ADDRESS_RE.fullmatch(line) or not _acceptable(line):
            return None
    return line


def extract_values(step: Step, output: str) -> tuple[dict[str, str], list[str]]:
    """Extract every name ``step`` produces.

    Returns:
        (values found, names not found)
    """
    values: dict[str, str] = {}
    missing: list[str] = []
    for name in sorted(step.produces):
        value = extract_value(step, name, output)
        if value is None:
            missing.append(name)
        else:
            values[name] = value
    return values, missing


# ── Request seeds ───────────────────────────────────────────────

_CIDR_RE = re.compile(rf"\b({_IPV4}/\d{{1,2}})\b")
_IP_RE = re.compile(rf"\b({_IPV4})\b")


def seeds_from_text(text: str) -> dict[str, str]:
    """Find a subnet or a single target address in a user's request.

    A CIDR wins over a bare address: "scan 10.0.0.0/24" seeds
    ``subnet_cidr``, "ping 10.0.0.5" seeds ``target_ip``.
    """
    match = _CIDR_RE.search(text)
    if match:
        return {"subnet_cidr": match.group(1)}
    match = _IP_RE.search(text)
    if match:
        return {"target_ip": match.group(1)}
    return {}
