from __future__ import annotations

import re
from dataclasses import dataclass

RECORD_TYPES = ("A", "AAAA", "CNAME", "MX", "TXT", "NS", "SRV", "CAA", "PTR")
PROXYABLE_TYPES = ("A", "AAAA")

_ipv4_re = re.compile(r"(\d{1,3}\.){3}\d{1,3}", re.ASCII)
_ipv6_re = re.compile(
    r"([0-9a-fA-F]{1,4}:){7}[0-9a-fA-F]{1,4}"
    r"|::"
    r"|::([0-9a-fA-F]{1,4}:){0,6}[0-9a-fA-F]{1,4}"
    r"|([0-9a-fA-F]{1,4}:){1,7}:"
    r"|([0-9a-fA-F]{1,4}:){1,6}(:[0-9a-fA-F]{1,4}){1,6}",
    re.ASCII,
)
_domain_re = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9-]{0,61}[a-zA-Z0-9]?\.[a-zA-Z]{2,}")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None


_OK = ValidationResult(True)


def _fail(error: str) -> ValidationResult:
    return ValidationResult(False, error)


def _compressed_ipv6_ok(content: str) -> bool:
    # "a::b" forms must still fit in eight groups
    if "::" not in content:
        return True
    if content.count("::") > 1:
        return False
    groups = [g for g in content.split(":") if g]
    return len(groups) <= 7


def validate_record_content(record_type: str, content: str) -> ValidationResult:
    """Check ``content`` against the syntax of ``record_type``.

    Never raises; unknown types are accepted as-is.
    """
    record_type = (record_type or "").upper()
    content = content or ""

    if record_type == "A":
        if not _ipv4_re.fullmatch(content):
            return _fail("Invalid IPv4 address format")
        if any(int(octet) > 255 for octet in content.split(".")):
            return _fail("Invalid IPv4 address - octets must be 0-255")

    elif record_type == "AAAA":
        if not _ipv6_re.fullmatch(content) or not _compressed_ipv6_ok(content):
            return _fail("Invalid IPv6 address format")

    elif record_type in ("CNAME", "NS"):
        if not content.endswith("."):
            return _fail("CNAME/NS content must end with a dot (.)")

    elif record_type == "MX":
        if not content.endswith("."):
            return _fail("MX content must end with a dot (.)")

    elif record_type == "SRV":
        if len(content.split(" ")) != 3:
            return _fail("SRV format: weight port target")

    elif record_type == "CAA":
        if len(content.split(" ")) < 3:
            return _fail('CAA format: flag tag "value"')

    return _OK


def validate_domain_name(domain: str) -> ValidationResult:
    if not domain or not _domain_re.fullmatch(domain):
        return _fail("Invalid domain name format")
    return _OK


def normalize_domain(domain: str) -> str:
    return domain.strip().lower().rstrip(".")


def build_record_name(name: str, zone_domain: str) -> str:
    """Qualify a record name relative to its zone.

    ``@`` and the empty string map to the zone apex; names already ending in
    the zone are kept.
    """
    name = (name or "").strip().lower().rstrip(".")
    if name in ("", "@"):
        return zone_domain
    if name == zone_domain or name.endswith(f".{zone_domain}"):
        return name
    return f"{name}.{zone_domain}"
