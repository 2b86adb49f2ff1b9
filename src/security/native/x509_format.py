# -*- coding: utf-8 -*-
"""
RU: Безопасная текстовая форма полей сертификата (SAN, AIA, имена, время).
EN: Safe printers for certificate fields.

Alternative names are printed verbatim only when they are "safe"; any
value with separators, quotes or control characters is JSON-quoted so a
crafted name cannot split or forge entries of the rendered list.
"""
from __future__ import annotations

import ipaddress
from datetime import datetime, timezone
from typing import Dict, Final, Iterable, List, Optional

from cryptography import x509
from cryptography.x509.oid import AuthorityInformationAccessOID

_MONTHS: Final = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# OpenSSL short names by dotted OID
_SHORT_NAMES: Final[Dict[str, str]] = {
    "2.5.4.3": "CN",
    "2.5.4.4": "SN",
    "2.5.4.5": "serialNumber",
    "2.5.4.6": "C",
    "2.5.4.7": "L",
    "2.5.4.8": "ST",
    "2.5.4.9": "street",
    "2.5.4.10": "O",
    "2.5.4.11": "OU",
    "2.5.4.12": "title",
    "2.5.4.15": "businessCategory",
    "2.5.4.16": "postalAddress",
    "2.5.4.17": "postalCode",
    "2.5.4.42": "GN",
    "2.5.4.43": "initials",
    "2.5.4.44": "generationQualifier",
    "2.5.4.45": "x500UniqueIdentifier",
    "2.5.4.46": "dnQualifier",
    "2.5.4.65": "pseudonym",
    "0.9.2342.19200300.100.1.1": "UID",
    "0.9.2342.19200300.100.1.25": "DC",
    "1.2.840.113549.1.9.1": "emailAddress",
    "1.2.840.113549.1.9.2": "unstructuredName",
    "1.3.6.1.4.1.311.60.2.1.1": "jurisdictionL",
    "1.3.6.1.4.1.311.60.2.1.2": "jurisdictionST",
    "1.3.6.1.4.1.311.60.2.1.3": "jurisdictionC",
}

_RFC4514_NAMES: Final = {
    x509.ObjectIdentifier(dotted): short for dotted, short in _SHORT_NAMES.items()
}

_ACCESS_METHODS: Final = {
    AuthorityInformationAccessOID.OCSP: "OCSP",
    AuthorityInformationAccessOID.CA_ISSUERS: "CA Issuers",
}

_ESCAPE_2253: Final = frozenset(',+"\\<>;')


def short_name(oid: x509.ObjectIdentifier) -> str:
    return _SHORT_NAMES.get(oid.dotted_string, oid.dotted_string)


# ==============================================================================
# ALTERNATIVE NAMES
# ==============================================================================


def is_safe_alt_name(raw: bytes, utf8: bool) -> bool:
    for byte in raw:
        if byte in b'"\\,\'':
            return False
        if utf8:
            if byte < 0x20 or byte == 0x7F:
                return False
        elif byte < 0x20 or byte > 0x7E:
            return False
    return True


def print_alt_name(value: str, utf8: bool = False, prefix: Optional[str] = None) -> str:
    """
    Render one alternative-name value, JSON-quoting it when unsafe.

    Bytes that cannot be printed are written as ``\\u00XX`` (Latin-1).
    """
    raw = value.encode("utf-8")
    head = f"{prefix}:" if prefix else ""
    if is_safe_alt_name(raw, utf8):
        return head + value
    out = bytearray(b'"')
    out += head.encode("ascii")
    for byte in raw:
        if byte in b'"\\':
            out += b"\\" + bytes((byte,))
        elif (0x20 <= byte <= 0x7E and byte != 0x2C) or (utf8 and byte & 0x80):
            out.append(byte)
        else:
            out += b"\\u00%02x" % byte
    out += b'"'
    return out.decode("utf-8", errors="replace")


def _render_ip(value: object) -> str:
    if isinstance(value, ipaddress.IPv4Address):
        return str(value)
    if isinstance(value, ipaddress.IPv6Address):
        packed = value.packed
        groups = [(packed[i] << 8) | packed[i + 1] for i in range(0, 16, 2)]
        return ":".join(f"{group:X}" for group in groups)
    return "<invalid>"


def render_general_name(name: x509.GeneralName) -> str:
    if isinstance(name, x509.DNSName):
        return "DNS:" + print_alt_name(name.value)
    if isinstance(name, x509.RFC822Name):
        return "email:" + print_alt_name(name.value)
    if isinstance(name, x509.UniformResourceIdentifier):
        return "URI:" + print_alt_name(name.value)
    if isinstance(name, x509.DirectoryName):
        text = name.value.rfc4514_string(_RFC4514_NAMES)
        return "DirName:" + print_alt_name(text, utf8=True)
    if isinstance(name, x509.IPAddress):
        return "IP Address:" + _render_ip(name.value)
    if isinstance(name, x509.RegisteredID):
        return "Registered ID:" + name.value.dotted_string
    if isinstance(name, x509.OtherName):
        return "othername:<unsupported>"
    return "<unsupported>"


def render_subject_alt_name(names: Iterable[x509.GeneralName]) -> str:
    return ", ".join(render_general_name(name) for name in names)


def render_info_access(descriptions: Iterable[x509.AccessDescription]) -> str:
    lines: List[str] = []
    for desc in descriptions:
        method = _ACCESS_METHODS.get(desc.access_method, desc.access_method.dotted_string)
        lines.append(f"{method} - {render_general_name(desc.access_location)}")
    return "\n".join(lines)


# ==============================================================================
# NAMES AND TIMES
# ==============================================================================


def escape_name_value(value: str) -> str:
    """RFC 2253 escaping plus ``\\XX`` for control characters."""
    out: List[str] = []
    last = len(value) - 1
    for i, ch in enumerate(value):
        code = ord(ch)
        if code < 0x20 or code == 0x7F:
            out.append(f"\\{code:02X}")
        elif ch in _ESCAPE_2253:
            out.append("\\" + ch)
        elif (i == 0 and ch in "# ") or (i == last and ch == " "):
            out.append("\\" + ch)
        else:
            out.append(ch)
    return "".join(out)


def _attribute_value(attr: x509.NameAttribute) -> str:
    value = attr.value
    if isinstance(value, bytes):
        return "#" + value.hex().upper()
    return escape_name_value(value)


def render_name(name: x509.Name) -> str:
    """One ``SN=value`` line per RDN in encoded order; multi-valued RDNs use ``" + "``."""
    lines = []
    for rdn in name.rdns:
        lines.append(
            " + ".join(f"{short_name(attr.oid)}={_attribute_value(attr)}" for attr in rdn)
        )
    return "\n".join(lines)


def render_time(moment: datetime) -> str:
    """``Mon DD HH:MM:SS YYYY GMT`` with a space-padded day, always in UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return (
        f"{_MONTHS[moment.month - 1]} {moment.day:2d} "
        f"{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d} "
        f"{moment.year} GMT"
    )


__all__ = [
    "short_name",
    "is_safe_alt_name",
    "print_alt_name",
    "render_general_name",
    "render_subject_alt_name",
    "render_info_access",
    "escape_name_value",
    "render_name",
    "render_time",
]
