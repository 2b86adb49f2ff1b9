"""
Сопоставление идентичности сертификата: hostname, email, IP.

Четыре исхода (CheckMatch), а не булево значение:

    MATCH             предъявленное имя совпало с именем в сертификате
    NO_MATCH          сравнение завершено, совпадений нет
    INVALID_NAME      предъявленное имя синтаксически некорректно
    OPERATION_FAILED  извлечение/сравнение не удалось завершить

Правила для hostname (как X509_check_host):
    - сравнение меток без учёта регистра (только ASCII);
    - единственный wildcard, только в самой левой метке и не в IDNA-метке
      (``xn--``); после звёздочки должно быть не менее двух точек;
    - wildcard, занимающий всю метку, совпадает ровно с одной непустой
      меткой (несколько меток при MULTI_LABEL_WILDCARDS);
    - предъявленное имя с ведущей точкой (``.example.com``) совпадает с
      любым поддоменом;
    - если в SAN есть хотя бы одно имя нужного типа, CN субъекта не
      проверяется (если не задан ALWAYS_CHECK_SUBJECT).

Example:
    >>> match_host(["*.example.com"], [], "www.example.com", 0)
    (<CheckMatch.MATCH: 1>, '*.example.com')
    >>> match_host(["*.example.com"], [], "a.b.example.com", 0)
    (<CheckMatch.NO_MATCH: 0>, None)
"""

from __future__ import annotations

import enum
import ipaddress
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from src.security.native.core.exceptions import InvalidParameterError

logger = logging.getLogger(__name__)

CHECK_FLAG_ALWAYS_CHECK_SUBJECT = 0x1
CHECK_FLAG_NO_WILDCARDS = 0x2
CHECK_FLAG_NO_PARTIAL_WILDCARDS = 0x4
CHECK_FLAG_MULTI_LABEL_WILDCARDS = 0x8
CHECK_FLAG_SINGLE_LABEL_SUBDOMAINS = 0x10
CHECK_FLAG_NEVER_CHECK_SUBJECT = 0x20

# internal: presented host starts with '.'
_DOT_SUBDOMAINS = 0x8000

_LABEL_START = 0x1
_LABEL_IDNA = 0x2
_LABEL_HYPHEN = 0x4

_ASCII_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)

Equal = Callable[[str, str, int], bool]
MatchOutcome = Tuple["CheckMatch", Optional[str]]


class CheckMatch(enum.IntEnum):
    NO_MATCH = 0
    MATCH = 1
    INVALID_NAME = 2
    OPERATION_FAILED = 3


@dataclass(frozen=True)
class HostCheckOptions:
    """
    Высокоуровневые опции проверки hostname.

    Attributes:
        subject: "default" | "always" | "never" (проверка CN субъекта)
        wildcards: разрешить wildcard-имена
        partial_wildcards: разрешить ``f*.example.com``
        multi_label_wildcards: wildcard может покрыть несколько меток
        single_label_subdomains: ``.example.com`` совпадает только с
            поддоменом первого уровня
    """

    subject: str = "default"
    wildcards: bool = True
    partial_wildcards: bool = True
    multi_label_wildcards: bool = False
    single_label_subdomains: bool = False

    def __post_init__(self) -> None:
        if self.subject not in ("default", "always", "never"):
            raise InvalidParameterError(
                "subject", "must be 'default', 'always' or 'never'"
            )

    @property
    def flags(self) -> int:
        flags = 0
        if self.subject == "always":
            flags |= CHECK_FLAG_ALWAYS_CHECK_SUBJECT
        elif self.subject == "never":
            flags |= CHECK_FLAG_NEVER_CHECK_SUBJECT
        if not self.wildcards:
            flags |= CHECK_FLAG_NO_WILDCARDS
        if not self.partial_wildcards:
            flags |= CHECK_FLAG_NO_PARTIAL_WILDCARDS
        if self.multi_label_wildcards:
            flags |= CHECK_FLAG_MULTI_LABEL_WILDCARDS
        if self.single_label_subdomains:
            flags |= CHECK_FLAG_SINGLE_LABEL_SUBDOMAINS
        return flags


# ==============================================================================
# PRESENTED NAME VALIDATION
# ==============================================================================


def _has_control_chars(value: str) -> bool:
    return any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in value)


def normalize_host(host: str) -> Optional[str]:
    """
    Presented hostname ready for comparison, or None if it is invalid.

    Empty names, names made only of dots and names with control characters
    are invalid. A trailing dot is kept, so ``example.com.`` never equals a
    certificate name.
    """
    if not isinstance(host, str) or not host or _has_control_chars(host):
        return None
    if not host.strip("."):
        return None
    return host


def normalize_email(address: str) -> Optional[str]:
    if not isinstance(address, str) or _has_control_chars(address):
        return None
    local, sep, domain = address.rpartition("@")
    if not sep or not local or not domain:
        return None
    return address


def parse_ip(address: str) -> Optional[bytes]:
    """Packed address bytes (4 or 16), or None for an unparsable address."""
    if not isinstance(address, str) or "%" in address or _has_control_chars(address):
        return None
    try:
        if address.startswith("[") and address.endswith("]"):
            address = address[1:-1]
        return ipaddress.ip_address(address).packed
    except ValueError:
        return None


# ==============================================================================
# COMPARISON PRIMITIVES
# ==============================================================================


def _skip_prefix(pattern: str, subject: str, flags: int) -> str:
    # a '.'-prefixed subject matches an equal-length suffix of the pattern
    if not flags & _DOT_SUBDOMAINS:
        return pattern
    start = 0
    while len(pattern) - start > len(subject):
        if flags & CHECK_FLAG_SINGLE_LABEL_SUBDOMAINS and pattern[start] == ".":
            break
        start += 1
    if len(pattern) - start == len(subject):
        return pattern[start:]
    return pattern


def equal_nocase(pattern: str, subject: str, flags: int) -> bool:
    pattern = _skip_prefix(pattern, subject, flags)
    if len(pattern) != len(subject) or "\x00" in pattern:
        return False
    return pattern.translate(_ASCII_LOWER) == subject.translate(_ASCII_LOWER)


def equal_case(pattern: str, subject: str, flags: int) -> bool:
    return pattern == subject


def equal_email(pattern: str, subject: str, flags: int) -> bool:
    """Case-sensitive local part, case-insensitive domain after the last '@'."""
    if len(pattern) != len(subject):
        return False
    at = max(pattern.rfind("@"), subject.rfind("@"))
    if at <= 0:
        return pattern == subject
    if not equal_nocase(pattern[at:], subject[at:], 0):
        return False
    return pattern[:at] == subject[:at]


def _is_ldh(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "-")


def valid_star(pattern: str, flags: int) -> int:
    """
    Index of the single legal wildcard in ``pattern``, or -1.

    The star must sit in the first label, at the start or end of it (only
    as the whole label under NO_PARTIAL_WILDCARDS), outside IDNA labels,
    with at least two dots after it.
    """
    star = -1
    state = _LABEL_START
    dots = 0
    length = len(pattern)
    for i, ch in enumerate(pattern):
        if ch == "*":
            at_start = bool(state & _LABEL_START)
            at_end = i == length - 1 or pattern[i + 1] == "."
            if star >= 0 or state & _LABEL_IDNA or dots:
                return -1
            if flags & CHECK_FLAG_NO_PARTIAL_WILDCARDS and not (at_start and at_end):
                return -1
            if not at_start and not at_end:
                return -1
            star = i
            state &= ~_LABEL_START
        elif ch.isascii() and ch.isalnum():
            if state & _LABEL_START and pattern[i : i + 4].lower() == "xn--":
                state |= _LABEL_IDNA
            state &= ~(_LABEL_HYPHEN | _LABEL_START)
        elif ch == ".":
            if state & (_LABEL_HYPHEN | _LABEL_START):
                return -1
            state = _LABEL_START
            dots += 1
        elif ch == "-":
            if state & _LABEL_START:
                return -1
            state |= _LABEL_HYPHEN
        else:
            return -1
    if state & (_LABEL_START | _LABEL_HYPHEN) or dots < 2:
        return -1
    return star


def wildcard_match(prefix: str, suffix: str, subject: str, flags: int) -> bool:
    if len(subject) < len(prefix) + len(suffix):
        return False
    if not equal_nocase(prefix, subject[: len(prefix)], flags):
        return False
    wild_end = len(subject) - len(suffix)
    if not equal_nocase(subject[wild_end:], suffix, flags):
        return False
    wildcard = subject[len(prefix) : wild_end]
    allow_idna = False
    allow_multi = False
    if not prefix and suffix.startswith("."):
        # a whole-label wildcard must match at least one character
        if not wildcard:
            return False
        allow_idna = True
        allow_multi = bool(flags & CHECK_FLAG_MULTI_LABEL_WILDCARDS)
    if not allow_idna and subject[:4].lower() == "xn--":
        return False
    if wildcard == "*":
        return True
    return all(_is_ldh(ch) or (allow_multi and ch == ".") for ch in wildcard)


def equal_wildcard(pattern: str, subject: str, flags: int) -> bool:
    star = -1
    if not (len(subject) > 1 and subject.startswith(".")):
        star = valid_star(pattern, flags)
    if star < 0:
        return equal_nocase(pattern, subject, flags)
    return wildcard_match(pattern[:star], pattern[star + 1 :], subject, flags)


# ==============================================================================
# MATCHING
# ==============================================================================


def _check_names(
    presented: Optional[Sequence[str]],
    subject_names: Optional[Sequence[str]],
    target: str,
    equal: Equal,
    flags: int,
) -> MatchOutcome:
    if presented:
        for name in presented:
            if name and equal(name, target, flags):
                return CheckMatch.MATCH, name
        if not flags & CHECK_FLAG_ALWAYS_CHECK_SUBJECT:
            return CheckMatch.NO_MATCH, None
    if subject_names is None or flags & CHECK_FLAG_NEVER_CHECK_SUBJECT:
        return CheckMatch.NO_MATCH, None
    for name in subject_names:
        if name and equal(name, target, flags):
            return CheckMatch.MATCH, name
    return CheckMatch.NO_MATCH, None


def match_host(
    dns_names: Optional[Sequence[str]],
    common_names: Sequence[str],
    host: str,
    flags: int = 0,
) -> MatchOutcome:
    """
    Match ``host`` against SAN dNSName entries, then subject CNs.

    Args:
        dns_names: SAN dNSName values (None or empty when there are none).
        common_names: subject commonName values.
        host: presented hostname.
        flags: CHECK_FLAG_* bits.

    Returns:
        (CheckMatch, matched certificate name or None)
    """
    normalized = normalize_host(host)
    if normalized is None:
        logger.debug("Rejected invalid presented hostname")
        return CheckMatch.INVALID_NAME, None
    if len(normalized) > 1 and normalized.startswith("."):
        flags |= _DOT_SUBDOMAINS
    equal = equal_nocase if flags & CHECK_FLAG_NO_WILDCARDS else equal_wildcard
    return _check_names(dns_names, common_names, normalized, equal, flags)


def match_email(
    emails: Optional[Sequence[str]],
    subject_emails: Sequence[str],
    address: str,
    flags: int = 0,
) -> MatchOutcome:
    """Match an email address against SAN rfc822Name entries, then subject emailAddress."""
    normalized = normalize_email(address)
    if normalized is None:
        return CheckMatch.INVALID_NAME, None
    return _check_names(emails, subject_emails, normalized, equal_email, flags)


def match_ip(addresses: Optional[Sequence[bytes]], address: str) -> MatchOutcome:
    """Match an IPv4/IPv6 address against SAN iPAddress entries (packed form)."""
    packed = parse_ip(address)
    if packed is None:
        return CheckMatch.INVALID_NAME, None
    for candidate in addresses or ():
        if candidate == packed:
            return CheckMatch.MATCH, str(ipaddress.ip_address(candidate))
    return CheckMatch.NO_MATCH, None


__all__ = [
    "CHECK_FLAG_ALWAYS_CHECK_SUBJECT",
    "CHECK_FLAG_NO_WILDCARDS",
    "CHECK_FLAG_NO_PARTIAL_WILDCARDS",
    "CHECK_FLAG_MULTI_LABEL_WILDCARDS",
    "CHECK_FLAG_SINGLE_LABEL_SUBDOMAINS",
    "CHECK_FLAG_NEVER_CHECK_SUBJECT",
    "CheckMatch",
    "HostCheckOptions",
    "normalize_host",
    "normalize_email",
    "parse_ip",
    "equal_nocase",
    "equal_case",
    "equal_email",
    "equal_wildcard",
    "valid_star",
    "wildcard_match",
    "match_host",
    "match_email",
    "match_ip",
]
