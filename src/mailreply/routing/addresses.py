"""Address syntax checks and case-insensitive address set helpers.

All comparisons trim whitespace and ignore case.  Helpers that deduplicate
keep the first spelling seen and preserve order.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

_LOCAL_PART = r"[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
_DOMAIN_LABEL = r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
_ADDRESS_RE = re.compile(rf"{_LOCAL_PART}@{_DOMAIN_LABEL}(?:\.{_DOMAIN_LABEL})+")


def address_key(address: str) -> str:
    """Comparison key for an address."""
    return address.strip().lower()


def is_valid_address(address: str) -> bool:
    """Basic address syntax check.  Says nothing about domain policy."""
    candidate = address.strip()
    return len(candidate) <= 254 and _ADDRESS_RE.fullmatch(candidate) is not None


def valid_addresses(addresses: Iterable[str]) -> list[str]:
    """The syntactically valid entries of *addresses*, trimmed, in order."""
    return [a.strip() for a in addresses if is_valid_address(a)]


def same_address(left: str, right: str) -> bool:
    return address_key(left) == address_key(right)


def contains_address(addresses: Iterable[str], address: str) -> bool:
    key = address_key(address)
    return any(address_key(candidate) == key for candidate in addresses)


def dedupe(addresses: Iterable[str], exclude: Iterable[str] = ()) -> list[str]:
    """Drop duplicates and anything in *exclude*, keeping first spellings in order.

    Args:
        addresses: Addresses in priority order.
        exclude: Addresses that must not appear in the result.

    Returns:
        The trimmed, deduplicated list.
    """
    seen = {address_key(a) for a in exclude}
    result: list[str] = []
    for address in addresses:
        key = address_key(address)
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(address.strip())
    return result


def domain_of(address: str) -> str:
    """Lower-cased domain part, or ``""`` when there is no ``@``."""
    _, at, domain = address.strip().rpartition("@")
    return domain.lower() if at else ""
