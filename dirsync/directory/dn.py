"""Distinguished name helpers."""

import re

_SEPARATOR_SPACE_RE = re.compile(r"\s*([,=+])\s*")


def normalize_dn(dn: str) -> str:
    """Lower-case a DN and drop insignificant whitespace around separators."""
    return _SEPARATOR_SPACE_RE.sub(r"\1", dn.strip()).lower()


def parent_dn(dn: str) -> str:
    """Return the DN of the parent entry ('' for a single-RDN name)."""
    normalized = normalize_dn(dn)
    index = _unescaped_comma(normalized)
    return "" if index < 0 else normalized[index + 1 :]


def is_descendant_or_self(dn: str, base: str) -> bool:
    """True when ``dn`` equals ``base`` or lies somewhere below it."""
    dn_n, base_n = normalize_dn(dn), normalize_dn(base)
    if not base_n:
        return True
    return dn_n == base_n or dn_n.endswith("," + base_n)


def dn_in(dn: str, candidates: list[str] | tuple[str, ...]) -> bool:
    """True when ``dn`` matches one of the candidate DNs."""
    wanted = normalize_dn(dn)
    return any(normalize_dn(candidate) == wanted for candidate in candidates)


def _unescaped_comma(dn: str) -> int:
    escaped = False
    for i, ch in enumerate(dn):
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == ",":
            return i
    return -1
