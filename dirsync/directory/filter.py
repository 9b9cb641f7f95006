"""Search filter expressions (RFC 4515): building, rendering, parsing and evaluation."""

import re
from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field

from dirsync.exceptions import FilterSyntaxError
from dirsync.models.entry import DirectoryEntry
from dirsync.utils.generalized_time import parse_generalized_time

_ESCAPES = {
    "\\": "\\5c",
    "*": "\\2a",
    "(": "\\28",
    ")": "\\29",
    "\x00": "\\00",
}

_ATTRIBUTE_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9\-.;]*")


def escape_filter_value(value: str) -> str:
    """Escape an assertion value for inclusion in filter text."""
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def unescape_filter_value(value: str) -> str:
    """Reverse ``escape_filter_value`` (``\\XX`` hex escapes)."""
    out = bytearray()
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and _is_hex(value[i + 1 : i + 3]):
            out.append(int(value[i + 1 : i + 3], 16))
            i += 3
            continue
        out.extend(ch.encode("utf-8"))
        i += 1
    return out.decode("utf-8", errors="replace")


def _is_hex(text: str) -> bool:
    return len(text) == 2 and all(c in "0123456789abcdefABCDEF" for c in text)


def compare_values(left: str, right: str) -> int:
    """
    Order two attribute values.

    Generalized time values compare chronologically, integers numerically,
    anything else as case-insensitive strings.

    Returns:
        Negative, zero or positive like ``cmp``
    """
    try:
        left_dt = parse_generalized_time(left)
        right_dt = parse_generalized_time(right)
    except ValueError:
        pass
    else:
        return (left_dt > right_dt) - (left_dt < right_dt)

    if _is_int(left) and _is_int(right):
        a, b = int(left), int(right)
        return (a > b) - (a < b)

    a_s, b_s = left.casefold(), right.casefold()
    return (a_s > b_s) - (a_s < b_s)


def _is_int(text: str) -> bool:
    return bool(re.fullmatch(r"-?\d+", text.strip()))


class FilterNode(BaseModel, ABC):
    """Base class of filter expression nodes."""

    model_config = ConfigDict(frozen=True)

    @abstractmethod
    def matches(self, entry: DirectoryEntry) -> bool:
        """True if the entry satisfies this expression."""

    @abstractmethod
    def render(self) -> str:
        """RFC 4515 text of this expression."""

    def __str__(self) -> str:
        return self.render()


class EqualityNode(FilterNode):
    attribute: str
    value: str

    def matches(self, entry: DirectoryEntry) -> bool:
        return any(compare_values(v, self.value) == 0 for v in entry.get(self.attribute))

    def render(self) -> str:
        return f"({self.attribute}={escape_filter_value(self.value)})"


class GreaterEqNode(FilterNode):
    attribute: str
    value: str

    def matches(self, entry: DirectoryEntry) -> bool:
        return any(compare_values(v, self.value) >= 0 for v in entry.get(self.attribute))

    def render(self) -> str:
        return f"({self.attribute}>={escape_filter_value(self.value)})"


class LessEqNode(FilterNode):
    attribute: str
    value: str

    def matches(self, entry: DirectoryEntry) -> bool:
        return any(compare_values(v, self.value) <= 0 for v in entry.get(self.attribute))

    def render(self) -> str:
        return f"({self.attribute}<={escape_filter_value(self.value)})"


class PresenceNode(FilterNode):
    attribute: str

    def matches(self, entry: DirectoryEntry) -> bool:
        return entry.has_attribute(self.attribute)

    def render(self) -> str:
        return f"({self.attribute}=*)"


class SubstringNode(FilterNode):
    """Substring assertion such as ``(cn=Jo*n*Doe)``."""

    attribute: str
    initial: str | None = None
    middle: tuple[str, ...] = ()
    final: str | None = None

    def matches(self, entry: DirectoryEntry) -> bool:
        return any(self._match_value(v) for v in entry.get(self.attribute))

    def _match_value(self, value: str) -> bool:
        text = value.casefold()
        pos = 0
        if self.initial is not None:
            initial = self.initial.casefold()
            if not text.startswith(initial):
                return False
            pos = len(initial)
        for part in self.middle:
            found = text.find(part.casefold(), pos)
            if found < 0:
                return False
            pos = found + len(part)
        if self.final is not None:
            final = self.final.casefold()
            return len(text) - len(final) >= pos and text.endswith(final)
        return True

    def render(self) -> str:
        pieces = [escape_filter_value(self.initial or "")]
        pieces.extend(escape_filter_value(part) for part in self.middle)
        pieces.append(escape_filter_value(self.final or ""))
        return f"({self.attribute}={'*'.join(pieces)})"


class AndNode(FilterNode):
    children: tuple[FilterNode, ...] = Field(default=())

    def matches(self, entry: DirectoryEntry) -> bool:
        return all(child.matches(entry) for child in self.children)

    def render(self) -> str:
        return "(&" + "".join(child.render() for child in self.children) + ")"


class OrNode(FilterNode):
    children: tuple[FilterNode, ...] = Field(default=())

    def matches(self, entry: DirectoryEntry) -> bool:
        return any(child.matches(entry) for child in self.children)

    def render(self) -> str:
        return "(|" + "".join(child.render() for child in self.children) + ")"


class NotNode(FilterNode):
    child: FilterNode

    def matches(self, entry: DirectoryEntry) -> bool:
        return not self.child.matches(entry)

    def render(self) -> str:
        return f"(!{self.child.render()})"


class _FilterParser:
    """Recursive-descent parser for RFC 4515 filter strings."""

    def __init__(self, text: str):
        self._text = text
        self._pos = 0

    def parse(self) -> FilterNode:
        text = self._text.strip()
        if not text:
            raise FilterSyntaxError("Empty filter", self._text, 0)
        if not text.startswith("("):
            text = f"({text})"
        self._text = text
        node = self._parse_filter()
        if self._pos != len(self._text):
            raise FilterSyntaxError("Unexpected trailing text", self._text, self._pos)
        return node

    def _peek(self) -> str:
        return self._text[self._pos] if self._pos < len(self._text) else ""

    def _expect(self, ch: str) -> None:
        if self._peek() != ch:
            raise FilterSyntaxError(f"Expected {ch!r}", self._text, self._pos)
        self._pos += 1

    def _parse_filter(self) -> FilterNode:
        self._expect("(")
        ch = self._peek()
        if ch == "&":
            self._pos += 1
            node: FilterNode = AndNode(children=self._parse_list())
        elif ch == "|":
            self._pos += 1
            node = OrNode(children=self._parse_list())
        elif ch == "!":
            self._pos += 1
            node = NotNode(child=self._parse_filter())
        else:
            node = self._parse_item()
        self._expect(")")
        return node

    def _parse_list(self) -> tuple[FilterNode, ...]:
        children: list[FilterNode] = []
        while self._peek() == "(":
            children.append(self._parse_filter())
        if not children:
            raise FilterSyntaxError("Empty filter list", self._text, self._pos)
        return tuple(children)

    def _parse_item(self) -> FilterNode:
        match = _ATTRIBUTE_RE.match(self._text, self._pos)
        if match is None:
            raise FilterSyntaxError("Expected attribute description", self._text, self._pos)
        attribute = match.group(0)
        self._pos = match.end()

        op = self._text[self._pos : self._pos + 2]
        if op in (">=", "<=", "~="):
            self._pos += 2
        elif op[:1] == "=":
            op = "="
            self._pos += 1
        else:
            raise FilterSyntaxError("Expected filter operator", self._text, self._pos)

        end = self._text.find(")", self._pos)
        if end < 0:
            raise FilterSyntaxError("Unterminated filter item", self._text, self._pos)
        raw_value = self._text[self._pos : end]
        if "(" in raw_value:
            raise FilterSyntaxError("Unescaped '(' in value", self._text, self._pos)
        self._pos = end

        if op == ">=":
            return GreaterEqNode(attribute=attribute, value=unescape_filter_value(raw_value))
        if op == "<=":
            return LessEqNode(attribute=attribute, value=unescape_filter_value(raw_value))
        if op == "~=":
            return EqualityNode(attribute=attribute, value=unescape_filter_value(raw_value))
        if raw_value == "*":
            return PresenceNode(attribute=attribute)
        if "*" in raw_value:
            parts = raw_value.split("*")
            return SubstringNode(
                attribute=attribute,
                initial=unescape_filter_value(parts[0]) if parts[0] else None,
                middle=tuple(unescape_filter_value(p) for p in parts[1:-1] if p),
                final=unescape_filter_value(parts[-1]) if parts[-1] else None,
            )
        return EqualityNode(attribute=attribute, value=unescape_filter_value(raw_value))


def parse_filter(text: str) -> FilterNode:
    """
    Parse RFC 4515 filter text into a filter tree.

    A filter missing its outer parentheses (``objectClass=*``) is accepted.

    Raises:
        FilterSyntaxError: If the text is malformed
    """
    return _FilterParser(text).parse()
