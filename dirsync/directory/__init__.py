"""Directory collaborators: connection interface, filters, schema translation."""

from dirsync.directory.connection import DirectoryConnection, SearchCursor, SearchScope
from dirsync.directory.filter import (
    AndNode,
    EqualityNode,
    FilterNode,
    GreaterEqNode,
    LessEqNode,
    NotNode,
    OrNode,
    PresenceNode,
    SubstringNode,
    parse_filter,
)
from dirsync.directory.memory import InMemoryDirectory
from dirsync.directory.schema import MappingSchemaTranslator, SchemaTranslator

__all__ = [
    "AndNode",
    "DirectoryConnection",
    "EqualityNode",
    "FilterNode",
    "GreaterEqNode",
    "InMemoryDirectory",
    "LessEqNode",
    "MappingSchemaTranslator",
    "NotNode",
    "OrNode",
    "PresenceNode",
    "SchemaTranslator",
    "SearchCursor",
    "SearchScope",
    "SubstringNode",
    "parse_filter",
]
