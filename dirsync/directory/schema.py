"""Schema translation between directory entries and connector objects."""

from typing import Protocol

import structlog

from dirsync.exceptions import TranslationError
from dirsync.models.config import DirectoryConfig
from dirsync.models.entry import ConnectorObject, DirectoryEntry, ObjectClass, ObjectClassInfo

log = structlog.stdlib.get_logger()


class SchemaTranslator(Protocol):
    """Resolves object class descriptors and translates entries."""

    def find_object_class_info(self, object_class: ObjectClass) -> ObjectClassInfo | None: ...

    def identifier_attributes(self) -> list[str]: ...

    def to_connector_object(
        self, info: ObjectClassInfo | None, entry: DirectoryEntry
    ) -> ConnectorObject: ...


class MappingSchemaTranslator:
    """Translator driven by a static connector-class to directory-class mapping."""

    def __init__(self, object_classes: dict[str, ObjectClassInfo]):
        """
        Initialize translator.

        Args:
            object_classes: Descriptors keyed by connector object class name
        """
        self._object_classes: dict[str, ObjectClassInfo] = dict(object_classes)
        log.info("schema_translator_initialized", object_classes=sorted(self._object_classes))

    @classmethod
    def from_config(cls, config: DirectoryConfig) -> "MappingSchemaTranslator":
        return cls(
            {
                name: ObjectClassInfo(
                    name=name,
                    directory_object_class=mapping.directory_object_class,
                    uid_attribute=mapping.uid_attribute,
                    name_attribute=mapping.name_attribute,
                    attributes=tuple(mapping.attributes),
                )
                for name, mapping in config.object_classes.items()
            }
        )

    @property
    def object_class_names(self) -> list[str]:
        return list(self._object_classes)

    def find_object_class_info(self, object_class: ObjectClass) -> ObjectClassInfo | None:
        """Return the descriptor for a connector object class, or None if unknown."""
        return self._object_classes.get(object_class.name)

    def identifier_attributes(self) -> list[str]:
        """
        Uid and name attributes of every descriptor, plus ``entryUUID``.

        An entry of an ALL scan may resolve to any descriptor, or to the
        default one keyed on ``entryUUID``; ``dn`` is never requested.
        """
        names = ["entryUUID"]
        for info in self._object_classes.values():
            names.extend((info.uid_attribute, info.name_attribute))

        attributes: list[str] = []
        seen: set[str] = set()
        for name in names:
            if name.lower() != "dn" and name.lower() not in seen:
                seen.add(name.lower())
                attributes.append(name)
        return attributes

    def resolve_entry_object_class(self, entry: DirectoryEntry) -> ObjectClassInfo | None:
        """
        Work out an entry's descriptor from its objectClass values.

        A configured mapping wins; otherwise the entry's most specific object
        class (the last value other than ``top``) is used as is.
        """
        for info in self._object_classes.values():
            if entry.has_object_class(info.directory_object_class):
                return info

        classes = [value for value in entry.get("objectClass") if value.lower() != "top"]
        if not classes:
            return None
        return ObjectClassInfo(name=classes[-1], directory_object_class=classes[-1])

    def to_connector_object(
        self, info: ObjectClassInfo | None, entry: DirectoryEntry
    ) -> ConnectorObject:
        """
        Convert a directory entry to a connector object.

        Args:
            info: Descriptor of the entry's class; None resolves it from the
                  entry's objectClass values
            entry: Entry returned by the directory

        Returns:
            Translated connector object

        Raises:
            TranslationError: If the class cannot be resolved or the uid/name is missing
        """
        if info is None:
            info = self.resolve_entry_object_class(entry)
            if info is None:
                raise TranslationError(
                    f"No object class mapping for entry {entry.dn} "
                    f"(objectClass={entry.get('objectClass')})",
                    dn=entry.dn,
                )

        uid = entry.dn if info.uid_attribute.lower() == "dn" else entry.first(info.uid_attribute)
        if not uid:
            raise TranslationError(
                f"Entry {entry.dn} has no value for uid attribute {info.uid_attribute}",
                dn=entry.dn,
            )

        name = entry.dn if info.name_attribute.lower() == "dn" else entry.first(info.name_attribute)
        if not name:
            raise TranslationError(
                f"Entry {entry.dn} has no value for name attribute {info.name_attribute}",
                dn=entry.dn,
            )

        if info.attributes:
            wanted = {a.lower() for a in info.attributes}
            attributes = {k: list(v) for k, v in entry.attributes.items() if k.lower() in wanted}
        else:
            attributes = {k: list(v) for k, v in entry.attributes.items()}

        return ConnectorObject(object_class=info.name, uid=uid, name=name, attributes=attributes)
