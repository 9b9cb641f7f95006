"""Pydantic models for directory entries and connector objects."""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DirectoryEntry(BaseModel):
    """A native directory record: a DN plus multi-valued attributes.

    Attribute names are matched case-insensitively, as directory servers do.
    """

    dn: str = Field(default=..., min_length=1, description="Distinguished name of the entry")
    attributes: dict[str, list[str]] = Field(
        default_factory=dict, description="Attribute values keyed by attribute name"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "dn": "uid=jdoe,ou=people,dc=example,dc=com",
                "attributes": {
                    "objectClass": ["top", "inetOrgPerson"],
                    "uid": ["jdoe"],
                    "cn": ["John Doe"],
                    "modifyTimestamp": ["20240101000500Z"],
                    "modifiersName": ["cn=admin,dc=example,dc=com"],
                },
            }
        }
    }

    @field_validator("attributes", mode="before")
    @classmethod
    def coerce_values_to_lists(cls, v: Any) -> Any:
        """Accept scalar attribute values and wrap them in single-element lists."""
        if not isinstance(v, dict):
            return v
        coerced: dict[str, list[str]] = {}
        for name, values in v.items():
            if values is None:
                continue
            if isinstance(values, (list, tuple, set)):
                coerced[name] = [str(x) for x in values]
            else:
                coerced[name] = [str(values)]
        return coerced

    def _key_for(self, name: str) -> str | None:
        lowered = name.lower()
        for key in self.attributes:
            if key.lower() == lowered:
                return key
        return None

    def get(self, name: str) -> list[str]:
        """Return all values of an attribute, or an empty list."""
        key = self._key_for(name)
        if key is None:
            return []
        return list(self.attributes[key])

    def first(self, name: str) -> str | None:
        """Return the first value of an attribute, or None."""
        values = self.get(name)
        return values[0] if values else None

    def has_attribute(self, name: str) -> bool:
        return self._key_for(name) is not None

    def has_object_class(self, object_class: str) -> bool:
        """Check the objectClass attribute for a value (case-insensitive)."""
        wanted = object_class.lower()
        return any(value.lower() == wanted for value in self.get("objectClass"))

    def project(self, attribute_names: list[str], operational: set[str]) -> "DirectoryEntry":
        """
        Return a copy holding only the requested attributes.

        ``*`` selects every attribute that is not operational; operational
        attributes are returned only when named explicitly.

        Args:
            attribute_names: Requested attribute names (may include ``*``)
            operational: Lower-cased names of operational attributes

        Returns:
            New entry with the projected attributes
        """
        requested = {name.lower() for name in attribute_names}
        all_user = "*" in requested or not requested
        projected: dict[str, list[str]] = {}
        for key, values in self.attributes.items():
            lowered = key.lower()
            if lowered in requested or (all_user and lowered not in operational):
                projected[key] = list(values)
        return DirectoryEntry(dn=self.dn, attributes=projected)


class ObjectClass(BaseModel):
    """Connector-side object class selector."""

    ALL_NAME: ClassVar[str] = "__ALL__"
    ACCOUNT_NAME: ClassVar[str] = "__ACCOUNT__"
    GROUP_NAME: ClassVar[str] = "__GROUP__"

    model_config = ConfigDict(frozen=True)

    name: str = Field(default=..., min_length=1, description="Object class name")

    def is_all(self) -> bool:
        """True when this selector means every object class."""
        return self.name == self.ALL_NAME

    @classmethod
    def all(cls) -> "ObjectClass":
        return cls(name=cls.ALL_NAME)

    def __str__(self) -> str:
        return self.name


class ObjectClassInfo(BaseModel):
    """Descriptor linking a connector object class to its directory schema."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default=..., description="Connector object class name")
    directory_object_class: str = Field(
        default=..., description="Structural object class in the directory (e.g. inetOrgPerson)"
    )
    uid_attribute: str = Field(
        default="entryUUID", description="Attribute holding the stable unique identifier"
    )
    name_attribute: str = Field(
        default="dn", description="Attribute used as the object's name ('dn' for the DN itself)"
    )
    attributes: tuple[str, ...] = Field(
        default=(), description="Attributes exposed on connector objects (empty means all)"
    )


class ConnectorObject(BaseModel):
    """Canonical representation of a directory entry handed to change handlers."""

    model_config = ConfigDict(frozen=True)

    object_class: str = Field(default=..., description="Connector object class name")
    uid: str = Field(default=..., min_length=1, description="Stable unique identifier")
    name: str = Field(default=..., min_length=1, description="Object name (usually the DN)")
    attributes: dict[str, list[str]] = Field(
        default_factory=dict, description="Translated attribute values"
    )


class OperationOptions(BaseModel):
    """Options bag passed through a sync call."""

    attributes_to_get: list[str] | None = Field(
        default=None, description="Attributes to request in addition to change markers"
    )
