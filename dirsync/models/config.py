"""Configuration models for directory change polling."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObjectClassMapping(BaseModel):
    """Maps one connector object class onto the directory schema."""

    directory_object_class: str = Field(
        default=..., description="Structural object class in the directory"
    )
    uid_attribute: str = Field(default="entryUUID", description="Unique identifier attribute")
    name_attribute: str = Field(default="dn", description="Name attribute ('dn' for the DN)")
    attributes: list[str] = Field(
        default_factory=list, description="Attributes to expose (empty means all)"
    )


def _default_object_classes() -> dict[str, ObjectClassMapping]:
    return {
        "__ACCOUNT__": ObjectClassMapping(directory_object_class="inetOrgPerson"),
        "__GROUP__": ObjectClassMapping(directory_object_class="groupOfNames"),
    }


class DirectoryConfig(BaseModel):
    """Configuration for the directory being polled."""

    base_context: str = Field(default=..., min_length=1, description="Search base DN")
    fixture_path: str | None = Field(
        default=None, description="YAML file seeding the in-memory directory"
    )
    modifiers_names_to_filter_out: list[str] = Field(
        default_factory=list,
        description="Modifier/creator DNs whose changes are ignored (e.g. the connector's own bind DN)",
    )
    object_classes: dict[str, ObjectClassMapping] = Field(
        default_factory=_default_object_classes,
        description="Connector object class name -> directory schema mapping",
    )


class SyncConfig(BaseModel):
    """Configuration for polling cycles."""

    poll_interval_seconds: int = Field(
        default=60, ge=1, le=86400, description="Delay between polling cycles"
    )
    checkpoint_path: str = Field(
        default="./dirsync_checkpoints.json", description="Where committed watermarks are stored"
    )
    max_retries: int = Field(
        default=3, ge=0, le=10, description="Retries of a scan after a transport failure"
    )
    retry_base_delay: float = Field(default=1.0, ge=0.0, description="Initial retry delay in seconds")
    retry_max_delay: float = Field(default=60.0, ge=0.0, description="Maximum retry delay in seconds")
    modify_timestamp_attribute: str = Field(default="modifyTimestamp")
    create_timestamp_attribute: str = Field(default="createTimestamp")
    modifiers_name_attribute: str = Field(default="modifiersName")
    creators_name_attribute: str = Field(default="creatorsName")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )


class AppConfig(BaseSettings):
    """Main application configuration.

    This class uses pydantic-settings to load configuration from environment
    variables with the DIRSYNC_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="DIRSYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    directory: DirectoryConfig
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
