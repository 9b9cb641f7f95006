"""Turns a watermark into a change-selecting search filter."""

from pydantic import BaseModel, ConfigDict, Field

from dirsync.directory.filter import FilterNode, GreaterEqNode, OrNode
from dirsync.exceptions import InvalidArgumentError
from dirsync.sync.models import SyncToken
from dirsync.sync.watermark import Clock, current_watermark, watermark_from_token

MODIFY_TIMESTAMP = "modifyTimestamp"
CREATE_TIMESTAMP = "createTimestamp"
MODIFIERS_NAME = "modifiersName"
CREATORS_NAME = "creatorsName"


class ChangeQuery(BaseModel):
    """Search filter selecting entries changed at or after a watermark."""

    model_config = ConfigDict(frozen=True)

    watermark: str = Field(..., description="Lower bound of the change window (inclusive)")
    node: FilterNode = Field(..., description="Filter expression tree")

    @property
    def filter_text(self) -> str:
        return self.node.render()


def build_change_filter(
    watermark: str,
    modify_attribute: str = MODIFY_TIMESTAMP,
    create_attribute: str = CREATE_TIMESTAMP,
) -> ChangeQuery:
    """
    Build ``(|(modifyTimestamp>=W)(createTimestamp>=W))``.

    Entries that were created but never modified carry only the creation
    timestamp, so both markers are tested.

    Args:
        watermark: Lower bound, a generalized time string
        modify_attribute: Modification timestamp attribute
        create_attribute: Creation timestamp attribute

    Returns:
        ChangeQuery for the watermark

    Raises:
        InvalidArgumentError: If the watermark is not a string
    """
    if not isinstance(watermark, str):
        raise InvalidArgumentError(
            f"Watermark must be a string, got {type(watermark).__name__}"
        )
    node = OrNode(
        children=(
            GreaterEqNode(attribute=modify_attribute, value=watermark),
            GreaterEqNode(attribute=create_attribute, value=watermark),
        )
    )
    return ChangeQuery(watermark=watermark, node=node)


def resolve_since_watermark(token: SyncToken | None, clock: Clock | None = None) -> str:
    """
    Watermark to search from.

    Without a token the search starts from now, which finds nothing on the
    first call but establishes a resume point.
    """
    if token is None:
        return current_watermark(clock)
    return watermark_from_token(token)
