"""Acceptance predicates deciding which found entries become change events."""

from typing import Callable, Sequence

import structlog

from dirsync.directory.dn import dn_in
from dirsync.models.entry import DirectoryEntry, ObjectClassInfo
from dirsync.sync.query_builder import CREATORS_NAME, MODIFIERS_NAME

log = structlog.stdlib.get_logger()

AcceptancePredicate = Callable[[DirectoryEntry, ObjectClassInfo | None, Sequence[str]], bool]


def changer_identity(
    entry: DirectoryEntry,
    modifiers_attribute: str = MODIFIERS_NAME,
    creators_attribute: str = CREATORS_NAME,
) -> str | None:
    """Who made the latest change: the modifier, or the creator of a never-modified entry."""
    return entry.first(modifiers_attribute) or entry.first(creators_attribute)


def make_acceptance_predicate(
    modifiers_attribute: str = MODIFIERS_NAME,
    creators_attribute: str = CREATORS_NAME,
) -> AcceptancePredicate:
    """
    Build the standard predicate for the given changer attributes.

    The predicate rejects an entry that belongs to another object class than
    the scanned one, or whose latest change was made by an excluded identity.

    Args:
        modifiers_attribute: Attribute naming the last modifier
        creators_attribute: Attribute naming the creator

    Returns:
        Predicate ``(entry, object_class_info, excluded_identities) -> bool``
    """

    def accept(
        entry: DirectoryEntry,
        object_class_info: ObjectClassInfo | None,
        excluded_identities: Sequence[str],
    ) -> bool:
        if object_class_info is not None and not entry.has_object_class(
            object_class_info.directory_object_class
        ):
            log.debug(
                "entry_rejected_object_class",
                dn=entry.dn,
                expected=object_class_info.directory_object_class,
            )
            return False

        if excluded_identities:
            changer = changer_identity(entry, modifiers_attribute, creators_attribute)
            if changer is not None and dn_in(changer, tuple(excluded_identities)):
                log.debug("entry_rejected_changer", dn=entry.dn, changer=changer)
                return False

        return True

    return accept


default_acceptance_predicate: AcceptancePredicate = make_acceptance_predicate()


def accept_all(
    entry: DirectoryEntry,
    object_class_info: ObjectClassInfo | None,
    excluded_identities: Sequence[str],
) -> bool:
    return True
