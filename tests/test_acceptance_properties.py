"""Property-based tests for the change acceptance predicate.

Feature: directory-change-polling
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import ADMIN_DN, SYNC_DN, account_info
from dirsync.models.entry import DirectoryEntry
from dirsync.sync.acceptance import (
    accept_all,
    changer_identity,
    default_acceptance_predicate,
    make_acceptance_predicate,
)


def person(**operational: str) -> DirectoryEntry:
    attributes = {"objectClass": ["top", "inetOrgPerson"], "uid": "x"}
    attributes.update(operational)
    return DirectoryEntry(dn="uid=x,ou=people,dc=example,dc=com", attributes=attributes)


rdn_values = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=1, max_size=12)


@given(rdn_values, st.sampled_from([str.upper, str.lower, str.title]), st.booleans())
@settings(max_examples=100)
def test_excluded_changer_is_rejected_regardless_of_dn_formatting(
    name: str, case, spaced: bool
):
    """DN comparison ignores case and whitespace around separators.

    **Feature: directory-change-polling, Property 4: Changer exclusion**
    """
    excluded = f"cn={name},ou=services,dc=example,dc=com"
    separator = " , " if spaced else ","
    modifier = case(separator.join(excluded.split(",")))

    entry = person(modifiersName=modifier, creatorsName=ADMIN_DN)

    assert not default_acceptance_predicate(entry, account_info(), [excluded])
    assert default_acceptance_predicate(entry, account_info(), [ADMIN_DN])


class TestDefaultPredicate:
    def test_accepts_entry_of_scanned_class_changed_by_someone_else(self) -> None:
        entry = person(modifiersName=ADMIN_DN)

        assert default_acceptance_predicate(entry, account_info(), [SYNC_DN])

    def test_rejects_entry_of_other_class(self) -> None:
        entry = DirectoryEntry(
            dn="cn=g,dc=example,dc=com",
            attributes={"objectClass": ["top", "groupOfNames"], "modifiersName": ADMIN_DN},
        )

        assert not default_acceptance_predicate(entry, account_info(), [])

    def test_all_scan_accepts_any_class(self) -> None:
        entry = DirectoryEntry(
            dn="cn=g,dc=example,dc=com",
            attributes={"objectClass": ["top", "groupOfNames"], "modifiersName": ADMIN_DN},
        )

        assert default_acceptance_predicate(entry, None, [SYNC_DN])

    def test_creator_is_used_when_never_modified(self) -> None:
        entry = person(creatorsName=SYNC_DN)

        assert changer_identity(entry) == SYNC_DN
        assert not default_acceptance_predicate(entry, account_info(), [SYNC_DN])

    def test_modifier_takes_precedence_over_creator(self) -> None:
        entry = person(creatorsName=SYNC_DN, modifiersName=ADMIN_DN)

        assert changer_identity(entry) == ADMIN_DN
        assert default_acceptance_predicate(entry, account_info(), [SYNC_DN])

    def test_entry_without_changer_is_accepted(self) -> None:
        assert default_acceptance_predicate(person(), account_info(), [SYNC_DN])

    def test_custom_changer_attributes(self) -> None:
        predicate = make_acceptance_predicate("lastChangedBy", "createdBy")
        entry = person(lastChangedBy=SYNC_DN, modifiersName=ADMIN_DN)

        assert not predicate(entry, account_info(), [SYNC_DN])

    def test_accept_all(self) -> None:
        assert accept_all(person(modifiersName=SYNC_DN), account_info(), [SYNC_DN])
