"""Shared fixtures for directory change polling tests."""

from datetime import datetime, timedelta

import pytest

from dirsync.directory.memory import InMemoryDirectory
from dirsync.directory.schema import MappingSchemaTranslator
from dirsync.models.entry import ObjectClassInfo
from dirsync.utils.generalized_time import parse_generalized_time

ADMIN_DN = "cn=admin,dc=example,dc=com"
SYNC_DN = "cn=dirsync,ou=services,dc=example,dc=com"
BASE_DN = "dc=example,dc=com"


class FixedClock:
    """Manually driven clock returning aware UTC datetimes."""

    def __init__(self, start: str | datetime = "20240101010000Z"):
        self.now = parse_generalized_time(start) if isinstance(start, str) else start

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: str | datetime) -> None:
        self.now = parse_generalized_time(value) if isinstance(value, str) else value

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def person(dn: str, uid: str, **operational: str) -> dict:
    """Record for an inetOrgPerson entry with the given operational attributes."""
    attributes = {
        "objectClass": ["top", "person", "organizationalPerson", "inetOrgPerson"],
        "uid": uid,
        "cn": uid.title(),
        "sn": uid.title(),
    }
    attributes.update(operational)
    return {"dn": dn, "attributes": attributes}


def group(dn: str, cn: str, **operational: str) -> dict:
    attributes = {"objectClass": ["top", "groupOfNames"], "cn": cn, "member": []}
    attributes.update(operational)
    return {"dn": dn, "attributes": attributes}


def account_info() -> ObjectClassInfo:
    return ObjectClassInfo(name="__ACCOUNT__", directory_object_class="inetOrgPerson")


def group_info() -> ObjectClassInfo:
    return ObjectClassInfo(name="__GROUP__", directory_object_class="groupOfNames")


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def translator() -> MappingSchemaTranslator:
    return MappingSchemaTranslator({"__ACCOUNT__": account_info(), "__GROUP__": group_info()})


@pytest.fixture
def three_record_directory(clock: FixedClock) -> InMemoryDirectory:
    """A modified after the watermark, B created long before it, C last modified by the sync identity."""
    return InMemoryDirectory.from_records(
        [
            person(
                "uid=a,ou=people,dc=example,dc=com",
                "a",
                createTimestamp="20230601000000Z",
                creatorsName=ADMIN_DN,
                modifyTimestamp="20240101000500Z",
                modifiersName=ADMIN_DN,
            ),
            person(
                "uid=b,ou=people,dc=example,dc=com",
                "b",
                createTimestamp="19991231235959Z",
                creatorsName=ADMIN_DN,
            ),
            person(
                "uid=c,ou=people,dc=example,dc=com",
                "c",
                createTimestamp="20231201000000Z",
                creatorsName=ADMIN_DN,
                modifyTimestamp="20240101000600Z",
                modifiersName=SYNC_DN,
            ),
        ],
        clock=clock,
    )
