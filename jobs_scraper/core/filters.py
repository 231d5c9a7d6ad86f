"""Search filter enumerations.

Enum values are the URL tokens LinkedIn expects; member names are the
user-facing spelling accepted in YAML (``full_time``, ``remote``, ...).
"""

from enum import Enum


class RelevanceFilter(str, Enum):
    RELEVANT = "R"
    RECENT = "DD"


class TimeFilter(str, Enum):
    ANY = ""
    DAY = "r86400"
    WEEK = "r604800"
    MONTH = "r2592000"


class TypeFilter(str, Enum):
    FULL_TIME = "F"
    PART_TIME = "P"
    TEMPORARY = "T"
    CONTRACT = "C"
    INTERNSHIP = "I"
    VOLUNTEER = "V"
    OTHER = "O"


class ExperienceLevelFilter(str, Enum):
    INTERNSHIP = "1"
    ENTRY_LEVEL = "2"
    ASSOCIATE = "3"
    MID_SENIOR = "4"
    DIRECTOR = "5"
    EXECUTIVE = "6"


class OnSiteOrRemoteFilter(str, Enum):
    ON_SITE = "1"
    REMOTE = "2"
    HYBRID = "3"


def resolve_member_name(enum_cls: type[Enum], value: object) -> object:
    """Map a member name (``"full_time"``, ``"on-site"``) to its token value.

    Anything that is not a known member name is returned untouched so that
    validation reports it against the real enum.
    """
    if not isinstance(value, str):
        return value
    key = value.strip().upper().replace("-", "_").replace(" ", "_")
    member = enum_cls.__members__.get(key)
    if member is None:
        return value
    return member.value
