"""
Domain models shared across the team views.

Like the rest of the core, these models know nothing about Snowflake,
HTTP or storage. Repositories build them from rows; aggregators read them.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class TrainingGroup(Enum):
    """Training group codes used on athletes, sessions and results."""
    ASS = "ASS"
    EA = "EA"
    EB = "EB"
    PROP = "PROP"

    @classmethod
    def parse(cls, raw: str) -> "TrainingGroup":
        try:
            return cls(raw.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown training group: {raw!r}")


class SessionType(Enum):
    """Kind of training session."""
    SWIM = "Swim"
    GYM = "Gym"


def split_groups(groups: Optional[str]) -> list[str]:
    """Split a comma separated group field into upper-cased codes."""
    if not groups:
        return []
    return [g.strip().upper() for g in groups.split(",") if g.strip()]


@dataclass(frozen=True)
class Athlete:
    """
    A team member.

    `fincode` is the stable identity. A handful of legacy rows have no
    fincode; for those, `key` falls back to the name.
    """
    fincode: Optional[int]
    name: str
    groups: Optional[str] = None
    photo: Optional[str] = None

    @property
    def key(self) -> object:
        return self.fincode if self.fincode else self.name

    @property
    def group_codes(self) -> list[str]:
        return split_groups(self.groups)


@dataclass(frozen=True)
class TrainingSession:
    """A scheduled swim or gym session. Read-only input to the core."""
    session_id: int
    date: date
    type: str
    groups: Optional[str] = None
    starttime: Optional[str] = None
    endtime: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    volume: Optional[int] = None
    location: Optional[str] = None
    poolname: Optional[str] = None
    poollength: Optional[int] = None

    @property
    def group_codes(self) -> list[str]:
        return split_groups(self.groups)
