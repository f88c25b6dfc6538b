"""
Race result models.

Result rows come from several sources (meet results, the personal best
store, the permillili view) and do not agree on how the pool length is
encoded. `Course.parse` is the one place that knows every encoding.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional


class Course(Enum):
    """Pool length a result was swum in."""
    POOL_25M = "25m"
    POOL_50M = "50m"

    @classmethod
    def parse(cls, raw: Any) -> Optional["Course"]:
        """
        Normalize a raw course value.

        Returns None for values that match neither course; such rows
        never count as a 25m or a 50m result.
        """
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, bool):
            return None
        if isinstance(raw, str):
            raw = raw.strip().lower()
        return _COURSE_CODES.get(raw)

    @property
    def length(self) -> int:
        return 25 if self is Course.POOL_25M else 50


# Every encoding observed in the data sources. Numeric codes come from
# the meet tables (1 = long course, 0 and 2 = short course).
_COURSE_CODES: dict[Any, Course] = {
    1: Course.POOL_50M,
    "50m": Course.POOL_50M,
    0: Course.POOL_25M,
    2: Course.POOL_25M,
    "25m": Course.POOL_25M,
}


_TIME_RE = re.compile(r"^(?:(\d+):)?(\d+(?:[.,]\d+)?)$")


def parse_swim_time(value: Optional[str]) -> Optional[float]:
    """
    Convert a swim time such as "1:02.34" or "28.91" to seconds.

    Returns None for empty or unparseable values (e.g. "DQ").
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _TIME_RE.match(str(value).strip())
    if not match:
        return None
    minutes = int(match.group(1) or 0)
    seconds = float(match.group(2).replace(",", "."))
    return minutes * 60 + seconds


@dataclass(frozen=True)
class RaceEvent:
    """A scoreable individual event from the race catalog."""
    distance: int
    stroke_shortname: str
    raceid: int

    @property
    def label(self) -> str:
        return f"{self.distance}m {self.stroke_shortname}"


@dataclass(frozen=True)
class Result:
    """
    A single race outcome.

    `time` holds the display string as stored ("1:02.34"). `details`
    keeps any extra columns a view wants to show (limit strings, groups,
    category) without the core having to know about them.
    """
    fincode: Optional[int] = None
    name: Optional[str] = None
    distance: Optional[int] = None
    stroke_shortname: Optional[str] = None
    course: Any = None
    time: Optional[str] = None
    eventdate: Optional[date] = None
    meet: Optional[str] = None
    permillili: Optional[float] = None
    details: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def athlete_key(self) -> Any:
        return self.fincode if self.fincode else self.name

    @property
    def pool(self) -> Optional[Course]:
        return Course.parse(self.course)

    @property
    def seconds(self) -> Optional[float]:
        return parse_swim_time(self.time)


@dataclass(frozen=True)
class PoolBest:
    """Time, date and meet of a personal best in one pool length."""
    time: Optional[str] = None
    date: Optional[date] = None
    meet: Optional[str] = None

    @classmethod
    def from_result(cls, result: Optional[Result]) -> "PoolBest":
        if result is None:
            return cls()
        return cls(time=result.time, date=result.eventdate, meet=result.meet)

    @property
    def is_set(self) -> bool:
        return self.time is not None


@dataclass(frozen=True)
class PersonalBestRecord:
    """An athlete's best for one catalog event, split by pool length."""
    distance: int
    stroke_shortname: str
    raceid: int
    pool25m: PoolBest = field(default_factory=PoolBest)
    pool50m: PoolBest = field(default_factory=PoolBest)


@dataclass(frozen=True)
class ProgressRow:
    """
    Before/after times for one swimmer in one event.

    `delta_sec` is negative when the swimmer got faster.
    `miglioramento_perc` is the signed improvement percentage and may be
    missing when a time could not be compared.
    """
    name: str
    distance: int
    stroke_shortname: str
    course: Any = None
    eventdate_prima: Optional[date] = None
    tempo_prima: Optional[str] = None
    eventdate_dopo: Optional[date] = None
    tempo_dopo: Optional[str] = None
    delta_sec: Optional[float] = None
    miglioramento_perc: Optional[float] = None


@dataclass(frozen=True)
class SwimmerProgress:
    """All progress rows of one swimmer and their average improvement."""
    name: str
    rows: tuple
    average: float


@dataclass(frozen=True)
class ProgressSummary:
    """Progress grouped per swimmer plus the team-wide average."""
    swimmers: tuple
    team_average: float
    valid_count: int


@dataclass(frozen=True)
class Meet:
    """A competition on the meet calendar."""
    meetsid: int
    meetname: str
    mindate: Optional[date] = None
    maxdate: Optional[date] = None
    place: Optional[str] = None
    course: Any = None

    @property
    def pool(self) -> Optional[Course]:
        return Course.parse(self.course)


@dataclass(frozen=True)
class MeetEvent:
    """One event on a meet's programme, with its race from the catalog."""
    ms_id: int
    meet_id: int
    event_numb: int
    race_id: Optional[int] = None
    gender: Optional[str] = None
    category: Optional[str] = None
    distance: Optional[int] = None
    stroke_shortname: Optional[str] = None

    @property
    def label(self) -> str:
        race = f"{self.distance}m {self.stroke_shortname}" if self.distance else "?"
        parts = [str(self.event_numb), race] + [p for p in (self.gender, self.category) if p]
        return " - ".join(parts)


@dataclass(frozen=True)
class RaceSheetEntry:
    """
    A planned swim on a meet's race sheet.

    `personal_best` and `limit` are display strings the coach checks
    against before the meet; either may be missing.
    """
    eventnumb: int
    name: str
    fincode: Optional[int] = None
    distance: Optional[int] = None
    stroke_shortname: Optional[str] = None
    personal_best: Optional[str] = None
    limit: Optional[str] = None
