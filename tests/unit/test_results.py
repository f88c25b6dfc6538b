"""
Unit tests for race result logic: course normalization, personal bests,
permillili ranking and progress aggregation.
"""

from datetime import date

import pytest

from teammanager.core.results import (
    Course,
    Meet,
    MeetEvent,
    ProgressRow,
    RaceEvent,
    Result,
    best_by_athlete,
    build_event_catalog,
    fastest_time,
    first_match,
    get_strategy,
    group_by_athlete,
    parse_swim_time,
    pending_meets,
    select_personal_bests,
    sort_progress_rows,
    summarize_progress,
)


# ---------------------------------------------------------------------------
# Course and Time Parsing Tests
# ---------------------------------------------------------------------------

class TestCourse:
    """Tests for normalizing course encodings."""

    @pytest.mark.parametrize("raw", [1, "50m", "50M", " 50m "])
    def test_long_course_encodings(self, raw):
        assert Course.parse(raw) is Course.POOL_50M

    @pytest.mark.parametrize("raw", [0, 2, "25m"])
    def test_short_course_encodings(self, raw):
        assert Course.parse(raw) is Course.POOL_25M

    @pytest.mark.parametrize("raw", [None, 3, "1", "33m", True])
    def test_unknown_values_match_no_course(self, raw):
        assert Course.parse(raw) is None

    def test_length(self):
        assert Course.POOL_25M.length == 25
        assert Course.POOL_50M.length == 50


class TestParseSwimTime:
    """Tests for converting display times to seconds."""

    def test_minutes_and_seconds(self):
        assert parse_swim_time("1:02.34") == pytest.approx(62.34)

    def test_seconds_only(self):
        assert parse_swim_time("28.91") == pytest.approx(28.91)

    def test_comma_decimal(self):
        assert parse_swim_time("2:10,05") == pytest.approx(130.05)

    @pytest.mark.parametrize("value", [None, "", "DQ", "1:xx"])
    def test_unparseable_values(self, value):
        assert parse_swim_time(value) is None


# ---------------------------------------------------------------------------
# Personal Best Tests
# ---------------------------------------------------------------------------

@pytest.fixture
def catalog():
    return [
        RaceEvent(distance=100, stroke_shortname="SL", raceid=3),
        RaceEvent(distance=50, stroke_shortname="SL", raceid=1),
    ]


def _pb(course, time, meet="Meet", distance=50, stroke="SL", name="Rossi Anna"):
    return Result(
        name=name,
        distance=distance,
        stroke_shortname=stroke,
        course=course,
        time=time,
        eventdate=date(2024, 12, 1),
        meet=meet,
    )


class TestEventCatalog:
    """Tests for building the event list."""

    def test_deduplicates_and_orders_by_raceid(self, catalog):
        events = build_event_catalog(catalog + [RaceEvent(50, "SL", 1)])
        assert [event.raceid for event in events] == [1, 3]

    def test_label(self):
        assert RaceEvent(200, "MI", 9).label == "200m MI"


class TestSelectPersonalBests:
    """Tests for choosing the 25m and 50m result per event."""

    def test_first_match_takes_store_order(self, catalog):
        results = [_pb("25m", "30.50", meet="Slow"), _pb("25m", "29.10", meet="Fast")]

        records = select_personal_bests(build_event_catalog(catalog), results)

        assert records[0].pool25m.time == "30.50"
        assert records[0].pool25m.meet == "Slow"

    def test_fastest_time_takes_lowest_time(self, catalog):
        results = [_pb("25m", "30.50"), _pb("25m", "29.10"), _pb("25m", "DQ")]

        records = select_personal_bests(build_event_catalog(catalog), results, fastest_time)

        assert records[0].pool25m.time == "29.10"

    def test_course_encodings_are_normalized(self, catalog):
        results = [_pb(1, "28.00"), _pb(2, "27.50")]

        record = select_personal_bests(build_event_catalog(catalog), results)[0]

        assert record.pool50m.time == "28.00"
        assert record.pool25m.time == "27.50"

    def test_rows_with_unknown_course_are_ignored(self, catalog):
        record = select_personal_bests(build_event_catalog(catalog), [_pb("33m", "27.00")])[0]
        assert not record.pool25m.is_set
        assert not record.pool50m.is_set

    def test_every_catalog_event_gets_a_record(self, catalog):
        records = select_personal_bests(build_event_catalog(catalog), [])
        assert [(r.distance, r.raceid) for r in records] == [(50, 1), (100, 3)]
        assert all(r.pool25m.time is None and r.pool50m.time is None for r in records)

    def test_matching_uses_distance_and_stroke(self, catalog):
        results = [_pb("25m", "1:05.00", distance=100), _pb("25m", "35.00", stroke="DO")]

        records = select_personal_bests(build_event_catalog(catalog), results)

        assert records[0].pool25m.time is None
        assert records[1].pool25m.time == "1:05.00"


class TestStrategies:
    """Tests for the strategy registry."""

    def test_lookup_by_name(self):
        assert get_strategy("first_match") is first_match
        assert get_strategy("fastest_time") is fastest_time

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown personal best strategy"):
            get_strategy("slowest")


# ---------------------------------------------------------------------------
# Ranking Tests
# ---------------------------------------------------------------------------

def _scored(fincode, permillili, name="Athlete", meet=None):
    return Result(fincode=fincode, name=name, permillili=permillili, meet=meet)


class TestBestByAthlete:
    """Tests for the permillili ranking."""

    def test_keeps_highest_score_per_athlete(self):
        ranked = best_by_athlete([_scored(7, 500), _scored(7, 650), _scored(7, 600)])
        assert len(ranked) == 1
        assert ranked[0].permillili == 650

    def test_orders_athletes_by_score(self):
        ranked = best_by_athlete([_scored(1, 700), _scored(2, 820), _scored(3, 640)])
        assert [r.fincode for r in ranked] == [2, 1, 3]

    def test_first_row_wins_ties(self):
        ranked = best_by_athlete([_scored(7, 650, meet="first"), _scored(7, 650, meet="second")])
        assert ranked[0].meet == "first"

    def test_equal_scores_keep_first_seen_order(self):
        ranked = best_by_athlete([_scored(4, 600), _scored(5, 600)])
        assert [r.fincode for r in ranked] == [4, 5]

    def test_missing_fincode_falls_back_to_name(self):
        ranked = best_by_athlete([
            _scored(None, 500, name="Verdi"),
            _scored(None, 550, name="Verdi"),
            _scored(None, 520, name="Neri"),
        ])
        assert [(r.name, r.permillili) for r in ranked] == [("Verdi", 550), ("Neri", 520)]

    def test_unscored_rows_are_ignored(self):
        assert best_by_athlete([_scored(1, None)]) == []


# ---------------------------------------------------------------------------
# Progress Tests
# ---------------------------------------------------------------------------

def _progress(name, perc, distance=100, stroke="SL"):
    return ProgressRow(name=name, distance=distance, stroke_shortname=stroke, miglioramento_perc=perc)


class TestProgress:
    """Tests for improvement aggregation."""

    def test_sorted_by_name_then_improvement(self):
        rows = sort_progress_rows([
            _progress("Rossi", 1.0),
            _progress("Bianchi", 2.0),
            _progress("Rossi", 3.0),
            _progress("Bianchi", None),
        ])
        assert [(r.name, r.miglioramento_perc) for r in rows] == [
            ("Bianchi", 2.0), ("Bianchi", None), ("Rossi", 3.0), ("Rossi", 1.0),
        ]

    def test_per_swimmer_and_team_averages(self):
        summary = summarize_progress([
            _progress("Rossi", 4.0),
            _progress("Rossi", 2.0),
            _progress("Bianchi", 6.0),
        ])

        averages = {s.name: s.average for s in summary.swimmers}
        assert averages == {"Bianchi": 6.0, "Rossi": 3.0}
        # Team average is over rows, not over swimmer averages
        assert summary.team_average == pytest.approx(4.0)
        assert summary.valid_count == 3

    def test_null_improvements_are_skipped(self):
        summary = summarize_progress([_progress("Rossi", None), _progress("Rossi", 5.0)])
        assert summary.swimmers[0].average == 5.0
        assert summary.valid_count == 1

    def test_swimmer_without_valid_rows_averages_zero(self):
        summary = summarize_progress([_progress("Neri", None)])
        assert summary.swimmers[0].average == 0.0
        assert summary.team_average == 0.0

    def test_empty_input(self):
        summary = summarize_progress([])
        assert summary.swimmers == ()
        assert summary.team_average == 0.0


# ---------------------------------------------------------------------------
# Meet View Tests
# ---------------------------------------------------------------------------

class TestPendingMeets:
    """Tests for spotting meets whose entries have no times yet."""

    def test_only_all_zero_meets_are_pending(self):
        meets = [Meet(1, "Spring"), Meet(2, "Summer"), Meet(3, "Autumn"), Meet(4, "Winter")]
        times = {
            1: [0, 0, "0.00"],
            2: [0, 61.25],
            3: [],
        }

        assert [m.meetsid for m in pending_meets(meets, times)] == [1]

    def test_unparseable_time_is_not_zero(self):
        assert pending_meets([Meet(1, "Spring")], {1: [0, None]}) == []


class TestGroupByAthlete:
    def test_groups_keep_first_appearance_order(self):
        results = [
            Result(name="Rossi", time="30.00"),
            Result(name="Bianchi", time="28.00"),
            Result(name="Rossi", time="29.50"),
            Result(name=None, time="31.00"),
        ]

        grouped = group_by_athlete(results)

        assert [name for name, _ in grouped] == ["Rossi", "Bianchi", "unknown"]
        assert [r.time for r in grouped[0][1]] == ["30.00", "29.50"]


class TestMeetEvent:
    def test_label_joins_race_gender_and_category(self):
        event = MeetEvent(ms_id=10, meet_id=1, event_numb=3, gender="F", category="Ragazzi",
                          distance=100, stroke_shortname="SL")
        assert event.label == "3 - 100m SL - F - Ragazzi"

    def test_label_without_race(self):
        assert MeetEvent(ms_id=10, meet_id=1, event_numb=3).label == "3 - ?"
